"""
Story state: the theme set, committed pages, and lifecycle flags of one session.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable

from storyquest.common import StepInProgressError, StoryCompletedError, StoryStateError


@dataclass(frozen=True)
class ThemeSet:
    """
    Themes and ending goal established once, when the story is initialized.
    """

    themes: tuple[str, ...]
    ending_goal: str
    visual_brief: str | None = None

    @classmethod
    def build(
        cls,
        themes: Iterable[Any],
        ending_goal: Any,
        visual_brief: Any = None,
    ) -> "ThemeSet":
        cleaned = tuple(str(item).strip() for item in themes if item is not None and str(item).strip())
        brief = str(visual_brief).strip() if visual_brief is not None else ""
        return cls(
            themes=cleaned,
            ending_goal=str(ending_goal).strip(),
            visual_brief=brief or None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "themes": list(self.themes),
            "ending_goal": self.ending_goal,
            "visual_brief": self.visual_brief,
        }


@dataclass(frozen=True)
class Page:
    """
    One committed step of the story. Never mutated after creation.
    """

    story_text: str
    educational_fact: str
    question: str
    image_url: str | None
    choice: str
    updated_summary: str

    @property
    def has_image(self) -> bool:
        return bool(self.image_url)

    def to_dict(self, *, include_image: bool = True) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "choice": self.choice,
            "story_text": self.story_text,
            "educational_fact": self.educational_fact,
            "question": self.question,
            "updated_summary": self.updated_summary,
            "has_image": self.has_image,
        }
        if include_image:
            payload["image_url"] = self.image_url
        return payload


class StoryState:
    """
    Mutable record of a running story.

    Only the narrative engine mutates it; everyone else reads the properties.
    Pages are append-only and ``is_game_over`` never flips back to False.
    """

    def __init__(self, themes: ThemeSet) -> None:
        self._themes = themes
        self._pages: list[Page] = []
        self._current_page_index = 0
        self._is_game_over = False
        self._is_loading = False
        self._last_error: str | None = None
        self._last_choice: str | None = None

    @property
    def themes(self) -> ThemeSet:
        return self._themes

    @property
    def pages(self) -> tuple[Page, ...]:
        return tuple(self._pages)

    @property
    def page_count(self) -> int:
        return len(self._pages)

    @property
    def current_page_index(self) -> int:
        return self._current_page_index

    @property
    def current_page(self) -> Page | None:
        if not self._pages:
            return None
        return self._pages[self._current_page_index]

    @property
    def last_page(self) -> Page | None:
        return self._pages[-1] if self._pages else None

    @property
    def next_step_number(self) -> int:
        return len(self._pages) + 1

    @property
    def is_game_over(self) -> bool:
        return self._is_game_over

    @property
    def is_loading(self) -> bool:
        return self._is_loading

    @property
    def last_error(self) -> str | None:
        return self._last_error

    @property
    def last_choice(self) -> str | None:
        return self._last_choice

    def can_accept_choice(self) -> bool:
        return not self._is_loading and not self._is_game_over

    def begin_step(self, choice: str) -> None:
        if self._is_loading:
            raise StepInProgressError("A story step is already being generated.")
        if self._is_game_over:
            raise StoryCompletedError("The story has ended; no further pages can be generated.")

        self._is_loading = True
        self._last_error = None
        self._last_choice = choice

    def commit_page(self, page: Page, *, game_over: bool) -> None:
        if not self._is_loading:
            raise StoryStateError("No story step is in progress; call begin_step() first.")

        self._pages.append(page)
        self._current_page_index = len(self._pages) - 1
        if game_over:
            self._is_game_over = True
        self._is_loading = False

    def fail_step(self, message: str) -> None:
        self._last_error = message
        self._is_loading = False

    def select_page(self, index: int) -> Page:
        """Move the browsing cursor to an already generated page."""
        if not 0 <= index < len(self._pages):
            raise IndexError(f"Page index {index} is out of range for {len(self._pages)} page(s).")
        self._current_page_index = index
        return self._pages[index]

    def recent_images(self, window: int) -> list[str]:
        """Image data of at most ``window`` most recent pages, oldest first."""
        if window <= 0:
            return []
        return [page.image_url for page in self._pages[-window:] if page.image_url]
