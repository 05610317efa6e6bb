"""
Export of a story session into a plain mapping or YAML document.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from storyquest.ai_generation import decode_data_url
from storyquest.story_generation import Page, StoryConfig, ThemeSet

from .engine import NarrativeEngine


@dataclass
class StoryTranscript:
    """Snapshot of the configuration, themes, and pages of one session."""

    config: StoryConfig
    themes: ThemeSet | None
    pages: tuple[Page, ...]
    is_complete: bool
    last_error: str | None = None

    @classmethod
    def from_engine(cls, engine: NarrativeEngine) -> "StoryTranscript":
        state = engine.state
        return cls(
            config=engine.config,
            themes=engine.themes,
            pages=state.pages if state is not None else (),
            is_complete=state.is_game_over if state is not None else False,
            last_error=engine.last_error,
        )

    def to_dict(self, *, include_images: bool = False) -> dict[str, Any]:
        return {
            "config": self.config.to_dict(),
            "themes": self.themes.to_dict() if self.themes is not None else None,
            "is_complete": self.is_complete,
            "last_error": self.last_error,
            "pages": [
                {"step_number": number, **page.to_dict(include_image=include_images)}
                for number, page in enumerate(self.pages, start=1)
            ],
        }

    def to_yaml(self, *, include_images: bool = False) -> str:
        return yaml.safe_dump(
            self.to_dict(include_images=include_images),
            sort_keys=False,
            allow_unicode=True,
        )

    def write_images(self, directory: Path | str) -> list[Path]:
        """
        Decode every page illustration into ``page_XX.png`` files under ``directory``.
        """
        target = Path(directory)
        target.mkdir(parents=True, exist_ok=True)

        written: list[Path] = []
        for number, page in enumerate(self.pages, start=1):
            if not page.image_url:
                continue
            path = target / f"page_{number:02d}.png"
            path.write_bytes(decode_data_url(page.image_url))
            written.append(path)
        return written
