"""
Assembly of the request context sent to the text model for each story step.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .config import StoryConfig
from .prompting import build_step_instruction, build_step_user_turn
from .state import StoryState, ThemeSet

IMAGE_HISTORY_WINDOW = 3

INITIAL_SUMMARY = "Beginning of the journey."

OPENING_CHOICE = "Start the story."


@dataclass(frozen=True)
class StepContext:
    """
    Fully-resolved inputs for a single page-generation request.
    """

    step_number: int
    max_steps: int
    choice: str
    summary: str
    system_instruction: str
    user_turn: str
    image_history: tuple[str, ...] = ()

    def as_messages(self) -> list[dict[str, Any]]:
        """
        Render the context as chat messages, attaching history images to the user turn.
        """
        user_content: list[dict[str, Any]] = [{"type": "text", "text": self.user_turn}]
        for image in self.image_history:
            user_content.append({"type": "image_url", "image_url": {"url": image}})

        return [
            {"role": "system", "content": self.system_instruction},
            {"role": "user", "content": user_content},
        ]


def build_step_context(
    state: StoryState,
    config: StoryConfig,
    themes: ThemeSet,
    choice: str,
    *,
    history_window: int = IMAGE_HISTORY_WINDOW,
) -> StepContext:
    """
    Combine settings, themes, rolling summary and recent illustrations for the next step.

    The image history holds at most ``history_window`` entries taken from the latest
    pages; pages committed without an illustration contribute nothing.
    """
    last_page = state.last_page
    summary = (last_page.updated_summary if last_page else "") or INITIAL_SUMMARY
    step_number = state.next_step_number
    window = max(0, min(history_window, IMAGE_HISTORY_WINDOW))

    return StepContext(
        step_number=step_number,
        max_steps=config.max_steps,
        choice=choice,
        summary=summary,
        system_instruction=build_step_instruction(
            config,
            themes=themes.themes,
            ending_goal=themes.ending_goal,
            summary=summary,
            visual_brief=themes.visual_brief,
        ),
        user_turn=build_step_user_turn(step_number, config.max_steps, choice),
        image_history=tuple(state.recent_images(window)),
    )
