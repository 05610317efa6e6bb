"""
Prompt construction utilities for the StoryQuest text-generation calls.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from .config import StoryConfig

THEME_COUNT = 5

THEME_REQUEST_TEXT = "Initialize the story themes and ending goal based on the topic."


@dataclass(frozen=True)
class StoryPrompt:
    """
    Container for the system and user prompts passed to the text model.
    """

    system: str
    user: str


def build_theme_prompt(config: StoryConfig) -> StoryPrompt:
    """
    Build the prompt pair that establishes themes, ending goal and visual brief.
    """
    system_prompt = f"""You are a story architect. The user wants to play an interactive story about "{config.topic}".
Style: {config.art_style.value}.
Additional user preferences: "{config.extra_details}".

Tasks:
1. Generate {THEME_COUNT} core philosophical themes for this story.
2. Generate a "storyEndingGoal" - a specific narrative resolution.
3. Generate a "visualBrief" - a short description in English of how characters and settings should look.

Output must be valid JSON with exactly these fields:
{{
  "themes": ["string", ...],
  "storyEndingGoal": "string",
  "visualBrief": "string"
}}

Do not include commentary outside the JSON."""

    return StoryPrompt(system=system_prompt, user=THEME_REQUEST_TEXT)


def build_step_instruction(
    config: StoryConfig,
    *,
    themes: Sequence[str],
    ending_goal: str,
    summary: str,
    visual_brief: str | None = None,
) -> str:
    """
    System instruction for one page. Only the rolling summary is embedded, never the page history.
    """
    visual_line = f"\n- Visual brief: {visual_brief}" if visual_brief else ""
    style = config.art_style.value

    return f"""You are an AI storyteller for children.
Theme: {config.topic}.
Language: {config.language.value}.
Visual Style: {style}.

Context:
- Themes: [{", ".join(themes)}]
- Goal: {ending_goal}{visual_line}
- Story Summary so far: {summary}

Storytelling Guidelines:
1. MERGE WITH THEME: Pick one background theme and integrate it.
2. CONSEQUENCE: Decisions must have logical outcomes based on environmental clues.
3. VISUAL CONSISTENCY: Maintain the look of the {style} style based on visual history.
4. FLEXIBLE ENDING: Conclude early if the goal is met or fails.
5. MAX PAGES: Do not exceed {config.max_steps}.

Write "storyText", "educationalFact" and "question" in {config.language.value}; write "imagePrompt" in English.
"updatedSummary" must replace the previous summary with a compact digest of the whole story so far.

Return ONLY JSON with these fields:
{{
  "storyText": "string",
  "educationalFact": "string",
  "question": "string, what the reader could do next (may be empty on the final page)",
  "imagePrompt": "string",
  "isGameOver": true or false,
  "updatedSummary": "string"
}}"""


def build_step_user_turn(step_number: int, max_steps: int, choice: str) -> str:
    return f"Step: {step_number}/{max_steps}. User input: {choice}"
