"""
Story generation utilities: settings, prompts, validation, context, and state.
"""

from .config import (
    DEFAULT_MAX_STEPS,
    MAX_STEPS_LIMIT,
    MIN_STEPS,
    ArtStyle,
    Language,
    StoryConfig,
    clamp_max_steps,
    load_story_config,
)
from .context import (
    IMAGE_HISTORY_WINDOW,
    INITIAL_SUMMARY,
    OPENING_CHOICE,
    StepContext,
    build_step_context,
)
from .prompting import StoryPrompt, build_theme_prompt
from .state import Page, StoryState, ThemeSet
from .story_service import StoryWriter
from .validation import StepPayload, parse_step_payload, parse_theme_payload, strip_code_fences

__all__ = [
    "ArtStyle",
    "Language",
    "StoryConfig",
    "clamp_max_steps",
    "load_story_config",
    "MIN_STEPS",
    "MAX_STEPS_LIMIT",
    "DEFAULT_MAX_STEPS",
    "StepContext",
    "build_step_context",
    "IMAGE_HISTORY_WINDOW",
    "INITIAL_SUMMARY",
    "OPENING_CHOICE",
    "StoryPrompt",
    "build_theme_prompt",
    "Page",
    "StoryState",
    "ThemeSet",
    "StoryWriter",
    "StepPayload",
    "parse_step_payload",
    "parse_theme_payload",
    "strip_code_fences",
]
