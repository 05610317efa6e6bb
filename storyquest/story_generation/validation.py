"""
Parsing and structural validation of the JSON returned by the text model.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Mapping

from storyquest.common import MalformedResponseError

from .state import ThemeSet

THEME_REQUIRED_FIELDS = ("themes", "storyEndingGoal", "visualBrief")
STEP_REQUIRED_FIELDS = (
    "storyText",
    "educationalFact",
    "imagePrompt",
    "isGameOver",
    "updatedSummary",
)

_FENCE_PATTERN = re.compile(r"```(?:json)?", re.IGNORECASE)


@dataclass(frozen=True)
class StepPayload:
    """
    Validated result of a page-generation call.
    """

    story_text: str
    educational_fact: str
    question: str
    image_prompt: str
    is_game_over: bool
    updated_summary: str


def strip_code_fences(text: str) -> str:
    return _FENCE_PATTERN.sub("", text).strip()


def parse_json_object(text: str | None) -> dict[str, Any]:
    """
    Strip code fences and decode ``text`` as a JSON object.
    """
    if text is None or not text.strip():
        raise MalformedResponseError("Failed to read the story data: the response was empty.")

    try:
        parsed = json.loads(strip_code_fences(text))
    except json.JSONDecodeError as exc:
        raise MalformedResponseError(
            "Failed to read the story data. Please try again."
        ) from exc

    if not isinstance(parsed, dict):
        raise MalformedResponseError("Story data must be a JSON object.")
    return parsed


def parse_theme_payload(text: str | None) -> ThemeSet:
    """
    Validate the initialization shape: ``themes``, ``storyEndingGoal``, ``visualBrief``.
    """
    payload = parse_json_object(text)
    _require_fields(payload, THEME_REQUIRED_FIELDS, shape="theme")

    themes = payload["themes"]
    if isinstance(themes, str) or not isinstance(themes, list):
        raise MalformedResponseError(
            "Theme response field 'themes' must be a list of strings.",
            missing_fields=("themes",),
        )

    return ThemeSet.build(
        themes=themes,
        ending_goal=payload["storyEndingGoal"],
        visual_brief=payload["visualBrief"],
    )


def parse_step_payload(text: str | None) -> StepPayload:
    """
    Validate the step shape. Every field except ``question`` is required.
    """
    payload = parse_json_object(text)
    _require_fields(payload, STEP_REQUIRED_FIELDS, shape="step")

    question = payload.get("question")
    return StepPayload(
        story_text=str(payload["storyText"]).strip(),
        educational_fact=str(payload["educationalFact"]).strip(),
        question=str(question).strip() if question is not None else "",
        image_prompt=str(payload["imagePrompt"]).strip(),
        is_game_over=_coerce_bool(payload["isGameOver"]),
        updated_summary=str(payload["updatedSummary"]).strip(),
    )


def _require_fields(payload: Mapping[str, Any], fields: tuple[str, ...], *, shape: str) -> None:
    missing = tuple(
        name
        for name in fields
        if payload.get(name) is None or (isinstance(payload[name], str) and not payload[name].strip())
    )
    if missing:
        joined = ", ".join(missing)
        raise MalformedResponseError(
            f"The {shape} response is missing required field(s): {joined}.",
            missing_fields=missing,
        )


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in {"true", "false"}:
        return value.strip().lower() == "true"
    raise MalformedResponseError(
        f"Step response field 'isGameOver' must be a boolean, got {value!r}.",
        missing_fields=("isGameOver",),
    )
