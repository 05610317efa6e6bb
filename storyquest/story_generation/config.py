"""
Structured representation of the story settings chosen before an adventure starts.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Mapping

import yaml

MIN_STEPS = 1
MAX_STEPS_LIMIT = 20
DEFAULT_MAX_STEPS = 10


class Language(str, Enum):
    ENGLISH = "English"
    HEBREW = "Hebrew"
    RUSSIAN = "Russian"


class ArtStyle(str, Enum):
    PHOTOREALISTIC = "Photorealistic"
    WATERCOLOR = "Watercolor"
    WESTERN_COMIC = "Western Comic"
    ANIME = "Anime"
    FLAT_DESIGN = "Flat Design"
    SURREALIST = "Surrealist"
    GOUACHE_ILLUSTRATION = "Gouache Illustration"
    NATIVE_AMERICAN_ART = "Native American Art"


DEFAULT_LANGUAGE = Language.ENGLISH
DEFAULT_ART_STYLE = ArtStyle.WATERCOLOR


def clamp_max_steps(value: Any) -> int:
    """
    Coerce ``value`` to an int inside ``[MIN_STEPS, MAX_STEPS_LIMIT]``.
    """
    if value is None or value == "":
        return DEFAULT_MAX_STEPS

    try:
        steps = int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Expected an integer-compatible value for max_steps, got {value!r}") from exc

    return max(MIN_STEPS, min(MAX_STEPS_LIMIT, steps))


def _coerce_enum(enum_cls: type[Enum], value: Any, field_name: str) -> Any:
    if isinstance(value, enum_cls):
        return value

    text = str(value).strip().lower()
    for member in enum_cls:
        if text in (member.value.lower(), member.name.lower()):
            return member

    choices = ", ".join(member.value for member in enum_cls)
    raise ValueError(f"Unsupported {field_name} {value!r}. Choose one of: {choices}.")


def _coerce_optional_str(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


@dataclass(frozen=True)
class StoryConfig:
    """
    Session settings, fixed once the story starts.

    Attributes
    ----------
    topic:
        Free-text subject of the adventure (required).
    language:
        Language the story is told in.
    max_steps:
        Hard page cap, clamped into ``[MIN_STEPS, MAX_STEPS_LIMIT]``.
    extra_details:
        Optional free-form preferences (tone, values, specific elements).
    art_style:
        Illustration style applied to every page.
    """

    topic: str
    language: Language = DEFAULT_LANGUAGE
    max_steps: int = DEFAULT_MAX_STEPS
    extra_details: str = ""
    art_style: ArtStyle = DEFAULT_ART_STYLE

    def __post_init__(self) -> None:
        topic = _coerce_optional_str(self.topic)
        if not topic:
            raise ValueError("Story configuration requires a non-empty topic.")

        # Frozen dataclass: normalized values are written through object.__setattr__.
        object.__setattr__(self, "topic", topic)
        object.__setattr__(self, "language", _coerce_enum(Language, self.language, "language"))
        object.__setattr__(self, "max_steps", clamp_max_steps(self.max_steps))
        object.__setattr__(self, "extra_details", _coerce_optional_str(self.extra_details))
        object.__setattr__(self, "art_style", _coerce_enum(ArtStyle, self.art_style, "art style"))

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "StoryConfig":
        """
        Build a configuration from a dict-like object (e.g., parsed JSON/YAML).

        Both camelCase (``maxSteps``) and snake_case (``max_steps``) keys are accepted.
        """
        topic = data.get("topic")
        if topic is None or not str(topic).strip():
            raise ValueError("Story configuration must include a non-empty 'topic' field.")

        return cls(
            topic=str(topic),
            language=data.get("language") or DEFAULT_LANGUAGE,
            max_steps=_first_present(data, "max_steps", "maxSteps"),
            extra_details=_first_present(data, "extra_details", "extraDetails") or "",
            art_style=_first_present(data, "art_style", "artStyle") or DEFAULT_ART_STYLE,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "topic": self.topic,
            "language": self.language.value,
            "max_steps": self.max_steps,
            "extra_details": self.extra_details,
            "art_style": self.art_style.value,
        }


def _first_present(data: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return None


def load_story_config(path: Path | str) -> StoryConfig:
    """
    Load story settings from a YAML or JSON file.
    """
    path = Path(path)
    text = path.read_text(encoding="utf-8")
    suffix = path.suffix.lower()
    if suffix in {".yaml", ".yml"}:
        data = yaml.safe_load(text)
    elif suffix == ".json":
        data = json.loads(text)
    else:
        raise ValueError("Unsupported story config format. Use YAML or JSON.")

    if not isinstance(data, Mapping):
        raise ValueError("Story config file must deserialize to a mapping.")
    return StoryConfig.from_mapping(data)
