"""
AI image generation package for StoryQuest.
"""

from .prompting import build_illustration_prompt
from .replicate_service import (
    ReplicateIllustrator,
    decode_data_url,
    normalize_image_outputs,
    to_data_url,
)

__all__ = [
    "build_illustration_prompt",
    "ReplicateIllustrator",
    "decode_data_url",
    "normalize_image_outputs",
    "to_data_url",
]
