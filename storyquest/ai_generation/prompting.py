"""
Prompt construction for StoryQuest page illustrations.
"""

from __future__ import annotations

from storyquest.story_generation.config import ArtStyle

ILLUSTRATION_SUFFIX = "Detailed, consistent characters, full scene."


def build_illustration_prompt(image_prompt: str, art_style: ArtStyle | str) -> str:
    """
    Append the session art style to the scene prompt produced by the text model.
    """
    scene = image_prompt.strip()
    if not scene:
        raise ValueError("Image prompt must be a non-empty string.")

    style = art_style.value if isinstance(art_style, ArtStyle) else str(art_style).strip()
    return f"{scene} in {style} style. {ILLUSTRATION_SUFFIX}"
