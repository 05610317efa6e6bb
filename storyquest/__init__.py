"""
StoryQuest package exposing the interactive story engine and its services.
"""

from .ai_generation import ReplicateIllustrator
from .common import RetryDispatcher, RetryPolicy
from .pipeline import EnginePhase, NarrativeEngine, StoryTranscript
from .story_generation import ArtStyle, Language, Page, StoryConfig, StoryWriter

__all__ = [
    "ArtStyle",
    "EnginePhase",
    "Language",
    "NarrativeEngine",
    "Page",
    "ReplicateIllustrator",
    "RetryDispatcher",
    "RetryPolicy",
    "StoryConfig",
    "StoryTranscript",
    "StoryWriter",
]
