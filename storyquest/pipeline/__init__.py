"""
End-to-end orchestration of an interactive StoryQuest session.
"""

from .engine import EnginePhase, NarrativeEngine, ProgressCallback
from .transcript import StoryTranscript

__all__ = [
    "EnginePhase",
    "NarrativeEngine",
    "ProgressCallback",
    "StoryTranscript",
]
