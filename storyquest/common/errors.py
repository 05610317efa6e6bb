"""
Error taxonomy shared by the StoryQuest generation services and engine.
"""

from __future__ import annotations


class StoryEngineError(Exception):
    """
    Base class for every error raised by StoryQuest.

    ``retryable`` tells the retry dispatcher whether another attempt can be made.
    """

    retryable: bool = True

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class TransportError(StoryEngineError):
    """Connectivity failure or non-success status from a generation call."""


class ServiceError(StoryEngineError):
    """
    A generation call answered without usable content, or every retry failed.
    """

    def __init__(self, message: str, *, attempts: int | None = None) -> None:
        super().__init__(message)
        self.attempts = attempts


class MalformedResponseError(StoryEngineError):
    """The service payload does not parse or lacks required fields."""

    retryable = False

    def __init__(self, message: str, *, missing_fields: tuple[str, ...] = ()) -> None:
        super().__init__(message)
        self.missing_fields = missing_fields


class ImageUnavailable(StoryEngineError):
    """Image generation produced no payload. Pages are committed without an image."""

    retryable = False


class StoryStateError(StoryEngineError):
    """An action was requested that the current story state does not allow."""

    retryable = False


class StoryNotStartedError(StoryStateError):
    pass


class StepInProgressError(StoryStateError):
    pass


class StoryCompletedError(StoryStateError):
    pass
