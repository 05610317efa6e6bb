"""
Common utilities shared across StoryQuest modules.
"""

from .errors import (
    ImageUnavailable,
    MalformedResponseError,
    ServiceError,
    StepInProgressError,
    StoryCompletedError,
    StoryEngineError,
    StoryNotStartedError,
    StoryStateError,
    TransportError,
)
from .llm import ChatResult, CompletionCallable, call_chat_completion
from .retry import RetryDispatcher, RetryPolicy, describe_failure

__all__ = [
    "ChatResult",
    "CompletionCallable",
    "call_chat_completion",
    "RetryDispatcher",
    "RetryPolicy",
    "describe_failure",
    "StoryEngineError",
    "TransportError",
    "ServiceError",
    "MalformedResponseError",
    "ImageUnavailable",
    "StoryStateError",
    "StoryNotStartedError",
    "StepInProgressError",
    "StoryCompletedError",
]
