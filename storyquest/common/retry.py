"""
Bounded exponential-backoff retry for a single logical generation call.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, TypeVar

from .errors import ServiceError, StoryEngineError

T = TypeVar("T")

SleepCallable = Callable[[float], None]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """
    Retry knobs, in seconds.

    Attributes
    ----------
    retries:
        Extra attempts after the first one. ``retries=3`` means at most 4 calls.
    initial_delay:
        Wait before the second attempt.
    multiplier:
        Factor applied to the wait after every failed attempt.
    """

    retries: int = 3
    initial_delay: float = 1.5
    multiplier: float = 1.5

    def __post_init__(self) -> None:
        if self.retries < 0:
            raise ValueError("retries must be zero or positive.")
        if self.initial_delay < 0:
            raise ValueError("initial_delay must be zero or positive.")
        if self.multiplier < 1:
            raise ValueError("multiplier must be at least 1.")

    @property
    def max_attempts(self) -> int:
        return self.retries + 1

    def delays(self) -> list[float]:
        """Return the waits applied before attempts 2..max_attempts."""
        return [self.initial_delay * self.multiplier**index for index in range(self.retries)]


class RetryDispatcher:
    """
    Runs a call until it succeeds or the policy is exhausted.

    The ``sleep`` between attempts is the only suspension point.
    """

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        *,
        sleep: SleepCallable | None = None,
    ) -> None:
        self._policy = policy or RetryPolicy()
        self._sleep: SleepCallable = sleep or time.sleep

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    def call(self, fn: Callable[[], T], *, label: str = "generation call") -> T:
        """
        Invoke ``fn`` and return its result, retrying failures per the policy.

        Raises
        ------
        ServiceError
            Once every attempt has failed, carrying the best-known failure message.
        StoryEngineError
            Immediately, for errors flagged as non-retryable.
        """
        remaining = self._policy.retries
        delay = self._policy.initial_delay
        attempt = 0
        while True:
            attempt += 1
            try:
                return fn()
            except StoryEngineError as exc:
                if not exc.retryable:
                    raise
                last_error: Exception = exc
            except Exception as exc:
                last_error = exc

            message = describe_failure(last_error)
            if remaining <= 0:
                logger.error("%s failed after %d attempt(s): %s", label, attempt, message)
                raise ServiceError(message, attempts=attempt) from last_error

            logger.warning(
                "%s attempt %d failed (%s); retrying in %.2fs",
                label,
                attempt,
                message,
                delay,
            )
            self._sleep(delay)
            delay *= self._policy.multiplier
            remaining -= 1


def describe_failure(error: BaseException) -> str:
    """
    Pick the most useful description of a failed call.

    Service-provided text wins, then the HTTP status, then a generic message.
    """
    message = getattr(error, "message", None)
    if isinstance(message, str) and message.strip():
        return message.strip()

    text = str(error).strip()
    if text:
        return text

    status = getattr(error, "status_code", None)
    if status is not None:
        return f"Server Error: {status}"

    return f"{type(error).__name__} during generation call"
