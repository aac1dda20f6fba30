"""Retry logic with exponential backoff.

Provides a bounded async retry loop for external calls. Every failure counts
toward the attempt budget unless ``retry_on`` narrows it; exhaustion raises
``RetryExhausted`` wrapping the last failure.

Example:
    >>> from intake.resilience.retry import RetryExecutor, RetryPolicy
    >>> policy = RetryPolicy(max_attempts=3, initial_delay_ms=1000)
    >>> raw = await RetryExecutor().execute(lambda: invoker.invoke(prompt, cfg), policy)
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Tuple, Type, TypeVar

from intake.core.exceptions import RetryExhausted

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[Any]]


@dataclass(frozen=True)
class RetryPolicy:
    """Configuration for retry logic.

    Attributes:
        max_attempts: Maximum number of attempts (including the first)
        initial_delay_ms: Delay before the second attempt
        backoff_multiplier: Factor applied to the delay after each retry
    """

    max_attempts: int = 3
    initial_delay_ms: float = 1000
    backoff_multiplier: float = 2.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.initial_delay_ms < 0:
            raise ValueError(f"initial_delay_ms must be >= 0, got {self.initial_delay_ms}")
        if self.backoff_multiplier < 1:
            raise ValueError(
                f"backoff_multiplier must be >= 1, got {self.backoff_multiplier}"
            )

    def delay_ms(self, attempt: int) -> float:
        """Delay to wait after failed ``attempt`` (1-based) before the next one."""
        return self.initial_delay_ms * (self.backoff_multiplier ** (attempt - 1))

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        """Build the policy from ``RetrySettings`` (RETRY_* environment variables)."""
        from intake.core.settings import retry_settings

        return cls(
            max_attempts=retry_settings.RETRY_MAX_ATTEMPTS,
            initial_delay_ms=retry_settings.RETRY_INITIAL_DELAY_MS,
            backoff_multiplier=retry_settings.RETRY_BACKOFF_MULTIPLIER,
        )


def _cancel_requested() -> bool:
    task = asyncio.current_task()
    if task is None:
        return False
    cancelling = getattr(task, "cancelling", None)
    return bool(cancelling and cancelling())


class RetryExecutor:
    """Run an async operation under a ``RetryPolicy``.

    Args:
        sleep: Awaitable sleep taking seconds (``asyncio.sleep`` by default)
    """

    def __init__(self, sleep: Sleep | None = None) -> None:
        self._sleep = sleep or asyncio.sleep

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        policy: RetryPolicy,
        retry_on: Tuple[Type[Exception], ...] = (Exception,),
    ) -> T:
        """Run ``operation`` until it succeeds or the policy is exhausted.

        Args:
            operation: Zero-argument coroutine function
            policy: Attempt budget and backoff
            retry_on: Exception types that consume an attempt; anything else
                propagates immediately

        Returns:
            Result of the first successful attempt

        Raises:
            RetryExhausted: If every attempt failed
            asyncio.CancelledError: If the caller was cancelled
        """
        last_error: Exception | None = None

        for attempt in range(1, policy.max_attempts + 1):
            if attempt > 1 and _cancel_requested():
                raise asyncio.CancelledError()

            try:
                return await operation()
            except retry_on as e:
                last_error = e

                if attempt == policy.max_attempts:
                    break

                delay_ms = policy.delay_ms(attempt)
                logger.warning(
                    f"Attempt {attempt}/{policy.max_attempts} failed: "
                    f"{type(e).__name__}: {e}. Retrying in {delay_ms:.0f}ms...",
                    extra={
                        "attempt": attempt,
                        "max_attempts": policy.max_attempts,
                        "delay_ms": delay_ms,
                        "exception_type": type(e).__name__,
                    },
                )
                await self._sleep(delay_ms / 1000)

        logger.error(
            f"All {policy.max_attempts} attempts failed",
            extra={
                "max_attempts": policy.max_attempts,
                "exception_type": type(last_error).__name__,
            },
        )
        raise RetryExhausted(policy.max_attempts, last_error) from last_error
