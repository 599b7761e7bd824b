"""Retry with exponential backoff for remote gateway calls.

Example:
    >>> from fieldsync.execution.retry import ExponentialBackoff
    >>>
    >>> strategy = ExponentialBackoff(max_attempts=3, base_delay=1.0, jitter=False)
    >>> [strategy.next_delay(n) for n in (1, 2)]
    [1.0, 2.0]

The engine drives every list/create/update call through :func:`with_retry`
(or a :class:`RetryContext` when it needs the retry count back):

- retryable failures (network, 5xx, rate limit) sleep
  ``base_delay * 2 ** (attempt - 1)`` and try again;
- fatal failures (auth, validation, not found) are re-raised immediately;
- after ``max_attempts`` the last failure is re-raised unchanged.
"""

from __future__ import annotations

import random
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TypeVar

from fieldsync.core.errors import get_retry_after, is_retryable
from fieldsync.core.logging import get_logger
from fieldsync.execution.cancellation import CancellationToken, interruptible_sleep

T = TypeVar("T")

logger = get_logger(__name__)


def utcnow() -> datetime:
    """Return timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class RetryStrategy(ABC):
    """Abstract base for retry strategies."""

    @abstractmethod
    def next_delay(self, attempt: int) -> float:
        """Calculate delay before the attempt following ``attempt``.

        Args:
            attempt: One-based number of the attempt that just failed

        Returns:
            Delay in seconds before next attempt
        """
        ...

    @abstractmethod
    def should_retry(self, attempt: int, error: BaseException | None = None) -> bool:
        """Determine if another attempt should be made.

        Args:
            attempt: One-based number of the attempt that just failed
            error: The exception that caused the failure
        """
        ...


@dataclass
class ExponentialBackoff(RetryStrategy):
    """Exponential backoff with optional jitter.

    Delay = min(base_delay * (multiplier ** (attempt - 1)), max_delay) + jitter

    Attributes:
        max_attempts: Total attempts including the first one
        base_delay: Delay in seconds after the first failure
        max_delay: Maximum delay cap in seconds
        multiplier: Exponential multiplier (default: 2)
        jitter: Add randomness to prevent thundering herd
        jitter_range: Range of jitter as fraction of delay (0.0-1.0)
        retryable: Predicate classifying an error as retryable
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 60.0
    multiplier: float = 2.0
    jitter: bool = False
    jitter_range: float = 0.25
    retryable: Callable[[BaseException], bool] = is_retryable

    def next_delay(self, attempt: int) -> float:
        """Calculate exponential backoff delay."""
        delay = min(
            self.base_delay * (self.multiplier ** max(0, attempt - 1)),
            self.max_delay,
        )

        if self.jitter:
            jitter_amount = delay * self.jitter_range
            delay += random.uniform(-jitter_amount, jitter_amount)
            delay = max(0, delay)

        return delay

    def should_retry(self, attempt: int, error: BaseException | None = None) -> bool:
        """Check if retry should be attempted."""
        if attempt >= self.max_attempts:
            return False
        if error is not None:
            return self.retryable(error)
        return True


@dataclass
class RetryContext:
    """Runs a callable under a retry strategy and records what happened.

    Example:
        >>> ctx = RetryContext(ExponentialBackoff(max_attempts=3))
        >>> fields = ctx.run(lambda: gateway.list_fields(table))
        >>> ctx.retries
        0
    """

    strategy: RetryStrategy
    on_retry: Callable[[int, BaseException, float], None] | None = None
    cancel: CancellationToken | None = None
    sleep: Callable[[float], None] | None = None
    operation: str = "remote_call"
    attempt: int = field(default=0, init=False)
    last_error: BaseException | None = field(default=None, init=False)
    started_at: datetime = field(default_factory=utcnow, init=False)
    errors: list[tuple[int, BaseException, datetime]] = field(default_factory=list, init=False)

    @property
    def retries(self) -> int:
        """Attempts made beyond the first."""
        return max(0, self.attempt - 1)

    @property
    def elapsed_seconds(self) -> float:
        return (utcnow() - self.started_at).total_seconds()

    def _pause(self, delay: float) -> None:
        if self.sleep is None:
            interruptible_sleep(delay, self.cancel)
            return
        self.sleep(delay)
        if self.cancel is not None:
            self.cancel.raise_if_cancelled()

    def run(self, func: Callable[[], T]) -> T:
        """Execute ``func`` with retry logic.

        Raises:
            The last exception once it is fatal or attempts are exhausted;
            OperationCancelledError if the token fires between attempts.
        """
        while True:
            if self.cancel is not None:
                self.cancel.raise_if_cancelled()

            self.attempt += 1
            try:
                return func()
            except Exception as e:
                self.last_error = e
                self.errors.append((self.attempt, e, utcnow()))

                if not self.strategy.should_retry(self.attempt, e):
                    if self.attempt > 1 or is_retryable(e):
                        logger.warning(
                            "retry.exhausted",
                            operation=self.operation,
                            attempts=self.attempt,
                            error=str(e),
                        )
                    raise

                delay = self.strategy.next_delay(self.attempt)
                retry_after = get_retry_after(e)
                if retry_after is not None:
                    delay = max(delay, retry_after)

                logger.warning(
                    "retry.attempt_failed",
                    operation=self.operation,
                    attempt=self.attempt,
                    delay_seconds=round(delay, 3),
                    error=str(e),
                )
                if self.on_retry:
                    self.on_retry(self.attempt, e, delay)

                self._pause(delay)


def with_retry(
    op: Callable[[], T],
    max_retries: int,
    base_delay_ms: float,
    *,
    retryable: Callable[[BaseException], bool] = is_retryable,
    cancel: CancellationToken | None = None,
    sleep: Callable[[float], None] | None = None,
    on_retry: Callable[[int, BaseException, float], None] | None = None,
) -> T:
    """Call ``op`` with up to ``max(1, max_retries)`` attempts in total.

    Args:
        op: Zero-argument callable performing the remote call
        max_retries: Attempt budget (0 still makes one attempt)
        base_delay_ms: Delay after the first failure, doubled per attempt
        retryable: Error classification predicate
        cancel: Token checked before each attempt and each sleep
        sleep: Replacement sleep function (seconds), mainly for tests
        on_retry: Callback ``(attempt, error, delay_seconds)`` before sleeping
    """
    ctx = RetryContext(
        strategy=ExponentialBackoff(
            max_attempts=max(1, max_retries),
            base_delay=base_delay_ms / 1000.0,
            max_delay=float("inf"),
            retryable=retryable,
        ),
        on_retry=on_retry,
        cancel=cancel,
        sleep=sleep,
    )
    return ctx.run(op)


__all__ = [
    "RetryStrategy",
    "ExponentialBackoff",
    "RetryContext",
    "with_retry",
]
