"""Cooperative cancellation for reconciliation runs.

The engine never interrupts an in-flight remote call. Instead every
suspension point (gateway call, retry sleep, delay between batch items)
checks a :class:`CancellationToken` first, so a cancelled run stops before
it starts the next attempt or the next item and never leaves a mutation
half-issued.

Examples:
    >>> token = CancellationToken(deadline_seconds=30.0)
    >>> token.raise_if_cancelled()      # no-op while time remains
    >>> token.cancel()
    >>> token.cancelled
    True

Nested deadlines are not supported; pass the tighter token down.
"""

from __future__ import annotations

import threading
import time

from fieldsync.core.errors import OperationCancelledError


class CancellationToken:
    """Cancellation flag with an optional wall-clock deadline.

    Attributes:
        deadline_seconds: Seconds from construction after which the token
            reports itself cancelled (``None`` → no deadline).
    """

    def __init__(self, deadline_seconds: float | None = None) -> None:
        self.deadline_seconds = deadline_seconds
        self._event = threading.Event()
        self._reason: str | None = None
        self._deadline = (
            time.monotonic() + deadline_seconds if deadline_seconds is not None else None
        )

    def cancel(self, reason: str = "Operation cancelled") -> None:
        """Request cancellation. Idempotent; the first reason wins."""
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    @property
    def expired(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    @property
    def cancelled(self) -> bool:
        return self._event.is_set() or self.expired

    @property
    def remaining(self) -> float | None:
        """Seconds until the deadline, ``None`` without one."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    @property
    def reason(self) -> str:
        if self._event.is_set():
            return self._reason or "Operation cancelled"
        if self.expired:
            return f"Deadline of {self.deadline_seconds}s exceeded"
        return ""

    def raise_if_cancelled(self) -> None:
        """Raise OperationCancelledError when cancelled or past the deadline."""
        if self.cancelled:
            raise OperationCancelledError(self.reason)

    def wait(self, seconds: float) -> bool:
        """Sleep up to ``seconds``, waking early on cancel or deadline.

        Returns:
            True if the token was cancelled while (or before) waiting.
        """
        remaining = self.remaining
        timeout = seconds if remaining is None else min(seconds, remaining)
        self._event.wait(max(0.0, timeout))
        return self.cancelled


def interruptible_sleep(seconds: float, cancel: CancellationToken | None = None) -> None:
    """Sleep that honours a cancellation token and raises once it fires."""
    if seconds <= 0:
        if cancel is not None:
            cancel.raise_if_cancelled()
        return
    if cancel is None:
        time.sleep(seconds)
        return
    if cancel.wait(seconds):
        cancel.raise_if_cancelled()


__all__ = ["CancellationToken", "interruptible_sleep"]
