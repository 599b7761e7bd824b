"""Retry and cooperative cancellation for remote calls."""

from fieldsync.execution.cancellation import CancellationToken, interruptible_sleep
from fieldsync.execution.retry import ExponentialBackoff, RetryContext, RetryStrategy, with_retry

__all__ = [
    "CancellationToken",
    "interruptible_sleep",
    "RetryStrategy",
    "ExponentialBackoff",
    "RetryContext",
    "with_retry",
]
