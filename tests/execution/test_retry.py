"""
Tests for fieldsync.execution.retry.

Covers:
- ExponentialBackoff delays, cap and attempt budget
- RetryContext: success after transient failures, fatal pass-through,
  exhaustion, retry_after floor, cancellation, on_retry callback
- with_retry convenience wrapper
"""

from unittest.mock import MagicMock

import pytest

from fieldsync.core.errors import (
    NetworkError,
    OperationCancelledError,
    RateLimitError,
    RemoteValidationError,
    ServerError,
)
from fieldsync.execution.cancellation import CancellationToken
from fieldsync.execution.retry import ExponentialBackoff, RetryContext, with_retry


def flaky(failures, result="ok"):
    """Callable raising each error in ``failures`` once, then returning ``result``."""
    queue = list(failures)

    def call():
        if queue:
            raise queue.pop(0)
        return result

    call.remaining = queue
    return call


class TestExponentialBackoff:
    """Delay formula and attempt budget."""

    def test_delays_double(self):
        strategy = ExponentialBackoff(base_delay=1.0, max_delay=float("inf"))
        assert [strategy.next_delay(n) for n in (1, 2, 3, 4)] == [1.0, 2.0, 4.0, 8.0]

    def test_delay_capped(self):
        strategy = ExponentialBackoff(base_delay=10.0, max_delay=15.0)
        assert strategy.next_delay(3) == 15.0

    def test_jitter_stays_in_range(self):
        strategy = ExponentialBackoff(base_delay=1.0, jitter=True, jitter_range=0.25)
        for _ in range(50):
            assert 0.75 <= strategy.next_delay(1) <= 1.25

    def test_should_retry_respects_budget_and_classification(self):
        strategy = ExponentialBackoff(max_attempts=3)
        assert strategy.should_retry(1, NetworkError("x"))
        assert strategy.should_retry(2, NetworkError("x"))
        assert not strategy.should_retry(3, NetworkError("x"))
        assert not strategy.should_retry(1, RemoteValidationError("x"))


class TestRetryContext:
    """RetryContext.run behaviour."""

    def test_succeeds_after_transient_failures(self):
        """Two network faults then success: three attempts, backoff 0.1 then 0.2."""
        sleeps = []
        ctx = RetryContext(
            ExponentialBackoff(max_attempts=3, base_delay=0.1), sleep=sleeps.append
        )
        assert ctx.run(flaky([NetworkError("a"), ServerError("b")])) == "ok"
        assert ctx.attempt == 3
        assert ctx.retries == 2
        assert sleeps == pytest.approx([0.1, 0.2])
        assert len(ctx.errors) == 2

    def test_fatal_error_is_not_retried(self):
        """A validation failure is re-raised on the first attempt."""
        sleeps = []
        ctx = RetryContext(ExponentialBackoff(max_attempts=5), sleep=sleeps.append)
        error = RemoteValidationError("bad payload")
        with pytest.raises(RemoteValidationError) as excinfo:
            ctx.run(flaky([error]))
        assert excinfo.value is error
        assert ctx.attempt == 1
        assert sleeps == []

    def test_last_error_reraised_after_exhaustion(self):
        """The last failure surfaces unchanged once attempts run out."""
        last = NetworkError("third")
        ctx = RetryContext(
            ExponentialBackoff(max_attempts=3, base_delay=0.01), sleep=lambda s: None
        )
        with pytest.raises(NetworkError) as excinfo:
            ctx.run(flaky([NetworkError("first"), NetworkError("second"), last]))
        assert excinfo.value is last
        assert ctx.retries == 2

    def test_retry_after_raises_the_floor(self):
        """A rate-limit hint longer than the backoff wins."""
        sleeps = []
        ctx = RetryContext(
            ExponentialBackoff(max_attempts=2, base_delay=0.1), sleep=sleeps.append
        )
        ctx.run(flaky([RateLimitError(retry_after=3.0)]))
        assert sleeps == [3.0]

    def test_on_retry_callback(self):
        callback = MagicMock()
        error = NetworkError("x")
        ctx = RetryContext(
            ExponentialBackoff(max_attempts=2, base_delay=0.5),
            on_retry=callback,
            sleep=lambda s: None,
        )
        ctx.run(flaky([error]))
        callback.assert_called_once_with(1, error, 0.5)

    def test_cancelled_before_first_attempt(self):
        """A cancelled token stops the run before the callable is invoked."""
        token = CancellationToken()
        token.cancel("stop")
        func = MagicMock(return_value="ok")
        with pytest.raises(OperationCancelledError, match="stop"):
            RetryContext(ExponentialBackoff(), cancel=token).run(func)
        func.assert_not_called()

    def test_cancelled_during_backoff(self):
        """Cancellation during the sleep prevents the next attempt."""
        token = CancellationToken()
        func = MagicMock(side_effect=[NetworkError("x"), "ok"])
        ctx = RetryContext(
            ExponentialBackoff(max_attempts=3, base_delay=0.01),
            cancel=token,
            sleep=lambda s: token.cancel(),
        )
        with pytest.raises(OperationCancelledError):
            ctx.run(func)
        assert func.call_count == 1


class TestWithRetry:
    """with_retry wrapper."""

    def test_attempt_budget_is_max_retries(self):
        """max_retries=3 means three attempts in total."""
        func = MagicMock(side_effect=NetworkError("down"))
        with pytest.raises(NetworkError):
            with_retry(func, 3, 100, sleep=lambda s: None)
        assert func.call_count == 3

    def test_zero_retries_still_attempts_once(self):
        func = MagicMock(side_effect=NetworkError("down"))
        with pytest.raises(NetworkError):
            with_retry(func, 0, 100, sleep=lambda s: None)
        assert func.call_count == 1

    def test_backoff_in_milliseconds(self):
        """base_delay_ms · 2^(attempt-1), converted to seconds."""
        sleeps = []
        call = flaky([NetworkError("a"), NetworkError("b")])
        assert with_retry(call, 3, 1000, sleep=sleeps.append) == "ok"
        assert sleeps == [1.0, 2.0]

    def test_custom_classifier(self):
        """A caller-supplied predicate replaces the default classification."""
        func = MagicMock(side_effect=[ValueError("flaky"), "ok"])
        result = with_retry(
            func, 2, 10, retryable=lambda e: isinstance(e, ValueError), sleep=lambda s: None
        )
        assert result == "ok"
