"""
Tests for fieldsync.core.errors.

Covers:
- Category / retryable defaults per error family
- Fluent context and serialization
- Field-operation errors (message formats, retry_count, context)
- is_retryable / get_retry_after classification
"""

import httpx
import pytest

from fieldsync.core.errors import (
    AuthenticationError,
    AuthorizationError,
    ConfigError,
    ConfigurationMismatchError,
    ErrorCategory,
    FieldNotFoundError,
    FieldOperationError,
    FieldSyncError,
    InvalidOptionsError,
    NetworkError,
    OperationCancelledError,
    RateLimitError,
    RemoteNotFoundError,
    RemoteValidationError,
    ServerError,
    get_retry_after,
    is_retryable,
)
from fieldsync.models import ConfigurationDifference, Severity


class TestErrorDefaults:
    """Each family carries the category and retry flag the executor relies on."""

    @pytest.mark.parametrize(
        "error, category, retryable",
        [
            (NetworkError("reset"), ErrorCategory.NETWORK, True),
            (ServerError("boom", status_code=502), ErrorCategory.NETWORK, True),
            (RateLimitError(), ErrorCategory.NETWORK, True),
            (RemoteNotFoundError("gone", status_code=404), ErrorCategory.REMOTE, False),
            (RemoteValidationError("bad", status_code=400), ErrorCategory.VALIDATION, False),
            (AuthenticationError("token", status_code=401), ErrorCategory.AUTH, False),
            (AuthorizationError("denied", status_code=403), ErrorCategory.AUTH, False),
            (ConfigError("missing"), ErrorCategory.CONFIG, False),
            (FieldSyncError("internal"), ErrorCategory.INTERNAL, False),
        ],
    )
    def test_category_and_retryable(self, error, category, retryable):
        """Defaults come from the class."""
        assert error.category is category
        assert error.retryable is retryable

    def test_override_retryable(self):
        """Callers may override the class default."""
        error = RemoteValidationError("bad", retryable=True)
        assert error.retryable is True

    def test_server_error_records_status(self):
        """status_code is mirrored into the context."""
        error = ServerError("boom", status_code=503)
        assert error.status_code == 503
        assert error.context.http_status == 503

    def test_rate_limit_retry_after_defaults_to_none(self):
        """Without a Retry-After hint the backoff formula alone decides."""
        assert RateLimitError().retry_after is None
        assert RateLimitError(retry_after=2.5).retry_after == 2.5


class TestContextAndSerialization:
    """Fluent context and to_dict."""

    def test_with_context_sets_known_and_extra_keys(self):
        """Known keys land on ErrorContext, others in metadata."""
        error = NetworkError("reset").with_context(table="app:tbl", attempt=2)
        assert error.context.table == "app:tbl"
        assert error.context.metadata == {"attempt": 2}

    def test_to_dict(self):
        """to_dict includes type, category, context and cause."""
        cause = ValueError("inner")
        error = RemoteValidationError("bad", status_code=400, remote_code=1254001, cause=cause)
        data = error.with_context(table="app:tbl").to_dict()
        assert data["error_type"] == "RemoteValidationError"
        assert data["category"] == "VALIDATION"
        assert data["retryable"] is False
        assert data["remote_code"] == 1254001
        assert data["context"] == {"table": "app:tbl", "http_status": 400}
        assert data["cause"] == "inner"
        assert error.__cause__ is cause

    def test_repr(self):
        """repr names the class and category."""
        assert repr(ConfigError("x")) == "ConfigError('x', category=CONFIG)"


class TestFieldOperationErrors:
    """Errors raised by reconciliation decisions."""

    def test_field_operation_error(self):
        """operation, field_name and retry_count are kept and mirrored."""
        cause = NetworkError("reset")
        error = FieldOperationError(
            "Failed to create", "create", "Status", cause, retry_count=2
        )
        assert error.operation == "create"
        assert error.field_name == "Status"
        assert error.retry_count == 2
        assert error.cause is cause
        assert error.context.operation == "create"
        assert error.context.field_name == "Status"
        assert error.retryable is False

    def test_invalid_options_is_a_field_operation_error(self):
        """Option violations are validation-category operation errors."""
        error = InvalidOptionsError("Invalid operation options: max_retries")
        assert isinstance(error, FieldOperationError)
        assert error.operation == "validate_options"
        assert error.category is ErrorCategory.VALIDATION

    def test_cancelled(self):
        """Cancellation carries a default message."""
        error = OperationCancelledError()
        assert str(error) == "Operation cancelled"
        assert error.operation == "cancel"

    def test_field_not_found_message(self):
        """Message names both the field and the table."""
        error = FieldNotFoundError("Status", "app:tbl")
        assert str(error) == 'Field "Status" does not exist in table "app:tbl"'
        assert error.context.table == "app:tbl"

    def test_configuration_mismatch(self):
        """Mismatch keeps the differences and counts them in the message."""
        diff = ConfigurationDifference(
            property="type", from_value=1, to_value=3, severity=Severity.CRITICAL
        )
        error = ConfigurationMismatchError([diff], "Status")
        assert str(error) == "Field configuration mismatch: 1 difference(s)"
        assert error.differences == [diff]
        assert error.to_dict()["differences"] == ["type"]


class TestClassification:
    """is_retryable / get_retry_after."""

    def test_domain_errors_answer_for_themselves(self):
        assert is_retryable(ServerError("x"))
        assert not is_retryable(RemoteNotFoundError("x"))
        assert not is_retryable(FieldNotFoundError("a", "b"))

    @pytest.mark.parametrize(
        "error",
        [
            ConnectionError("reset"),
            TimeoutError("slow"),
            httpx.ConnectError("refused"),
            httpx.ReadTimeout("slow"),
        ],
    )
    def test_raw_transport_errors_are_retryable(self, error):
        """Transport failures that bypass a gateway count as network faults."""
        assert is_retryable(error)

    def test_other_errors_are_fatal(self):
        assert not is_retryable(ValueError("bad"))
        assert not is_retryable(KeyError("k"))

    def test_get_retry_after(self):
        assert get_retry_after(RateLimitError(retry_after=3)) == 3
        assert get_retry_after(NetworkError("x")) is None
        assert get_retry_after(RuntimeError("x")) is None
