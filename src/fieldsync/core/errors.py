"""
Structured error types for fieldsync.

Provides a typed error hierarchy with rich metadata for retry decisions,
error categorization, and root cause analysis through error chaining.

Every error raised by fieldsync extends FieldSyncError and carries:
- **Category:** What kind of error (network, remote, auth, operation, ...)
- **Retryable:** Whether the failed call may be attempted again
- **Retry-after:** How long the remote asked us to wait (rate limits)
- **Context:** Table, field, URL and HTTP status metadata
- **Cause:** Chained underlying exception

Manifesto:
    - **Typed Error Hierarchy:** Transport faults and reconciliation
      decisions are different things and look different
    - **Explicit Retry Semantics:** Each error knows if it's retryable
    - **Rich Context:** Errors carry metadata for logging
    - **Error Chaining:** Preserve original exceptions while adding context

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                      FieldSyncError                              │
        │  (category, retryable, retry_after, context, cause)             │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │  TransientError    RemoteError         AuthError                │
        │  (retryable=True)  (REMOTE)            (AUTH)                   │
        │       │                │                   │                     │
        │  NetworkError      RemoteNotFoundError AuthenticationError      │
        │  ServerError       RemoteValidation-   AuthorizationError       │
        │  RateLimitError      Error                                      │
        │                                                                  │
        │  ConfigError       FieldOperationError                          │
        │  (CONFIG)          (OPERATION)                                  │
        │                        │                                         │
        │                    InvalidOptionsError                          │
        │                    OperationCancelledError                      │
        │                    FieldNotFoundError                           │
        │                    ConfigurationMismatchError                   │
        └─────────────────────────────────────────────────────────────────┘

Examples:
    >>> error = RateLimitError(retry_after=5)
    >>> error.retryable
    True
    >>> FieldNotFoundError("Status", "app:tbl").retryable
    False

Guardrails:
    ❌ DON'T: Retry FieldNotFoundError or ConfigurationMismatchError
    ✅ DO: Treat them as decision outcomes and surface them to the caller

    ❌ DON'T: Swallow the original exception
    ✅ DO: Pass it as cause= for error chaining

Tags:
    error-handling, exception-hierarchy, retry-logic, fieldsync
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

import httpx

if TYPE_CHECKING:
    from fieldsync.models import ConfigurationDifference


class ErrorCategory(str, Enum):
    """
    Standard error categories for classification and routing.

    Categories are grouped by their typical retry behavior:
    - **Infrastructure (usually transient):** NETWORK, CACHE
    - **Remote service:** REMOTE
    - **Never retryable:** CONFIG, AUTH, VALIDATION
    - **Reconciliation outcomes:** OPERATION
    - **Internal:** INTERNAL, UNKNOWN
    """

    NETWORK = "NETWORK"           # Connection, timeout, 5xx, rate limit
    CACHE = "CACHE"               # Shared cache backend
    REMOTE = "REMOTE"             # Remote API rejected the request
    VALIDATION = "VALIDATION"     # Payload or option violations
    CONFIG = "CONFIG"             # Missing config, invalid settings
    AUTH = "AUTH"                 # Authentication, authorization
    OPERATION = "OPERATION"       # Reconciliation decisions and failures
    INTERNAL = "INTERNAL"         # Bugs, unexpected state
    UNKNOWN = "UNKNOWN"


@dataclass
class ErrorContext:
    """
    Structured metadata context for errors.

    Attributes:
        table: Table identity (``app_token:table_id``)
        field_name: Field being reconciled
        operation: Logical operation (lookup, create, update, ...)
        url: URL that was being accessed
        http_status: HTTP status code if applicable
        metadata: Additional key-value pairs
    """

    table: str | None = None
    field_name: str | None = None
    operation: str | None = None
    url: str | None = None
    http_status: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["table", "field_name", "operation", "url", "http_status"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class FieldSyncError(Exception):
    """
    Base exception for all fieldsync errors.

    Subclasses set ``default_category`` and ``default_retryable`` to give
    sensible defaults for their domain; callers may still override both.

    Examples:
        >>> error = FieldSyncError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.with_context(table="app:tbl").context.table
        'app:tbl'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        retry_after: float | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.retry_after = retry_after
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> FieldSyncError:
        """
        Add context to this error (fluent API).

        Usage:
            raise RemoteError("Rejected").with_context(table="app:tbl", http_status=400)
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        if self.retry_after is not None:
            result["retry_after"] = self.retry_after
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# TRANSIENT ERRORS (Retryable)
# =============================================================================


class TransientError(FieldSyncError):
    """
    Temporary error that may succeed on retry.

    Network failures, 5xx responses and rate limiting all land here. The
    retry executor retries these with exponential backoff.
    """

    default_category = ErrorCategory.NETWORK
    default_retryable = True


class NetworkError(TransientError):
    """Connection, DNS or read timeout talking to the remote API."""


class ServerError(TransientError):
    """Remote returned a 5xx-equivalent failure."""

    def __init__(self, message: str, *, status_code: int | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.status_code = status_code
        if status_code is not None:
            self.context.http_status = status_code


class RateLimitError(TransientError):
    """Rate limit exceeded."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        *,
        retry_after: float | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, retry_after=retry_after, **kwargs)


# =============================================================================
# REMOTE (FATAL) ERRORS
# =============================================================================


class RemoteError(FieldSyncError):
    """
    The remote API rejected a request.

    Not retryable: the same request will be rejected again.
    """

    default_category = ErrorCategory.REMOTE
    default_retryable = False

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        remote_code: int | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.status_code = status_code
        self.remote_code = remote_code
        if status_code is not None:
            self.context.http_status = status_code

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.remote_code is not None:
            result["remote_code"] = self.remote_code
        return result


class RemoteNotFoundError(RemoteError):
    """Table or field endpoint does not exist."""


class RemoteValidationError(RemoteError):
    """Remote refused the payload (bad field type, malformed property, ...)."""

    default_category = ErrorCategory.VALIDATION


class AuthError(RemoteError):
    """Authentication or authorization error."""

    default_category = ErrorCategory.AUTH


class AuthenticationError(AuthError):
    """Access token missing, expired or invalid."""


class AuthorizationError(AuthError):
    """Token is valid but lacks permission on the table."""


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigError(FieldSyncError):
    """
    Configuration error.

    Never retryable - configuration must be fixed.
    """

    default_category = ErrorCategory.CONFIG
    default_retryable = False


# =============================================================================
# FIELD OPERATION ERRORS
# =============================================================================


class FieldOperationError(FieldSyncError):
    """
    A field operation could not be completed.

    Raised for strategy misuse (``create_only`` against an existing field)
    and as the wrapper around gateway failures that survived every retry.

    Attributes:
        operation: Logical operation that failed (lookup, create, update, ...)
        field_name: Field being reconciled, when known
        retry_count: Retries spent before giving up
    """

    default_category = ErrorCategory.OPERATION
    default_retryable = False

    def __init__(
        self,
        message: str,
        operation: str,
        field_name: str | None = None,
        cause: BaseException | None = None,
        *,
        retry_count: int = 0,
        **kwargs: Any,
    ):
        super().__init__(message, cause=cause, **kwargs)
        self.operation = operation
        self.field_name = field_name
        self.retry_count = retry_count
        self.context.operation = operation
        if field_name is not None:
            self.context.field_name = field_name


class InvalidOptionsError(FieldOperationError):
    """Operation options are out of range or inconsistent."""

    default_category = ErrorCategory.VALIDATION

    def __init__(self, message: str, **kwargs: Any):
        super().__init__(message, "validate_options", **kwargs)


class OperationCancelledError(FieldOperationError):
    """Caller cancelled the operation or its deadline expired."""

    def __init__(self, message: str = "Operation cancelled", **kwargs: Any):
        super().__init__(message, "cancel", **kwargs)


class FieldNotFoundError(FieldSyncError):
    """``update_only`` targeted a field that does not exist."""

    default_category = ErrorCategory.OPERATION
    default_retryable = False

    def __init__(self, field_name: str, table: str, *, retry_count: int = 0):
        self.field_name = field_name
        self.table = table
        self.retry_count = retry_count
        super().__init__(
            f'Field "{field_name}" does not exist in table "{table}"',
            context=ErrorContext(table=table, field_name=field_name),
        )


class ConfigurationMismatchError(FieldSyncError):
    """Live field differs from the desired configuration under ``throw_error``."""

    default_category = ErrorCategory.OPERATION
    default_retryable = False

    def __init__(
        self,
        differences: list[ConfigurationDifference],
        field_name: str | None = None,
        *,
        retry_count: int = 0,
    ):
        self.differences = list(differences)
        self.field_name = field_name
        self.retry_count = retry_count
        super().__init__(
            f"Field configuration mismatch: {len(self.differences)} difference(s)",
            context=ErrorContext(field_name=field_name),
        )

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["differences"] = [d.property for d in self.differences]
        return result


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def is_retryable(error: BaseException) -> bool:
    """Check if an error is retryable.

    FieldSyncErrors answer for themselves. Raw transport failures that slip
    past a gateway (httpx transport errors, connection resets, builtin
    timeouts) are treated as network faults. Anything else is fatal.
    """
    if isinstance(error, FieldSyncError):
        return error.retryable
    return isinstance(error, (httpx.TransportError, ConnectionError, TimeoutError))


def get_retry_after(error: BaseException) -> float | None:
    """Get retry delay (seconds) from error, if specified."""
    if isinstance(error, FieldSyncError):
        return error.retry_after
    return None


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "FieldSyncError",
    # Transient
    "TransientError",
    "NetworkError",
    "ServerError",
    "RateLimitError",
    # Remote
    "RemoteError",
    "RemoteNotFoundError",
    "RemoteValidationError",
    "AuthError",
    "AuthenticationError",
    "AuthorizationError",
    # Config
    "ConfigError",
    # Field operations
    "FieldOperationError",
    "InvalidOptionsError",
    "OperationCancelledError",
    "FieldNotFoundError",
    "ConfigurationMismatchError",
    # Utilities
    "is_retryable",
    "get_retry_after",
]
