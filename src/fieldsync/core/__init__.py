"""
Core primitives: errors, structured logging, settings and cache backends.
"""

from fieldsync.core.cache import CacheBackend, InMemoryCache, RedisCache
from fieldsync.core.errors import (
    AuthenticationError,
    AuthorizationError,
    ConfigError,
    ConfigurationMismatchError,
    ErrorCategory,
    ErrorContext,
    FieldNotFoundError,
    FieldOperationError,
    FieldSyncError,
    InvalidOptionsError,
    NetworkError,
    OperationCancelledError,
    RateLimitError,
    RemoteError,
    RemoteNotFoundError,
    RemoteValidationError,
    ServerError,
    TransientError,
    get_retry_after,
    is_retryable,
)
from fieldsync.core.logging import LogContext, configure_logging, get_logger
from fieldsync.core.settings import FieldSyncSettings, get_settings

__all__ = [
    # cache
    "CacheBackend",
    "InMemoryCache",
    "RedisCache",
    # errors
    "ErrorCategory",
    "ErrorContext",
    "FieldSyncError",
    "TransientError",
    "NetworkError",
    "ServerError",
    "RateLimitError",
    "RemoteError",
    "RemoteNotFoundError",
    "RemoteValidationError",
    "AuthenticationError",
    "AuthorizationError",
    "ConfigError",
    "FieldOperationError",
    "InvalidOptionsError",
    "OperationCancelledError",
    "FieldNotFoundError",
    "ConfigurationMismatchError",
    "is_retryable",
    "get_retry_after",
    # logging
    "configure_logging",
    "get_logger",
    "LogContext",
    # settings
    "FieldSyncSettings",
    "get_settings",
]
