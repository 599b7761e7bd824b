"""Environment-driven settings for fieldsync.

All values can be set through ``FIELDSYNC_*`` environment variables or a
``.env`` file in the working directory.

Fields
──────
base_url                 : Remote API root (Feishu/Lark open platform)
access_token             : Bearer token for the gateway (acquisition is external)
request_timeout_seconds  : Per-request HTTP timeout
page_size                : Page size for field listing
cache_backend            : ``memory`` or ``redis``
redis_url                : Redis URL when cache_backend is ``redis``
cache_ttl_seconds        : Lifetime of a cached table schema snapshot
max_retries              : Default attempts for gateway calls (0-5)
retry_base_delay_ms      : First backoff delay; doubles per attempt
operation_delay_ms       : Pause between batch items (0-10000)
log_level / json_logs    : Logging configuration
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class FieldSyncSettings(BaseSettings):
    """Settings shared by the CLI and :func:`fieldsync.factory.build_engine`."""

    model_config = SettingsConfigDict(
        env_prefix="FIELDSYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Remote API ───────────────────────────────────────────────
    base_url: str = "https://open.feishu.cn"
    access_token: str | None = None
    request_timeout_seconds: float = Field(default=60.0, gt=0)
    page_size: int = Field(default=100, ge=1, le=500)

    # ── Cache ────────────────────────────────────────────────────
    cache_backend: Literal["memory", "redis"] = "memory"
    redis_url: str = "redis://localhost:6379/0"
    cache_ttl_seconds: int = Field(default=3600, ge=1)

    # ── Reconciliation defaults ──────────────────────────────────
    max_retries: int = Field(default=3, ge=0, le=5)
    retry_base_delay_ms: int = Field(default=1000, ge=0)
    operation_delay_ms: int = Field(default=1000, ge=0, le=10_000)

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    json_logs: bool | None = None


@lru_cache(maxsize=1)
def get_settings() -> FieldSyncSettings:
    """Return the process-wide settings, loaded once from the environment."""
    return FieldSyncSettings()


__all__ = ["FieldSyncSettings", "get_settings"]
