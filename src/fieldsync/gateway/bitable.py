"""HTTP gateway for Feishu/Lark Bitable field endpoints (httpx).

Endpoints::

    GET  /open-apis/bitable/v1/apps/{app}/tables/{table}/fields?page_size=&page_token=
    POST /open-apis/bitable/v1/apps/{app}/tables/{table}/fields
    PUT  /open-apis/bitable/v1/apps/{app}/tables/{table}/fields/{field_id}

Every response is an envelope ``{"code": 0, "msg": "success", "data": {...}}``;
a non-zero ``code`` is a failure even on HTTP 200.

Error classification (what the retry executor sees):

    ============================  ==========================  =========
    condition                     raised                      retryable
    ============================  ==========================  =========
    connect/read/DNS failure      NetworkError                yes
    HTTP 429 or code 1254         RateLimitError              yes
    HTTP >= 500                   ServerError                 yes
    HTTP 401 or token codes       AuthenticationError         no
    HTTP 403                      AuthorizationError          no
    HTTP 404                      RemoteNotFoundError         no
    anything else                 RemoteValidationError       no
    ============================  ==========================  =========

Token acquisition is outside this module: pass a ``token_provider`` callable
returning a bearer token; it is called once per request so refreshed tokens
are picked up.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import httpx

from fieldsync.core.errors import (
    AuthenticationError,
    AuthorizationError,
    FieldSyncError,
    NetworkError,
    RateLimitError,
    RemoteError,
    RemoteNotFoundError,
    RemoteValidationError,
    ServerError,
)
from fieldsync.core.logging import get_logger
from fieldsync.models import FieldConfiguration, FieldDescriptor, TableRef

logger = get_logger(__name__)

DEFAULT_BASE_URL = "https://open.feishu.cn"
RATE_LIMIT_CODE = 1254
TOKEN_ERROR_CODES = frozenset({99991663, 99991664, 99991665})


def _retry_after(response: httpx.Response) -> float | None:
    value = response.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _request_url(response: httpx.Response) -> str | None:
    try:
        return str(response.request.url)
    except RuntimeError:
        # Response built without a request (unit tests, replayed fixtures)
        return None


def classify_response(response: httpx.Response, payload: Any) -> FieldSyncError | None:
    """Map an HTTP response (and its decoded envelope) to an error, if any."""
    remote_code = payload.get("code") if isinstance(payload, dict) else None
    msg = payload.get("msg") if isinstance(payload, dict) else None
    status = response.status_code

    if status < 400 and remote_code == 0:
        return None

    detail = f"[{remote_code}] {msg}" if remote_code is not None else response.reason_phrase
    message = f"Bitable API error {status}: {detail}"
    url = _request_url(response)

    error: FieldSyncError
    if status == 429 or remote_code == RATE_LIMIT_CODE:
        error = RateLimitError(message, retry_after=_retry_after(response))
    elif status >= 500:
        error = ServerError(message, status_code=status)
    elif status == 401 or remote_code in TOKEN_ERROR_CODES:
        error = AuthenticationError(message, status_code=status, remote_code=remote_code)
    elif status == 403:
        error = AuthorizationError(message, status_code=status, remote_code=remote_code)
    elif status == 404:
        error = RemoteNotFoundError(message, status_code=status, remote_code=remote_code)
    elif remote_code is None and status < 400:
        error = RemoteError(f"Bitable API returned an unexpected body (HTTP {status})")
    else:
        error = RemoteValidationError(message, status_code=status, remote_code=remote_code)
    return error.with_context(url=url, http_status=status)


class BitableFieldGateway:
    """:class:`~fieldsync.gateway.base.RemoteFieldGateway` over the Bitable REST API.

    Example:
        with BitableFieldGateway(lambda: token) as gateway:
            fields = gateway.list_fields(TableRef(app_token="bascn...", table_id="tbl..."))
    """

    def __init__(
        self,
        token_provider: Callable[[], str],
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 60.0,
        page_size: int = 100,
        client: httpx.Client | None = None,
    ) -> None:
        self._token_provider = token_provider
        self._page_size = page_size
        self._owns_client = client is None
        self._client = client or httpx.Client(base_url=base_url, timeout=timeout)

    # ── Lifecycle ────────────────────────────────────────────────────

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> BitableFieldGateway:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    # ── Gateway protocol ─────────────────────────────────────────────

    def list_fields(self, table: TableRef) -> list[FieldDescriptor]:
        fields: list[FieldDescriptor] = []
        page_token: str | None = None
        while True:
            params: dict[str, Any] = {"page_size": self._page_size}
            if page_token:
                params["page_token"] = page_token
            data = self._request("GET", self._fields_path(table), params=params)
            fields.extend(FieldDescriptor.model_validate(item) for item in data.get("items") or [])
            page_token = data.get("page_token")
            if not data.get("has_more") or not page_token:
                break
        logger.debug("bitable.fields_listed", table=table.key, count=len(fields))
        return fields

    def create_field(self, table: TableRef, config: FieldConfiguration) -> FieldDescriptor:
        data = self._request("POST", self._fields_path(table), json=config.to_payload())
        field = FieldDescriptor.model_validate(data["field"])
        logger.info("bitable.field_created", table=table.key, field=field.name, field_id=field.id)
        return field

    def update_field(
        self,
        table: TableRef,
        field_id: str,
        config: FieldConfiguration,
    ) -> FieldDescriptor:
        data = self._request(
            "PUT",
            f"{self._fields_path(table)}/{field_id}",
            json=config.to_payload(),
        )
        field = FieldDescriptor.model_validate(data["field"])
        logger.info("bitable.field_updated", table=table.key, field=field.name, field_id=field.id)
        return field

    # ── Internals ────────────────────────────────────────────────────

    @staticmethod
    def _fields_path(table: TableRef) -> str:
        return f"/open-apis/bitable/v1/apps/{table.app_token}/tables/{table.table_id}/fields"

    def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        headers = {"Authorization": f"Bearer {self._token_provider()}"}
        try:
            response = self._client.request(method, path, headers=headers, **kwargs)
        except httpx.TransportError as e:
            raise NetworkError(f"{method} {path} failed: {e}", cause=e).with_context(url=path) from e

        try:
            payload = response.json()
        except ValueError:
            payload = None

        error = classify_response(response, payload)
        if error is not None:
            logger.warning(
                "bitable.request_failed",
                method=method,
                path=path,
                status=response.status_code,
                error_type=type(error).__name__,
                retryable=error.retryable,
            )
            raise error
        return payload.get("data") or {}


__all__ = ["BitableFieldGateway", "classify_response", "DEFAULT_BASE_URL"]
