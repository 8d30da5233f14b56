"""Async client for the row-level-secured REST storage backend.

Talks to the backend's PostgREST endpoint (``/rest/v1/<table>``) with httpx.
Every request carries the project API key plus the operator's access token,
so the backend only returns and mutates rows visible to that session.  All
transport and HTTP failures surface as ``StorageError``.
"""

import logging

import httpx

from src.config import get_settings
from src.observability.metrics import STORAGE_ERRORS_TOTAL

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 15.0

CREDENTIALS_TABLE = "api_keys"
ADDRESSES_TABLE = "ip_addresses"
REMOTE_ACCESS_TABLE = "ssh_credentials"


class StorageError(Exception):
    """A storage read or write failed (network, auth, or HTTP error)."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class StorageClient:
    """Explicitly-passed handle to the storage backend for one session.

    Args:
        base_url: Backend project URL, e.g. ``https://xyz.supabase.co``.
        api_key: Project (anon) API key.
        access_token: Operator session token. Falls back to the API key, which
            the backend treats as an anonymous caller.
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport, used by tests.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        access_token: str | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._access_token = access_token
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, access_token: str | None = None) -> "StorageClient":
        """Build a client from application settings."""
        settings = get_settings()
        return cls(
            settings.supabase_url,
            settings.supabase_anon_key,
            access_token=access_token,
            timeout=settings.storage_timeout_seconds,
        )

    def with_token(self, access_token: str | None) -> "StorageClient":
        """Return a copy of this client scoped to a different session."""
        return StorageClient(
            self.base_url,
            self._api_key,
            access_token=access_token,
            timeout=self._timeout,
            transport=self._transport,
        )

    def _headers(self) -> dict[str, str]:
        return {
            "apikey": self._api_key,
            "Authorization": f"Bearer {self._access_token or self._api_key}",
            "Accept": "application/json",
        }

    async def _request(
        self,
        method: str,
        table: str,
        *,
        params: dict[str, str] | None = None,
        json: object = None,
        prefer: str | None = None,
    ) -> list[dict[str, object]]:
        """Send one request to ``/rest/v1/<table>`` and return the JSON rows."""
        headers = self._headers()
        if prefer:
            headers["Prefer"] = prefer
        url = f"{self.base_url}/rest/v1/{table}"

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.request(method, url, params=params, json=json, headers=headers)
                _ = resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            STORAGE_ERRORS_TOTAL.labels(table=table).inc()
            detail = _error_detail(exc.response)
            msg = f"{method} {table} failed: HTTP {exc.response.status_code} {detail}".rstrip()
            raise StorageError(msg, status_code=exc.response.status_code) from exc
        except httpx.HTTPError as exc:
            STORAGE_ERRORS_TOTAL.labels(table=table).inc()
            msg = f"{method} {table} failed: {exc}"
            raise StorageError(msg) from exc

        if not resp.content:
            return []
        try:
            body: object = resp.json()
        except ValueError as exc:
            STORAGE_ERRORS_TOTAL.labels(table=table).inc()
            msg = f"{method} {table} returned invalid JSON"
            raise StorageError(msg, status_code=resp.status_code) from exc
        if isinstance(body, list):
            return [row for row in body if isinstance(row, dict)]
        if isinstance(body, dict):
            return [body]
        return []

    # ------------------------------------------------------------------
    # Generic row operations
    # ------------------------------------------------------------------

    async def list_rows(self, table: str, order: str | None = None) -> list[dict[str, object]]:
        """Return every row of ``table`` visible to this session."""
        params = {"select": "*"}
        if order:
            params["order"] = order
        rows = await self._request("GET", table, params=params)
        logger.debug("Fetched %d rows from %s", len(rows), table)
        return rows

    async def insert_row(self, table: str, row: dict[str, object]) -> dict[str, object]:
        """Insert one row and return it as stored by the backend."""
        rows = await self._request("POST", table, json=[row], prefer="return=representation")
        return rows[0] if rows else dict(row)

    async def insert_rows(self, table: str, rows: list[dict[str, object]]) -> list[dict[str, object]]:
        """Insert several rows in one request."""
        return await self._request("POST", table, json=rows, prefer="return=representation")

    async def delete_row(self, table: str, row_id: str) -> None:
        """Delete the row with ``id = row_id``."""
        _ = await self._request("DELETE", table, params={"id": f"eq.{row_id}"})

    async def update_row(self, table: str, row_id: str, fields: dict[str, object]) -> dict[str, object] | None:
        """Update fields of the row with ``id = row_id``. Returns the updated row, if visible."""
        rows = await self._request(
            "PATCH",
            table,
            params={"id": f"eq.{row_id}"},
            json=fields,
            prefer="return=representation",
        )
        return rows[0] if rows else None

    async def exists(self, table: str, **filters: str) -> bool:
        """Check whether at least one visible row matches the equality filters."""
        params = {"select": "id", "limit": "1"}
        params.update({key: f"eq.{value}" for key, value in filters.items()})
        rows = await self._request("GET", table, params=params)
        return bool(rows)


def _error_detail(resp: httpx.Response) -> str:
    """Pull the backend's error message out of a failed response, if any."""
    try:
        body: object = resp.json()
    except ValueError:
        return resp.text[:200]
    if isinstance(body, dict):
        for key in ("message", "error_description", "msg", "error"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    return ""
