"""Integration tests for the storage client with mocked HTTP responses."""

import json
from typing import Any

import httpx
import pytest
import respx
from prometheus_client import REGISTRY

from src.storage.client import (
    ADDRESSES_TABLE,
    CREDENTIALS_TABLE,
    REMOTE_ACCESS_TABLE,
    StorageClient,
    StorageError,
)

BASE = "https://project.supabase.test/rest/v1"


@pytest.fixture(autouse=True)
def _use_mock_settings(mock_settings: Any) -> None:
    """Automatically use mock settings for all tests in this module."""


def _errors(table: str) -> float:
    return REGISTRY.get_sample_value("grc_portal_storage_errors_total", {"table": table}) or 0.0


@pytest.mark.integration
class TestListRows:
    @respx.mock
    async def test_returns_rows(self) -> None:
        respx.get(f"{BASE}/{CREDENTIALS_TABLE}").mock(
            return_value=httpx.Response(200, json=[{"id": "1", "name": "Stripe"}, {"id": "2", "name": "OpenAI"}])
        )

        rows = await StorageClient.from_settings("user-token").list_rows(CREDENTIALS_TABLE)
        assert [row["name"] for row in rows] == ["Stripe", "OpenAI"]

    @respx.mock
    async def test_sends_auth_headers(self) -> None:
        route = respx.get(f"{BASE}/{ADDRESSES_TABLE}").mock(return_value=httpx.Response(200, json=[]))

        await StorageClient.from_settings("user-token").list_rows(ADDRESSES_TABLE)

        request = route.calls[0].request
        assert request.headers["apikey"] == "anon-test-key"
        assert request.headers["authorization"] == "Bearer user-token"
        assert request.url.params["select"] == "*"
        assert "order" not in request.url.params

    @respx.mock
    async def test_anonymous_falls_back_to_api_key(self) -> None:
        route = respx.get(f"{BASE}/{ADDRESSES_TABLE}").mock(return_value=httpx.Response(200, json=[]))

        await StorageClient.from_settings().list_rows(ADDRESSES_TABLE)

        assert route.calls[0].request.headers["authorization"] == "Bearer anon-test-key"

    @respx.mock
    async def test_order_param(self) -> None:
        route = respx.get(f"{BASE}/{REMOTE_ACCESS_TABLE}").mock(return_value=httpx.Response(200, json=[]))

        await StorageClient.from_settings("t").list_rows(REMOTE_ACCESS_TABLE, order="created_at.desc")

        assert route.calls[0].request.url.params["order"] == "created_at.desc"

    @respx.mock
    async def test_http_error_raises(self) -> None:
        respx.get(f"{BASE}/{CREDENTIALS_TABLE}").mock(
            return_value=httpx.Response(401, json={"message": "JWT expired"})
        )
        before = _errors(CREDENTIALS_TABLE)

        with pytest.raises(StorageError, match="JWT expired") as exc_info:
            await StorageClient.from_settings("t").list_rows(CREDENTIALS_TABLE)

        assert exc_info.value.status_code == 401
        assert _errors(CREDENTIALS_TABLE) == before + 1

    @respx.mock
    async def test_connect_error_raises(self) -> None:
        respx.get(f"{BASE}/{CREDENTIALS_TABLE}").mock(side_effect=httpx.ConnectError("Connection refused"))

        with pytest.raises(StorageError, match="Connection refused") as exc_info:
            await StorageClient.from_settings("t").list_rows(CREDENTIALS_TABLE)

        assert exc_info.value.status_code is None

    @respx.mock
    async def test_timeout_raises(self) -> None:
        respx.get(f"{BASE}/{ADDRESSES_TABLE}").mock(side_effect=httpx.ReadTimeout("Read timed out"))

        with pytest.raises(StorageError):
            await StorageClient.from_settings("t").list_rows(ADDRESSES_TABLE)

    @respx.mock
    async def test_invalid_json_raises(self) -> None:
        respx.get(f"{BASE}/{ADDRESSES_TABLE}").mock(return_value=httpx.Response(200, text="<html>oops</html>"))

        with pytest.raises(StorageError, match="invalid JSON"):
            await StorageClient.from_settings("t").list_rows(ADDRESSES_TABLE)


@pytest.mark.integration
class TestWrites:
    @respx.mock
    async def test_insert_row(self) -> None:
        route = respx.post(f"{BASE}/{CREDENTIALS_TABLE}").mock(
            return_value=httpx.Response(201, json=[{"id": "new-id", "name": "Stripe"}])
        )

        stored = await StorageClient.from_settings("t").insert_row(CREDENTIALS_TABLE, {"name": "Stripe"})

        assert stored["id"] == "new-id"
        request = route.calls[0].request
        assert request.headers["prefer"] == "return=representation"
        assert json.loads(request.content) == [{"name": "Stripe"}]

    @respx.mock
    async def test_insert_rows(self) -> None:
        route = respx.post(f"{BASE}/{ADDRESSES_TABLE}").mock(return_value=httpx.Response(201, json=[{}, {}]))

        rows = await StorageClient.from_settings("t").insert_rows(ADDRESSES_TABLE, [{"a": 1}, {"a": 2}])

        assert len(rows) == 2
        assert json.loads(route.calls[0].request.content) == [{"a": 1}, {"a": 2}]

    @respx.mock
    async def test_delete_row(self) -> None:
        route = respx.delete(f"{BASE}/{REMOTE_ACCESS_TABLE}").mock(return_value=httpx.Response(204))

        await StorageClient.from_settings("t").delete_row(REMOTE_ACCESS_TABLE, "abc")

        assert route.calls[0].request.url.params["id"] == "eq.abc"

    @respx.mock
    async def test_update_row(self) -> None:
        route = respx.patch(f"{BASE}/{CREDENTIALS_TABLE}").mock(
            return_value=httpx.Response(200, json=[{"id": "abc", "status": "inactive"}])
        )

        row = await StorageClient.from_settings("t").update_row(CREDENTIALS_TABLE, "abc", {"status": "inactive"})

        assert row == {"id": "abc", "status": "inactive"}
        assert json.loads(route.calls[0].request.content) == {"status": "inactive"}

    @respx.mock
    async def test_update_invisible_row(self) -> None:
        respx.patch(f"{BASE}/{CREDENTIALS_TABLE}").mock(return_value=httpx.Response(200, json=[]))

        assert await StorageClient.from_settings("t").update_row(CREDENTIALS_TABLE, "abc", {}) is None


@pytest.mark.integration
class TestExists:
    @respx.mock
    async def test_filters(self) -> None:
        route = respx.get(f"{BASE}/{CREDENTIALS_TABLE}").mock(return_value=httpx.Response(200, json=[{"id": "1"}]))

        assert await StorageClient.from_settings("t").exists(CREDENTIALS_TABLE, created_by="user-1") is True

        params = route.calls[0].request.url.params
        assert params["created_by"] == "eq.user-1"
        assert params["limit"] == "1"

    @respx.mock
    async def test_no_rows(self) -> None:
        respx.get(f"{BASE}/{CREDENTIALS_TABLE}").mock(return_value=httpx.Response(200, json=[]))

        assert await StorageClient.from_settings("t").exists(CREDENTIALS_TABLE) is False


class TestWithToken:
    def test_rescoped_copy(self) -> None:
        client = StorageClient("https://x.test/", "key")
        scoped = client.with_token("abc")

        assert scoped is not client
        assert scoped.base_url == "https://x.test"
        assert scoped._headers()["Authorization"] == "Bearer abc"
        assert client._headers()["Authorization"] == "Bearer key"
