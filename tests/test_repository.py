"""Tests for the inventory repository and demo seeding."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.inventory.models import CredentialStatus, RemoteAuthType, RiskLevel
from src.inventory.repository import NEWEST_FIRST, InventoryRepository
from src.inventory.seed import demo_addresses, demo_credentials, seed_demo_data
from src.storage.client import (
    ADDRESSES_TABLE,
    CREDENTIALS_TABLE,
    REMOTE_ACCESS_TABLE,
    StorageClient,
    StorageError,
)
from tests.factories import BASE_TIME


@pytest.fixture
def storage() -> MagicMock:
    mock = MagicMock(spec=StorageClient)
    mock.list_rows = AsyncMock(return_value=[])
    mock.insert_row = AsyncMock(side_effect=lambda table, row: {"id": "new-id", **row})
    mock.insert_rows = AsyncMock(side_effect=lambda table, rows: rows)
    mock.delete_row = AsyncMock(return_value=None)
    mock.update_row = AsyncMock(return_value=None)
    mock.exists = AsyncMock(return_value=False)
    return mock


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


class TestReads:
    async def test_list_credentials_parses_rows(self, storage: MagicMock) -> None:
        storage.list_rows.return_value = [
            {"id": "1", "name": "Stripe", "service": "Stripe", "environment": "production", "status": "expired"}
        ]

        records = await InventoryRepository(storage).list_credentials()

        storage.list_rows.assert_awaited_once_with(CREDENTIALS_TABLE, order=None)
        assert records[0]["status"] is CredentialStatus.EXPIRED

    async def test_list_addresses_parses_rows(self, storage: MagicMock) -> None:
        storage.list_rows.return_value = [{"id": "1", "ip_address": "10.0.0.1", "risk_level": "high"}]

        records = await InventoryRepository(storage).list_addresses()

        storage.list_rows.assert_awaited_once_with(ADDRESSES_TABLE, order=None)
        assert records[0]["address"] == "10.0.0.1"
        assert records[0]["risk_level"] is RiskLevel.HIGH

    async def test_remote_access_newest_first(self, storage: MagicMock) -> None:
        await InventoryRepository(storage).list_remote_access()
        storage.list_rows.assert_awaited_once_with(REMOTE_ACCESS_TABLE, order=NEWEST_FIRST)

    async def test_storage_error_propagates(self, storage: MagicMock) -> None:
        storage.list_rows.side_effect = StorageError("boom")

        with pytest.raises(StorageError):
            await InventoryRepository(storage).list_credentials()


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------


class TestWrites:
    async def test_add_credential_stamps_owner(self, storage: MagicMock) -> None:
        repo = InventoryRepository(storage, user_id="user-1")

        record = await repo.add_credential(name="Stripe", secret_value="rk_live_x", service="Stripe")

        table, row = storage.insert_row.await_args.args
        assert table == CREDENTIALS_TABLE
        assert row["created_by"] == "user-1"
        assert row["key_value"] == "rk_live_x"
        assert row["environment"] == "production"
        assert row["status"] == "active"
        assert record["id"] == "new-id"

    async def test_add_address_without_user(self, storage: MagicMock) -> None:
        await InventoryRepository(storage).add_address(address="203.0.113.7", risk_level=RiskLevel.CRITICAL)

        table, row = storage.insert_row.await_args.args
        assert table == ADDRESSES_TABLE
        assert "created_by" not in row
        assert row["ip_address"] == "203.0.113.7"
        assert row["risk_level"] == "critical"
        assert row["category"] == "external"

    async def test_add_remote_access_password(self, storage: MagicMock) -> None:
        repo = InventoryRepository(storage, user_id="user-1")

        record = await repo.add_remote_access(
            name="bastion",
            host="bastion.internal",
            username="ops",
            password="pw",
            private_key="ignored",
        )

        table, row = storage.insert_row.await_args.args
        assert table == REMOTE_ACCESS_TABLE
        assert row["user_id"] == "user-1"
        assert row["password"] == "pw"
        assert row["private_key"] is None
        assert row["passphrase"] is None
        assert "password" not in record

    async def test_add_remote_access_key(self, storage: MagicMock) -> None:
        await InventoryRepository(storage).add_remote_access(
            name="db",
            host="db.internal",
            username="ops",
            auth_type=RemoteAuthType.KEY,
            password="ignored",
            private_key="KEY",
            passphrase="ignored",
        )

        _, row = storage.insert_row.await_args.args
        assert row["password"] is None
        assert row["private_key"] == "KEY"
        assert row["passphrase"] is None

    async def test_delete(self, storage: MagicMock) -> None:
        repo = InventoryRepository(storage)

        await repo.delete_credential("c1")
        await repo.delete_address("a1")
        await repo.delete_remote_access("s1")

        assert [call.args for call in storage.delete_row.await_args_list] == [
            (CREDENTIALS_TABLE, "c1"),
            (ADDRESSES_TABLE, "a1"),
            (REMOTE_ACCESS_TABLE, "s1"),
        ]

    async def test_set_credential_status(self, storage: MagicMock) -> None:
        storage.update_row.return_value = {"id": "c1", "status": "expired"}

        record = await InventoryRepository(storage).set_credential_status("c1", CredentialStatus.EXPIRED)

        storage.update_row.assert_awaited_once_with(CREDENTIALS_TABLE, "c1", {"status": "expired"})
        assert record is not None
        assert record["status"] is CredentialStatus.EXPIRED

    async def test_set_remote_access_active_invisible(self, storage: MagicMock) -> None:
        assert await InventoryRepository(storage).set_remote_access_active("s1", False) is None

    async def test_has_credentials_filters_by_owner(self, storage: MagicMock) -> None:
        storage.exists.return_value = True

        assert await InventoryRepository(storage, user_id="user-1").has_credentials()
        storage.exists.assert_awaited_once_with(CREDENTIALS_TABLE, created_by="user-1")


# ---------------------------------------------------------------------------
# Demo seeding
# ---------------------------------------------------------------------------


class TestSeedDemoData:
    def test_demo_rows(self) -> None:
        credentials = demo_credentials(BASE_TIME)
        addresses = demo_addresses(BASE_TIME)

        assert len(credentials) == 4
        assert len(addresses) == 6
        assert sorted(row["risk_level"] for row in addresses).count("low") == 3
        assert {row["environment"] for row in credentials} == {"production", "development", "staging"}

    async def test_seeds_new_operator(self, storage: MagicMock) -> None:
        inserted = await seed_demo_data(InventoryRepository(storage, user_id="user-1"))

        assert inserted is True
        tables = [call.args[0] for call in storage.insert_rows.await_args_list]
        assert tables == [CREDENTIALS_TABLE, ADDRESSES_TABLE]
        for call in storage.insert_rows.await_args_list:
            assert all(row["created_by"] == "user-1" for row in call.args[1])

    async def test_skips_existing_operator(self, storage: MagicMock) -> None:
        storage.exists.return_value = True

        assert await seed_demo_data(InventoryRepository(storage, user_id="user-1")) is False
        storage.insert_rows.assert_not_awaited()

    async def test_insert_failure_propagates(self, storage: MagicMock) -> None:
        storage.insert_rows.side_effect = StorageError("insert failed")

        with pytest.raises(StorageError):
            await seed_demo_data(InventoryRepository(storage))
