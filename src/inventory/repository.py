"""Typed inventory operations over the storage client.

One repository per operator session.  Reads parse rows into records at this
boundary; writes take plain keyword arguments and stamp ``created_by`` with
the current operator when one is known.
"""

import logging
from datetime import UTC, datetime

from src.inventory.models import (
    AddressCategory,
    AddressRecord,
    CredentialRecord,
    CredentialStatus,
    Environment,
    RemoteAccessRecord,
    RemoteAuthType,
    RiskLevel,
    parse_address,
    parse_credential,
    parse_remote_access,
)
from src.storage.client import ADDRESSES_TABLE, CREDENTIALS_TABLE, REMOTE_ACCESS_TABLE, StorageClient

logger = logging.getLogger(__name__)

NEWEST_FIRST = "created_at.desc"


class InventoryRepository:
    """Credential, address and remote-access records visible to one session."""

    def __init__(self, storage: StorageClient, user_id: str | None = None) -> None:
        self.storage = storage
        self.user_id = user_id

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_credentials(self, order: str | None = None) -> list[CredentialRecord]:
        rows = await self.storage.list_rows(CREDENTIALS_TABLE, order=order)
        return [parse_credential(row) for row in rows]

    async def list_addresses(self, order: str | None = None) -> list[AddressRecord]:
        rows = await self.storage.list_rows(ADDRESSES_TABLE, order=order)
        return [parse_address(row) for row in rows]

    async def list_remote_access(self, order: str | None = NEWEST_FIRST) -> list[RemoteAccessRecord]:
        rows = await self.storage.list_rows(REMOTE_ACCESS_TABLE, order=order)
        return [parse_remote_access(row) for row in rows]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _owned(self, row: dict[str, object], owner_column: str = "created_by") -> dict[str, object]:
        if self.user_id:
            row[owner_column] = self.user_id
        return row

    async def add_credential(
        self,
        *,
        name: str,
        secret_value: str,
        service: str,
        environment: Environment = Environment.PRODUCTION,
        status: CredentialStatus = CredentialStatus.ACTIVE,
    ) -> CredentialRecord:
        row = self._owned(
            {
                "name": name,
                "key_value": secret_value,
                "service": service,
                "environment": str(environment),
                "status": str(status),
                "last_rotated": datetime.now(UTC).isoformat(),
            }
        )
        stored = await self.storage.insert_row(CREDENTIALS_TABLE, row)
        logger.info("Added credential %r for %s", name, service)
        return parse_credential(stored)

    async def add_address(
        self,
        *,
        address: str,
        hostname: str | None = None,
        location: str | None = None,
        risk_level: RiskLevel = RiskLevel.LOW,
        category: AddressCategory = AddressCategory.EXTERNAL,
        notes: str | None = None,
    ) -> AddressRecord:
        row = self._owned(
            {
                "ip_address": address,
                "hostname": hostname,
                "location": location,
                "risk_level": str(risk_level),
                "category": str(category),
                "notes": notes,
                "last_seen": datetime.now(UTC).isoformat(),
            }
        )
        stored = await self.storage.insert_row(ADDRESSES_TABLE, row)
        logger.info("Added address %s (%s risk)", address, risk_level)
        return parse_address(stored)

    async def add_remote_access(
        self,
        *,
        name: str,
        host: str,
        username: str,
        port: int = 22,
        auth_type: RemoteAuthType = RemoteAuthType.PASSWORD,
        password: str | None = None,
        private_key: str | None = None,
        passphrase: str | None = None,
        description: str | None = None,
    ) -> RemoteAccessRecord:
        """Store remote-access credentials. Only the secrets matching ``auth_type`` are sent."""
        row = self._owned(
            {
                "name": name,
                "host": host,
                "port": port,
                "username": username,
                "auth_type": str(auth_type),
                "password": password if auth_type == RemoteAuthType.PASSWORD else None,
                "private_key": private_key if auth_type != RemoteAuthType.PASSWORD else None,
                "passphrase": passphrase if auth_type == RemoteAuthType.KEY_WITH_PASSPHRASE else None,
                "description": description,
                "is_active": True,
            },
            owner_column="user_id",
        )
        stored = await self.storage.insert_row(REMOTE_ACCESS_TABLE, row)
        logger.info("Added remote access %r (%s@%s)", name, username, host)
        return parse_remote_access(stored)

    async def delete_credential(self, record_id: str) -> None:
        await self.storage.delete_row(CREDENTIALS_TABLE, record_id)

    async def delete_address(self, record_id: str) -> None:
        await self.storage.delete_row(ADDRESSES_TABLE, record_id)

    async def delete_remote_access(self, record_id: str) -> None:
        await self.storage.delete_row(REMOTE_ACCESS_TABLE, record_id)

    async def set_credential_status(self, record_id: str, status: CredentialStatus) -> CredentialRecord | None:
        updated = await self.storage.update_row(CREDENTIALS_TABLE, record_id, {"status": str(status)})
        return parse_credential(updated) if updated else None

    async def set_remote_access_active(self, record_id: str, is_active: bool) -> RemoteAccessRecord | None:
        updated = await self.storage.update_row(REMOTE_ACCESS_TABLE, record_id, {"is_active": is_active})
        return parse_remote_access(updated) if updated else None

    async def has_credentials(self) -> bool:
        """Whether the current operator already owns at least one credential."""
        if self.user_id:
            return await self.storage.exists(CREDENTIALS_TABLE, created_by=self.user_id)
        return await self.storage.exists(CREDENTIALS_TABLE)
