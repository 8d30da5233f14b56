"""Inventory record types and the parsers that build them from storage rows.

Rows arrive as loosely-typed JSON objects.  Enum-like columns are parsed into
closed ``StrEnum`` variants here, at the storage boundary, with an explicit
``Unrecognized`` fallback so an unexpected value never rejects a row.
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import TypeVar

from typing_extensions import TypedDict

logger = logging.getLogger(__name__)

EPOCH = datetime.fromtimestamp(0, UTC)
MASK = "••••••••"

E = TypeVar("E", bound=StrEnum)


@dataclass(frozen=True, slots=True)
class Unrecognized:
    """An enum-like column value outside the known set. Keeps the literal."""

    value: str


class Environment(StrEnum):
    PRODUCTION = "production"
    STAGING = "staging"
    DEVELOPMENT = "development"


class CredentialStatus(StrEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    EXPIRED = "expired"


class RiskLevel(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class AddressCategory(StrEnum):
    INTERNAL = "internal"
    EXTERNAL = "external"
    PARTNER = "partner"
    THREAT = "threat"


class RemoteAuthType(StrEnum):
    PASSWORD = "password"
    KEY = "key"
    KEY_WITH_PASSPHRASE = "key_with_passphrase"


class CredentialRecord(TypedDict):
    id: str
    name: str
    service: str
    environment: Environment | Unrecognized
    status: CredentialStatus | Unrecognized
    secret_value: str  # opaque, never interpreted
    last_rotated: datetime | None
    created_at: datetime
    created_by: str | None


class AddressRecord(TypedDict):
    id: str
    address: str  # opaque, not validated as IPv4/IPv6
    hostname: str | None
    location: str | None
    risk_level: RiskLevel | Unrecognized
    category: AddressCategory | Unrecognized
    notes: str | None
    last_seen: datetime | None
    created_at: datetime
    created_by: str | None


class RemoteAccessRecord(TypedDict):
    id: str
    name: str
    host: str
    port: int
    username: str
    auth_type: RemoteAuthType | Unrecognized
    description: str | None
    is_active: bool
    last_used: datetime | None
    created_at: datetime


def label(tag: StrEnum | Unrecognized) -> str:
    """Return the literal value of a parsed enum-like field."""
    if isinstance(tag, Unrecognized):
        return tag.value
    return str(tag)


# ---------------------------------------------------------------------------
# Field parsers
# ---------------------------------------------------------------------------


def _parse_tag(enum_cls: type[E], raw: object) -> E | Unrecognized:
    """Map a raw column value onto ``enum_cls``, falling back to Unrecognized."""
    if raw is None or raw == "":
        return Unrecognized("unknown")
    text = str(raw)
    try:
        return enum_cls(text)
    except ValueError:
        logger.debug("Unrecognized %s value %r", enum_cls.__name__, text)
        return Unrecognized(text)


def parse_timestamp(raw: object) -> datetime | None:
    """Parse an ISO 8601 timestamp. Naive values are assumed to be UTC."""
    if isinstance(raw, datetime):
        dt = raw
    elif isinstance(raw, str) and raw:
        try:
            dt = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        except ValueError:
            logger.debug("Unparseable timestamp %r", raw)
            return None
    else:
        return None
    return dt.replace(tzinfo=UTC) if dt.tzinfo is None else dt


def _str(row: dict[str, object], key: str) -> str:
    value = row.get(key)
    return "" if value is None else str(value)


def _opt_str(row: dict[str, object], key: str) -> str | None:
    value = row.get(key)
    return None if value is None else str(value)


def _created_at(row: dict[str, object]) -> datetime:
    return parse_timestamp(row.get("created_at")) or EPOCH


# ---------------------------------------------------------------------------
# Row parsers
# ---------------------------------------------------------------------------


def parse_credential(row: dict[str, object]) -> CredentialRecord:
    """Build a CredentialRecord from an ``api_keys`` row."""
    return CredentialRecord(
        id=_str(row, "id"),
        name=_str(row, "name"),
        service=_str(row, "service"),
        environment=_parse_tag(Environment, row.get("environment")),
        status=_parse_tag(CredentialStatus, row.get("status")),
        secret_value=_str(row, "key_value"),
        last_rotated=parse_timestamp(row.get("last_rotated")),
        created_at=_created_at(row),
        created_by=_opt_str(row, "created_by"),
    )


def parse_address(row: dict[str, object]) -> AddressRecord:
    """Build an AddressRecord from an ``ip_addresses`` row."""
    return AddressRecord(
        id=_str(row, "id"),
        address=_str(row, "ip_address"),
        hostname=_opt_str(row, "hostname"),
        location=_opt_str(row, "location"),
        risk_level=_parse_tag(RiskLevel, row.get("risk_level")),
        category=_parse_tag(AddressCategory, row.get("category")),
        notes=_opt_str(row, "notes"),
        last_seen=parse_timestamp(row.get("last_seen")),
        created_at=_created_at(row),
        created_by=_opt_str(row, "created_by"),
    )


def parse_remote_access(row: dict[str, object]) -> RemoteAccessRecord:
    """Build a RemoteAccessRecord from an ``ssh_credentials`` row.

    Secret columns (password, private key, passphrase) are deliberately not copied.
    """
    port = row.get("port")
    try:
        port_num = int(port) if port is not None else 22  # type: ignore[call-overload]
    except (TypeError, ValueError):
        port_num = 22
    return RemoteAccessRecord(
        id=_str(row, "id"),
        name=_str(row, "name"),
        host=_str(row, "host"),
        port=port_num,
        username=_str(row, "username"),
        auth_type=_parse_tag(RemoteAuthType, row.get("auth_type")),
        description=_opt_str(row, "description"),
        is_active=bool(row.get("is_active", True)),
        last_used=parse_timestamp(row.get("last_used")),
        created_at=_created_at(row),
    )


def mask_secret(value: str) -> str:
    """Mask a secret for display, keeping the first and last four characters."""
    if len(value) <= 8:
        return MASK
    return value[:4] + MASK + value[-4:]
