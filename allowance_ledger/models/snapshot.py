"""
Ledger Snapshot Format

A snapshot is the whole account collection, serialized to one blob.
The same bytes are written to storage and sent to peer devices.

Format (schema version 1):

    {
        "schema_version": 1,
        "origin": "<device id>",
        "saved_at": "<ISO-8601 UTC>",
        "children": [<account records with nested transactions>]
    }

Decimals are written as strings so amounts survive the round trip exactly.

DESIGN DECISION: The schema version is explicit. A blob written by newer
code is reported as UnsupportedSchemaVersion instead of being misread,
and the bare account array written by the first release of the app
(schema version 0) is migrated on read.
"""

import json
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Optional

from pydantic import BaseModel, Field, model_validator
from pydantic import ValidationError as PydanticValidationError

from allowance_ledger.models.account import Account, utc_now


SCHEMA_VERSION = 1

# Field holding the account collection, shared with the peer message format.
SNAPSHOT_FIELD = "children"

# Legacy snapshots store dates as seconds since this instant.
LEGACY_REFERENCE_DATE = datetime(2001, 1, 1, tzinfo=timezone.utc)

LEGACY_KINDS = {
    "savingsDeposit": "savingsWithdrawal",
}


class SnapshotError(Exception):
    """Blob is not a readable ledger snapshot."""
    pass


class UnsupportedSchemaVersion(SnapshotError):
    """Blob was written with a schema version this code does not know."""

    def __init__(self, version: int):
        self.version = version
        super().__init__(
            f"Snapshot schema version {version} is newer than supported "
            f"version {SCHEMA_VERSION}"
        )


class Snapshot(BaseModel):
    """The full account collection plus where and when it was written."""

    schema_version: int = Field(
        default=SCHEMA_VERSION,
        description="Format version of this snapshot"
    )
    origin: Optional[str] = Field(
        default=None,
        description="Device that wrote the snapshot"
    )
    saved_at: datetime = Field(
        default_factory=utc_now,
        description="When the snapshot was written (UTC)"
    )
    children: list[Account] = Field(default_factory=list)

    @model_validator(mode='after')
    def validate_unique_accounts(self) -> 'Snapshot':
        """Account ids are unique within a snapshot."""
        ids = [account.id for account in self.children]
        if len(ids) != len(set(ids)):
            raise ValueError("Duplicate account id in snapshot")
        return self


def encode_snapshot(
    accounts: Iterable[Account],
    origin: Optional[str] = None,
) -> bytes:
    """Serialize an account collection to a snapshot blob."""
    try:
        snapshot = Snapshot(origin=origin, children=list(accounts))
        return snapshot.model_dump_json().encode("utf-8")
    except (PydanticValidationError, ValueError, TypeError) as e:
        raise SnapshotError(f"Failed to serialize snapshot: {e}") from e


def decode_snapshot(blob: bytes) -> Snapshot:
    """
    Parse a snapshot blob.

    Raises:
        UnsupportedSchemaVersion: If the blob comes from newer code
        SnapshotError: If the blob is not a valid snapshot
    """
    try:
        payload = json.loads(blob)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise SnapshotError(f"Snapshot is not valid JSON: {e}") from e

    if isinstance(payload, list):
        payload = _migrate_legacy(payload)

    if not isinstance(payload, dict):
        raise SnapshotError("Snapshot must be a JSON object or array")

    version = payload.get("schema_version")
    if not isinstance(version, int) or isinstance(version, bool):
        raise SnapshotError("Snapshot has no schema_version")
    if version > SCHEMA_VERSION:
        raise UnsupportedSchemaVersion(version)
    if version < SCHEMA_VERSION:
        raise SnapshotError(f"Snapshot schema version {version} is not valid")

    if not isinstance(payload.get(SNAPSHOT_FIELD), list):
        raise SnapshotError(f"Snapshot has no '{SNAPSHOT_FIELD}' array")

    try:
        return Snapshot.model_validate(payload)
    except PydanticValidationError as e:
        raise SnapshotError(
            f"Snapshot failed validation with {e.error_count()} errors: {e}"
        ) from e


def check_snapshot(blob: bytes) -> None:
    """
    Raise SnapshotError if a stored blob is damaged.

    A blob from a newer schema passes: it is intact, just not readable by
    this version, and must not be passed over in favour of an older copy.
    """
    try:
        decode_snapshot(blob)
    except UnsupportedSchemaVersion:
        pass


# =============================================================================
# LEGACY (SCHEMA VERSION 0) MIGRATION
# =============================================================================

def _legacy_decimal(value: Any, field: str) -> Decimal:
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise SnapshotError(f"Legacy field '{field}' is not a number")
    try:
        number = Decimal(str(value))
    except InvalidOperation as e:
        raise SnapshotError(f"Legacy field '{field}' is not a number") from e
    if not number.is_finite():
        raise SnapshotError(f"Legacy field '{field}' is not finite")
    return number


def _legacy_timestamp(value: Any) -> Any:
    # Numeric dates count seconds from the legacy reference date.
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return LEGACY_REFERENCE_DATE + timedelta(seconds=value)
    return value


def _migrate_legacy_transaction(record: Any) -> dict:
    if not isinstance(record, dict):
        raise SnapshotError("Legacy transaction record must be an object")

    kind = record.get("type")
    return {
        "id": record.get("id"),
        "kind": LEGACY_KINDS.get(kind, kind),
        "amount": _legacy_decimal(record.get("amount"), "amount"),
        "note": record.get("note", ""),
        "timestamp": _legacy_timestamp(record.get("date")),
    }


def _migrate_legacy(records: list) -> dict:
    """
    Convert a schema version 0 account array to the current layout.

    Stored balances are dropped; the ledger store recomputes them.
    """
    children = []
    for record in records:
        if not isinstance(record, dict):
            raise SnapshotError("Legacy account record must be an object")

        transactions = record.get("transactions", [])
        if not isinstance(transactions, list):
            raise SnapshotError("Legacy 'transactions' must be an array")

        savings_rate = _legacy_decimal(
            record.get("savingsPercentage", 0), "savingsPercentage"
        )
        if savings_rate > 1:
            # Older builds stored a percentage rather than a fraction
            savings_rate = savings_rate / 100

        children.append({
            "id": record.get("id"),
            "name": record.get("name"),
            "birth_year": record.get("birthYear"),
            "tithing_enabled": record.get("isTithingEnabled", True),
            "savings_enabled": record.get("isSavingsEnabled", False),
            "savings_rate": savings_rate,
            "transactions": [
                _migrate_legacy_transaction(transaction)
                for transaction in transactions
            ],
        })

    return {
        "schema_version": SCHEMA_VERSION,
        SNAPSHOT_FIELD: children,
    }
