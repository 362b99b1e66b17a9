"""
Data Models Package

This package contains all Pydantic models used by the Allowance Ledger.
Every record the ledger stores or shares must conform to these schemas.
"""

from allowance_ledger.models.account import (
    TITHING_RATE,
    Account,
    AccountSettings,
    Transaction,
    TransactionKind,
    ValidationIssue,
)
from allowance_ledger.models.events import (
    LedgerEvent,
    LedgerEventBuilder,
    LedgerEventSeverity,
    LedgerEventType,
)
from allowance_ledger.models.snapshot import (
    SCHEMA_VERSION,
    SNAPSHOT_FIELD,
    Snapshot,
    SnapshotError,
    UnsupportedSchemaVersion,
    check_snapshot,
    decode_snapshot,
    encode_snapshot,
)

__all__ = [
    # Ledger models
    "TITHING_RATE",
    "Account",
    "AccountSettings",
    "Transaction",
    "TransactionKind",
    "ValidationIssue",
    # Event models
    "LedgerEvent",
    "LedgerEventBuilder",
    "LedgerEventSeverity",
    "LedgerEventType",
    # Snapshot format
    "SCHEMA_VERSION",
    "SNAPSHOT_FIELD",
    "Snapshot",
    "SnapshotError",
    "UnsupportedSchemaVersion",
    "check_snapshot",
    "decode_snapshot",
    "encode_snapshot",
]
