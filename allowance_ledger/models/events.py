"""
Ledger Event Models

Every change to the ledger, and every attempt to store or share it,
produces a LedgerEvent. Events are:
1. Written to the structured log by the AuditLogger
2. Delivered to subscribers of the ledger store (e.g. UI surfaces)

DESIGN DECISION: Events describe what already happened. Subscribers
cannot veto or alter a change by reacting to its event.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from allowance_ledger.models.account import Account, Transaction, TransactionKind


class LedgerEventType(str, Enum):
    """Types of events the ledger store emits."""
    # Accounts
    ACCOUNT_ADDED = "account_added"
    ACCOUNT_REMOVED = "account_removed"
    ACCOUNT_SETTINGS_UPDATED = "account_settings_updated"

    # Transactions
    TRANSACTION_RECORDED = "transaction_recorded"
    TRANSACTION_EDITED = "transaction_edited"
    TRANSACTION_DELETED = "transaction_deleted"
    TITHING_SETTLED = "tithing_settled"
    SAVINGS_SETTLED = "savings_settled"

    # Loading
    LEDGER_LOADED = "ledger_loaded"
    LOAD_FAILED = "load_failed"
    LOAD_SUPERSEDED = "load_superseded"

    # Persistence
    SNAPSHOT_PERSISTED = "snapshot_persisted"
    PERSIST_FAILED = "persist_failed"
    PERSIST_HELD = "persist_held"

    # Replication
    SNAPSHOT_PUSHED = "snapshot_pushed"
    PUSH_FAILED = "push_failed"
    SNAPSHOT_APPLIED = "snapshot_applied"
    SNAPSHOT_REJECTED = "snapshot_rejected"
    SNAPSHOT_IGNORED = "snapshot_ignored"

    # System events
    SUBSCRIBER_FAILED = "subscriber_failed"
    SYSTEM_ERROR = "system_error"


# Events that mean the in-memory ledger changed.
LEDGER_CHANGES = frozenset({
    LedgerEventType.ACCOUNT_ADDED,
    LedgerEventType.ACCOUNT_REMOVED,
    LedgerEventType.ACCOUNT_SETTINGS_UPDATED,
    LedgerEventType.TRANSACTION_RECORDED,
    LedgerEventType.TRANSACTION_EDITED,
    LedgerEventType.TRANSACTION_DELETED,
    LedgerEventType.TITHING_SETTLED,
    LedgerEventType.SAVINGS_SETTLED,
    LedgerEventType.LEDGER_LOADED,
    LedgerEventType.SNAPSHOT_APPLIED,
})


class LedgerEventSeverity(str, Enum):
    """Severity level for ledger events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class LedgerEvent(BaseModel):
    """
    A single ledger event.

    account_id and transaction_id are set when the event concerns one
    account or transaction.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: LedgerEventType = Field(
        ...,
        description="Type of event"
    )
    severity: LedgerEventSeverity = Field(
        default=LedgerEventSeverity.INFO,
        description="Event severity"
    )

    # Context
    account_id: Optional[str] = None
    transaction_id: Optional[str] = None

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )
    error_message: Optional[str] = None

    @property
    def changes_ledger(self) -> bool:
        """Did this event change the in-memory ledger?"""
        return self.event_type in LEDGER_CHANGES

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "account_id": self.account_id,
            "transaction_id": self.transaction_id,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


def _balances(account: Account) -> dict[str, str]:
    return {
        "balance": str(account.balance),
        "tithing_due": str(account.tithing_due),
        "savings_due": str(account.savings_due),
    }


class LedgerEventBuilder:
    """
    Helper class to build ledger events with common patterns.

    Usage:
        event = LedgerEventBuilder.account_added(account)
        event = LedgerEventBuilder.persist_failed(error_message)
    """

    @staticmethod
    def account_added(account: Account) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.ACCOUNT_ADDED,
            account_id=account.id,
            description=f"Account added: {account.name}",
            details={
                "birth_year": account.birth_year,
                "tithing_enabled": account.tithing_enabled,
                "savings_enabled": account.savings_enabled,
                "savings_rate": str(account.savings_rate),
            },
        )

    @staticmethod
    def account_removed(account: Account) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.ACCOUNT_REMOVED,
            account_id=account.id,
            description=f"Account removed: {account.name}",
            details={
                "transactions_discarded": len(account.transactions),
            },
        )

    @staticmethod
    def account_settings_updated(
        account: Account,
        changes: dict[str, Any],
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.ACCOUNT_SETTINGS_UPDATED,
            account_id=account.id,
            description=f"Settings updated for {account.name}",
            details={
                "changes": {field: str(value) for field, value in changes.items()},
                **_balances(account),
            },
        )

    @staticmethod
    def transaction_recorded(
        account: Account,
        transaction: Transaction,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.TRANSACTION_RECORDED,
            account_id=account.id,
            transaction_id=transaction.id,
            description=f"{transaction.kind.value} of {transaction.amount} for {account.name}",
            details={
                "kind": transaction.kind.value,
                "amount": str(transaction.amount),
                **_balances(account),
            },
        )

    @staticmethod
    def transaction_edited(
        account: Account,
        previous: Transaction,
        replacement: Transaction,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.TRANSACTION_EDITED,
            account_id=account.id,
            transaction_id=replacement.id,
            description=f"Transaction edited for {account.name}",
            details={
                "previous_kind": previous.kind.value,
                "previous_amount": str(previous.amount),
                "kind": replacement.kind.value,
                "amount": str(replacement.amount),
                **_balances(account),
            },
        )

    @staticmethod
    def transaction_deleted(
        account: Account,
        transaction: Transaction,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.TRANSACTION_DELETED,
            account_id=account.id,
            transaction_id=transaction.id,
            description=f"Transaction deleted for {account.name}",
            details={
                "kind": transaction.kind.value,
                "amount": str(transaction.amount),
                **_balances(account),
            },
        )

    @staticmethod
    def due_settled(
        account: Account,
        transaction: Transaction,
    ) -> LedgerEvent:
        event_type = (
            LedgerEventType.TITHING_SETTLED
            if transaction.kind == TransactionKind.TITHING_PAYMENT
            else LedgerEventType.SAVINGS_SETTLED
        )
        return LedgerEvent(
            event_type=event_type,
            account_id=account.id,
            transaction_id=transaction.id,
            description=f"{transaction.note} of {transaction.amount} for {account.name}",
            details={
                "amount": str(transaction.amount),
                **_balances(account),
            },
        )

    @staticmethod
    def ledger_loaded(account_count: int) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.LEDGER_LOADED,
            description=f"Ledger loaded with {account_count} accounts",
            details={
                "account_count": account_count,
            },
        )

    @staticmethod
    def load_failed(error_message: str) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.LOAD_FAILED,
            severity=LedgerEventSeverity.WARNING,
            description="Stored ledger could not be read; starting empty",
            error_message=error_message,
        )

    @staticmethod
    def load_superseded() -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.LOAD_SUPERSEDED,
            description="Stored ledger discarded; newer state arrived while loading",
        )

    @staticmethod
    def snapshot_persisted(size_bytes: int) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.SNAPSHOT_PERSISTED,
            severity=LedgerEventSeverity.DEBUG,
            description="Snapshot persisted",
            details={
                "size_bytes": size_bytes,
            },
        )

    @staticmethod
    def persist_failed(error_message: str) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.PERSIST_FAILED,
            severity=LedgerEventSeverity.ERROR,
            description="Snapshot could not be persisted",
            error_message=error_message,
        )

    @staticmethod
    def persist_held(schema_version: int) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.PERSIST_HELD,
            severity=LedgerEventSeverity.WARNING,
            description="Snapshot not persisted; storage holds a newer schema",
            details={
                "stored_schema_version": schema_version,
            },
        )

    @staticmethod
    def snapshot_pushed(size_bytes: int) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.SNAPSHOT_PUSHED,
            severity=LedgerEventSeverity.DEBUG,
            description="Snapshot pushed to peers",
            details={
                "size_bytes": size_bytes,
            },
        )

    @staticmethod
    def push_failed(error_message: str) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.PUSH_FAILED,
            severity=LedgerEventSeverity.WARNING,
            description="Snapshot could not be pushed to peers",
            error_message=error_message,
        )

    @staticmethod
    def snapshot_applied(
        origin: Optional[str],
        account_count: int,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.SNAPSHOT_APPLIED,
            description=f"Ledger replaced by snapshot from {origin or 'unknown peer'}",
            details={
                "origin": origin,
                "account_count": account_count,
            },
        )

    @staticmethod
    def snapshot_rejected(error_message: str) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.SNAPSHOT_REJECTED,
            severity=LedgerEventSeverity.WARNING,
            description="Incoming snapshot rejected; local ledger kept",
            error_message=error_message,
        )

    @staticmethod
    def snapshot_ignored(origin: str) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.SNAPSHOT_IGNORED,
            severity=LedgerEventSeverity.DEBUG,
            description="Incoming snapshot originated on this device",
            details={
                "origin": origin,
            },
        )

    @staticmethod
    def subscriber_failed(
        event: LedgerEvent,
        error_message: str,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.SUBSCRIBER_FAILED,
            severity=LedgerEventSeverity.ERROR,
            account_id=event.account_id,
            description=f"Subscriber failed while handling {event.event_type.value}",
            error_message=error_message,
            details={
                "event_id": str(event.event_id),
            },
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.SYSTEM_ERROR,
            severity=LedgerEventSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
        )
