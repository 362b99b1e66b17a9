"""
Core Data Models for Allowance Ledger

These models define the strict schemas for every record the ledger keeps.
They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Serialize exactly (Decimals as strings, UTC timestamps) for snapshots
4. Keep derived balances separate from the facts they are derived from

DESIGN DECISION: A Transaction is immutable. Editing one means replacing it
with a new record that keeps the original id and timestamp.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import ClassVar, Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


def new_id() -> str:
    """Generate an opaque identifier for accounts and transactions."""
    return str(uuid4())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionKind(str, Enum):
    """
    Kinds of ledger events.

    The amount of a transaction is never negative; the kind decides
    whether it adds to or subtracts from the balance.
    """
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    TITHING_PAYMENT = "tithingPayment"
    SAVINGS_WITHDRAWAL = "savingsWithdrawal"


# Fixed share of every deposit set aside for tithing.
TITHING_RATE = Decimal("0.10")


# =============================================================================
# TRANSACTION
# =============================================================================

class Transaction(BaseModel):
    """
    One immutable ledger event.

    CRITICAL: Never mutate a Transaction. The ledger store replaces it
    wholesale when the user edits it.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: str = Field(
        default_factory=new_id,
        min_length=1,
        description="Unique transaction ID"
    )
    kind: TransactionKind = Field(
        ...,
        description="What kind of event this is"
    )
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Amount in currency units (sign implied by kind)"
    )
    note: str = Field(
        default="",
        max_length=500,
        description="Free-text description, display only"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the transaction was created (UTC)"
    )

    @field_validator('timestamp')
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        """Naive timestamps are taken to be UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)


# =============================================================================
# ACCOUNT
# =============================================================================

class AccountSettings(BaseModel):
    """
    Account-level options exposed to callers.

    Each option changes derived balances. A savings rate change also
    applies to deposits that were already made.
    """

    tithing_enabled: bool
    savings_enabled: bool
    savings_rate: Decimal = Field(ge=0, le=1)


class Account(BaseModel):
    """
    One child's ledger: settings, transaction log and derived balances.

    balance, tithing_due and savings_due are written only by the ledger
    store's recomputation. They are stored in snapshots for convenience but
    are recomputed from the transaction log whenever a snapshot is read.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    tithing_rate: ClassVar[Decimal] = TITHING_RATE

    # Identity
    id: str = Field(
        default_factory=new_id,
        min_length=1,
        description="Unique account ID"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Display name"
    )
    birth_year: int = Field(
        ...,
        description="Birth year, used for age and sort order only"
    )

    # Transaction log
    transactions: list[Transaction] = Field(default_factory=list)

    # Settings
    tithing_enabled: bool = True
    savings_enabled: bool = False
    savings_rate: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        le=1,
        description="Fraction of deposits set aside for savings"
    )

    # Derived balances
    balance: Decimal = Decimal("0")
    tithing_due: Decimal = Decimal("0")
    savings_due: Decimal = Decimal("0")

    @model_validator(mode='after')
    def validate_unique_transactions(self) -> 'Account':
        """Transaction ids are unique within an account."""
        seen = set()
        for transaction in self.transactions:
            if transaction.id in seen:
                raise ValueError(f"Duplicate transaction id: {transaction.id}")
            seen.add(transaction.id)
        return self

    @property
    def effective_tithing_rate(self) -> Decimal:
        return self.tithing_rate if self.tithing_enabled else Decimal("0")

    @property
    def effective_savings_rate(self) -> Decimal:
        return self.savings_rate if self.savings_enabled else Decimal("0")

    @property
    def net_balance(self) -> Decimal:
        """Spendable money once tithing and savings are set aside."""
        return self.balance - self.tithing_due - self.savings_due

    @property
    def age(self) -> int:
        return utc_now().year - self.birth_year

    @property
    def sorted_transactions(self) -> list[Transaction]:
        """Newest first; transactions with equal timestamps keep log order."""
        return sorted(self.transactions, key=lambda t: t.timestamp, reverse=True)

    @property
    def settings(self) -> AccountSettings:
        return AccountSettings(
            tithing_enabled=self.tithing_enabled,
            savings_enabled=self.savings_enabled,
            savings_rate=self.savings_rate,
        )

    def find_transaction(self, transaction_id: str) -> Optional[Transaction]:
        for transaction in self.transactions:
            if transaction.id == transaction_id:
                return transaction
        return None


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single problem found with caller input."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'out_of_range', 'invalid_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
