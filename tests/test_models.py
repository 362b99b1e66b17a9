"""
Tests for Allowance Ledger data models.

Test strategy:
1. Unit tests for individual models (accounts, transactions, events)
2. Store-level behaviour lives in test_store.py
3. No real storage or network in tests
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from pydantic import ValidationError as PydanticValidationError

from allowance_ledger.models import (
    TITHING_RATE,
    Account,
    AccountSettings,
    LedgerEvent,
    LedgerEventBuilder,
    LedgerEventSeverity,
    LedgerEventType,
    Transaction,
    TransactionKind,
)


class TestTransaction:
    """Tests for the immutable Transaction model."""

    def test_transaction_creation(self):
        """Test Transaction model creation with defaults."""
        txn = Transaction(kind=TransactionKind.DEPOSIT, amount=Decimal("12.50"))
        assert txn.kind == TransactionKind.DEPOSIT
        assert txn.amount == Decimal("12.50")
        assert txn.note == ""
        assert txn.id
        assert txn.timestamp.tzinfo is not None

    def test_transaction_ids_are_unique(self):
        """Test that each transaction gets its own id."""
        first = Transaction(kind=TransactionKind.DEPOSIT, amount=Decimal("1"))
        second = Transaction(kind=TransactionKind.DEPOSIT, amount=Decimal("1"))
        assert first.id != second.id

    def test_transaction_is_frozen(self):
        """Test that a transaction cannot be changed in place."""
        txn = Transaction(kind=TransactionKind.DEPOSIT, amount=Decimal("5"))
        with pytest.raises(PydanticValidationError):
            txn.amount = Decimal("6")

    def test_transaction_rejects_negative_amount(self):
        """Test that negative amounts are rejected; the kind carries the sign."""
        with pytest.raises(ValueError):
            Transaction(kind=TransactionKind.WITHDRAWAL, amount=Decimal("-5"))

    def test_transaction_strips_note(self):
        """Test that whitespace is stripped from the note."""
        txn = Transaction(kind=TransactionKind.DEPOSIT, amount=Decimal("5"), note="  chores  ")
        assert txn.note == "chores"

    def test_naive_timestamp_is_utc(self):
        """Test that a naive timestamp is taken as UTC."""
        txn = Transaction(
            kind=TransactionKind.DEPOSIT,
            amount=Decimal("5"),
            timestamp=datetime(2024, 5, 1, 12, 0),
        )
        assert txn.timestamp == datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    def test_kind_wire_values(self):
        """Test the serialized names of every transaction kind."""
        assert [kind.value for kind in TransactionKind] == [
            "deposit",
            "withdrawal",
            "tithingPayment",
            "savingsWithdrawal",
        ]


class TestAccount:
    """Tests for the Account model and its derived properties."""

    def test_account_defaults(self):
        """Test Account model creation with defaults."""
        account = Account(name="Ada", birth_year=2015)
        assert account.tithing_enabled is True
        assert account.savings_enabled is False
        assert account.savings_rate == Decimal("0")
        assert account.balance == Decimal("0")
        assert account.transactions == []

    def test_tithing_rate_is_fixed_constant(self):
        """Test that the tithing rate is the named 10% constant."""
        assert TITHING_RATE == Decimal("0.10")
        assert Account.tithing_rate == TITHING_RATE
        assert "tithing_rate" not in Account(name="Ada", birth_year=2015).model_dump()

    def test_account_rejects_empty_name(self):
        """Test that a blank name is rejected after stripping."""
        with pytest.raises(ValueError):
            Account(name="   ", birth_year=2015)

    def test_account_rejects_savings_rate_above_one(self):
        """Test that savings rate is bounded to [0, 1]."""
        with pytest.raises(ValueError):
            Account(name="Ada", birth_year=2015, savings_rate=Decimal("1.5"))

    def test_account_rejects_duplicate_transaction_ids(self):
        """Test that transaction ids are unique within an account."""
        txn = Transaction(kind=TransactionKind.DEPOSIT, amount=Decimal("5"))
        with pytest.raises(ValueError):
            Account(name="Ada", birth_year=2015, transactions=[txn, txn])

    def test_net_balance(self):
        """Test that net balance subtracts both dues."""
        account = Account(
            name="Ada",
            birth_year=2015,
            balance=Decimal("100"),
            tithing_due=Decimal("10"),
            savings_due=Decimal("20"),
        )
        assert account.net_balance == Decimal("70")

    def test_age(self):
        """Test that age is the current year minus birth year."""
        this_year = datetime.now(timezone.utc).year
        account = Account(name="Ada", birth_year=this_year - 9)
        assert account.age == 9

    def test_effective_rates_follow_flags(self):
        """Test that disabled tithing or savings counts as a zero rate."""
        account = Account(
            name="Ada",
            birth_year=2015,
            tithing_enabled=False,
            savings_enabled=False,
            savings_rate=Decimal("0.25"),
        )
        assert account.effective_tithing_rate == Decimal("0")
        assert account.effective_savings_rate == Decimal("0")

        account.tithing_enabled = True
        account.savings_enabled = True
        assert account.effective_tithing_rate == Decimal("0.10")
        assert account.effective_savings_rate == Decimal("0.25")

    def test_sorted_transactions_newest_first_stable(self):
        """Test display order: newest first, ties keep log order."""
        base = datetime(2024, 1, 1, tzinfo=timezone.utc)
        oldest = Transaction(kind=TransactionKind.DEPOSIT, amount=Decimal("1"), timestamp=base)
        tie_first = Transaction(
            kind=TransactionKind.DEPOSIT, amount=Decimal("2"), timestamp=base + timedelta(days=1)
        )
        tie_second = Transaction(
            kind=TransactionKind.DEPOSIT, amount=Decimal("3"), timestamp=base + timedelta(days=1)
        )
        account = Account(
            name="Ada",
            birth_year=2015,
            transactions=[oldest, tie_first, tie_second],
        )

        assert [t.id for t in account.sorted_transactions] == [
            tie_first.id,
            tie_second.id,
            oldest.id,
        ]

    def test_settings_property(self):
        """Test the settings surface of an account."""
        account = Account(
            name="Ada",
            birth_year=2015,
            savings_enabled=True,
            savings_rate=Decimal("0.2"),
        )
        assert account.settings == AccountSettings(
            tithing_enabled=True,
            savings_enabled=True,
            savings_rate=Decimal("0.2"),
        )

    def test_find_transaction(self):
        """Test looking up a transaction by id."""
        txn = Transaction(kind=TransactionKind.DEPOSIT, amount=Decimal("5"))
        account = Account(name="Ada", birth_year=2015, transactions=[txn])
        assert account.find_transaction(txn.id) == txn
        assert account.find_transaction("missing") is None


class TestLedgerEvents:
    """Tests for ledger event models and builders."""

    def test_event_creation(self):
        """Test LedgerEvent model creation."""
        event = LedgerEvent(
            event_type=LedgerEventType.LEDGER_LOADED,
            description="Loaded",
        )
        assert event.event_id is not None
        assert event.severity == LedgerEventSeverity.INFO

    def test_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = LedgerEvent(
            event_type=LedgerEventType.PERSIST_FAILED,
            severity=LedgerEventSeverity.ERROR,
            description="Snapshot could not be persisted",
            error_message="disk full",
        )
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "persist_failed"
        assert log_dict["severity"] == "error"
        assert log_dict["error_message"] == "disk full"
        assert isinstance(log_dict["event_id"], str)

    def test_builder_transaction_recorded(self):
        """Test the transaction_recorded builder."""
        account = Account(name="Ada", birth_year=2015, balance=Decimal("5"))
        txn = Transaction(kind=TransactionKind.DEPOSIT, amount=Decimal("5"))

        event = LedgerEventBuilder.transaction_recorded(account, txn)

        assert event.event_type == LedgerEventType.TRANSACTION_RECORDED
        assert event.account_id == account.id
        assert event.transaction_id == txn.id
        assert event.details["amount"] == "5"
        assert event.details["balance"] == "5"
        assert event.changes_ledger

    def test_builder_due_settled_picks_type_from_kind(self):
        """Test that settlements report tithing and savings separately."""
        account = Account(name="Ada", birth_year=2015)
        tithing = Transaction(kind=TransactionKind.TITHING_PAYMENT, amount=Decimal("1"))
        savings = Transaction(kind=TransactionKind.SAVINGS_WITHDRAWAL, amount=Decimal("1"))

        assert LedgerEventBuilder.due_settled(account, tithing).event_type == (
            LedgerEventType.TITHING_SETTLED
        )
        assert LedgerEventBuilder.due_settled(account, savings).event_type == (
            LedgerEventType.SAVINGS_SETTLED
        )

    def test_failure_events_do_not_change_ledger(self):
        """Test that storage failures are not reported as ledger changes."""
        event = LedgerEventBuilder.push_failed("timeout")
        assert event.severity == LedgerEventSeverity.WARNING
        assert not event.changes_ledger
