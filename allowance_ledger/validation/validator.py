"""
Ledger Input Validation

DESIGN DECISION: Every check runs before the ledger is touched, and all
problems with one request are collected and reported together. A
rejected request leaves the ledger exactly as it was.

Values are normalized on the way through: amounts and rates become
Decimal (floats go through str() so 0.1 stays 0.1), and transaction
kinds given as strings become TransactionKind.

IMPORTANT: Validation NEVER silently fixes bad input. Out-of-range values
are rejected, not clamped.
"""

from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Union

from allowance_ledger.config import LedgerSettings, get_settings
from allowance_ledger.errors import ValidationError
from allowance_ledger.models.account import TransactionKind, ValidationIssue


MAX_NAME_LENGTH = 100
MAX_NOTE_LENGTH = 500

Number = Union[Decimal, int, float, str]


class LedgerValidator:
    """
    Validates caller input for ledger operations.

    Each public validate_* method either returns normalized values or
    raises ValidationError listing every issue found.
    """

    def __init__(self, settings: Optional[LedgerSettings] = None):
        self._settings = settings or get_settings().ledger

    # -------------------------------------------------------------------------
    # Field checks
    # -------------------------------------------------------------------------

    def _to_decimal(
        self,
        value: Any,
        field: str,
        issues: list[ValidationIssue],
    ) -> Optional[Decimal]:
        if isinstance(value, bool) or not isinstance(value, (Decimal, int, float, str)):
            issues.append(ValidationIssue(
                field=field,
                issue_type="invalid_value",
                message=f"{field} must be a number",
            ))
            return None

        try:
            number = value if isinstance(value, Decimal) else Decimal(str(value).strip())
        except InvalidOperation:
            number = None

        if number is None or not number.is_finite():
            issues.append(ValidationIssue(
                field=field,
                issue_type="invalid_value",
                message=f"{field} must be a finite number, got {value!r}",
            ))
            return None
        return number

    def _check_name(self, name: Any, issues: list[ValidationIssue]) -> Optional[str]:
        if not isinstance(name, str) or not name.strip():
            issues.append(ValidationIssue(
                field="name",
                issue_type="missing",
                message="Name is required",
            ))
            return None

        name = name.strip()
        if len(name) > MAX_NAME_LENGTH:
            issues.append(ValidationIssue(
                field="name",
                issue_type="too_long",
                message=f"Name must be at most {MAX_NAME_LENGTH} characters",
            ))
            return None
        return name

    def _check_birth_year(self, birth_year: Any, issues: list[ValidationIssue]) -> None:
        if isinstance(birth_year, bool) or not isinstance(birth_year, int):
            issues.append(ValidationIssue(
                field="birth_year",
                issue_type="invalid_value",
                message="Birth year must be a whole number",
            ))
            return

        earliest = self._settings.min_birth_year
        latest = date.today().year
        if not earliest <= birth_year <= latest:
            issues.append(ValidationIssue(
                field="birth_year",
                issue_type="out_of_range",
                message=f"Birth year must be between {earliest} and {latest}, got {birth_year}",
            ))

    def _check_flag(self, value: Any, field: str, issues: list[ValidationIssue]) -> None:
        if not isinstance(value, bool):
            issues.append(ValidationIssue(
                field=field,
                issue_type="invalid_value",
                message=f"{field} must be true or false",
            ))

    def _check_savings_rate(
        self,
        savings_rate: Any,
        issues: list[ValidationIssue],
    ) -> Optional[Decimal]:
        rate = self._to_decimal(savings_rate, "savings_rate", issues)
        if rate is None:
            return None

        if not Decimal("0") <= rate <= Decimal("1"):
            issues.append(ValidationIssue(
                field="savings_rate",
                issue_type="out_of_range",
                message=f"Savings rate must be between 0 and 1, got {rate}",
            ))
            return None
        return rate

    def _raise_if_issues(self, issues: list[ValidationIssue]) -> None:
        if issues:
            raise ValidationError(issues)

    # -------------------------------------------------------------------------
    # Operation checks
    # -------------------------------------------------------------------------

    def validate_new_account(
        self,
        name: Any,
        birth_year: Any,
        tithing_enabled: Any,
        savings_enabled: Any,
        savings_rate: Any,
    ) -> tuple[str, Decimal]:
        """
        Validate input for a new account.

        Returns:
            (stripped name, savings rate as Decimal)
        """
        issues: list[ValidationIssue] = []

        clean_name = self._check_name(name, issues)
        self._check_birth_year(birth_year, issues)
        self._check_flag(tithing_enabled, "tithing_enabled", issues)
        self._check_flag(savings_enabled, "savings_enabled", issues)
        rate = self._check_savings_rate(savings_rate, issues)

        self._raise_if_issues(issues)
        return clean_name, rate

    def validate_settings_update(
        self,
        birth_year: Any = None,
        tithing_enabled: Any = None,
        savings_enabled: Any = None,
        savings_rate: Any = None,
    ) -> Optional[Decimal]:
        """
        Validate a partial settings update. None means "leave unchanged".

        Returns the savings rate as Decimal, or None if not being changed.
        """
        issues: list[ValidationIssue] = []
        rate = None

        if birth_year is not None:
            self._check_birth_year(birth_year, issues)
        if tithing_enabled is not None:
            self._check_flag(tithing_enabled, "tithing_enabled", issues)
        if savings_enabled is not None:
            self._check_flag(savings_enabled, "savings_enabled", issues)
        if savings_rate is not None:
            rate = self._check_savings_rate(savings_rate, issues)

        self._raise_if_issues(issues)
        return rate

    def validate_transaction(
        self,
        kind: Any,
        amount: Any,
        note: Any,
    ) -> tuple[TransactionKind, Decimal, str]:
        """
        Validate input for a new or replacement transaction.

        Returns:
            (kind, amount as Decimal, stripped note)
        """
        issues: list[ValidationIssue] = []

        try:
            clean_kind = TransactionKind(kind)
        except ValueError:
            clean_kind = None
            allowed = ", ".join(k.value for k in TransactionKind)
            issues.append(ValidationIssue(
                field="kind",
                issue_type="invalid_value",
                message=f"Transaction kind must be one of {allowed}, got {kind!r}",
            ))

        clean_amount = self._to_decimal(amount, "amount", issues)
        if clean_amount is not None and clean_amount <= 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="out_of_range",
                message=f"Amount must be greater than zero, got {clean_amount}",
            ))

        if note is None:
            note = ""
        if not isinstance(note, str):
            issues.append(ValidationIssue(
                field="note",
                issue_type="invalid_value",
                message="Note must be text",
            ))
        elif len(note.strip()) > MAX_NOTE_LENGTH:
            issues.append(ValidationIssue(
                field="note",
                issue_type="too_long",
                message=f"Note must be at most {MAX_NOTE_LENGTH} characters",
            ))

        self._raise_if_issues(issues)
        return clean_kind, clean_amount, note.strip()
