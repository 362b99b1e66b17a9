"""
Balance Recomputation

DESIGN DECISION: Derived balances are always recomputed from the whole
transaction log, never patched incrementally. One linear pass totals
deposits, withdrawals, tithing payments and savings withdrawals:

    balance      = deposits - withdrawals - tithing_paid - savings_paid
    tithing_due  = max(0, tithing_rate * deposits - tithing_paid)
    savings_due  = max(0, savings_rate * deposits - savings_paid)

The sums do not depend on log order, so running the pass again on the
same log always gives the same answer. Rates apply to all-time deposits,
which makes a rate change retroactive for anything not yet paid.
"""

from decimal import Decimal
from typing import Iterable

from pydantic import BaseModel, ConfigDict

from allowance_ledger.models.account import Account, Transaction, TransactionKind


ZERO = Decimal("0")


class Balances(BaseModel):
    """Totals and derived balances for one transaction log."""
    model_config = ConfigDict(frozen=True)

    deposits: Decimal = ZERO
    withdrawals: Decimal = ZERO
    tithing_paid: Decimal = ZERO
    savings_paid: Decimal = ZERO

    balance: Decimal = ZERO
    tithing_due: Decimal = ZERO
    savings_due: Decimal = ZERO


def compute_balances(
    transactions: Iterable[Transaction],
    tithing_rate: Decimal,
    savings_rate: Decimal,
) -> Balances:
    """Compute derived balances for a transaction log at the given rates."""
    deposits = withdrawals = tithing_paid = savings_paid = ZERO

    for transaction in transactions:
        if transaction.kind == TransactionKind.DEPOSIT:
            deposits += transaction.amount
        elif transaction.kind == TransactionKind.WITHDRAWAL:
            withdrawals += transaction.amount
        elif transaction.kind == TransactionKind.TITHING_PAYMENT:
            tithing_paid += transaction.amount
        elif transaction.kind == TransactionKind.SAVINGS_WITHDRAWAL:
            savings_paid += transaction.amount

    return Balances(
        deposits=deposits,
        withdrawals=withdrawals,
        tithing_paid=tithing_paid,
        savings_paid=savings_paid,
        balance=deposits - withdrawals - tithing_paid - savings_paid,
        tithing_due=max(ZERO, tithing_rate * deposits - tithing_paid),
        savings_due=max(ZERO, savings_rate * deposits - savings_paid),
    )


def recompute_account(account: Account) -> Balances:
    """
    Overwrite an account's derived balances from its transaction log.

    Disabled tithing or savings counts as a rate of zero.
    """
    balances = compute_balances(
        account.transactions,
        tithing_rate=account.effective_tithing_rate,
        savings_rate=account.effective_savings_rate,
    )
    account.balance = balances.balance
    account.tithing_due = balances.tithing_due
    account.savings_due = balances.savings_due
    return balances
