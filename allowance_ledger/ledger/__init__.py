"""
Ledger Package

The ledger store and the balance recomputation it relies on.
"""

from allowance_ledger.ledger.recompute import (
    Balances,
    compute_balances,
    recompute_account,
)
from allowance_ledger.ledger.store import (
    SAVINGS_WITHDRAWAL_NOTE,
    TITHING_PAYMENT_NOTE,
    LedgerStore,
)

__all__ = [
    "Balances",
    "LedgerStore",
    "SAVINGS_WITHDRAWAL_NOTE",
    "TITHING_PAYMENT_NOTE",
    "compute_balances",
    "recompute_account",
]
