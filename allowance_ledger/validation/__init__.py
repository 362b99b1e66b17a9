"""Input validation package."""

from allowance_ledger.validation.validator import LedgerValidator

__all__ = ["LedgerValidator"]
