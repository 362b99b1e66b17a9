"""
Allowance Ledger - Source Package

A household allowance ledger that tracks each child's balance and
automatically sets aside tithing and savings from every deposit.

DESIGN PRINCIPLES:
1. Balances are always derived from the transaction log, never patched
2. Bad input fails loudly, before anything changes
3. Storage and sync are best-effort and never break the ledger
4. The whole ledger travels as one snapshot
5. Storage and transport layers are swappable
"""

__version__ = "1.0.0"
__author__ = "Allowance Ledger Team"
