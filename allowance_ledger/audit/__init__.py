"""Audit logging package."""

from allowance_ledger.audit.logger import AuditLogger

__all__ = ["AuditLogger"]
