"""Configuration package."""

from allowance_ledger.config.settings import (
    GoogleSheetsSettings,
    LedgerSettings,
    ReplicationSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "GoogleSheetsSettings",
    "LedgerSettings",
    "ReplicationSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
