"""
Storage Services Package

Provides the abstract persistence interface and concrete snapshot stores:
a local file, Google Sheets as a cloud key-value store, an in-memory store
for tests, and a layered store that combines them.
"""

from allowance_ledger.services.storage.interface import (
    ConnectionError,
    PersistenceAdapter,
    PersistenceError,
    StorageError,
)
from allowance_ledger.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsPersistence,
)
from allowance_ledger.services.storage.layered import LayeredPersistence
from allowance_ledger.services.storage.local_file import LocalFilePersistence
from allowance_ledger.services.storage.memory import InMemoryPersistence

__all__ = [
    # Interface
    "PersistenceAdapter",
    # Exceptions
    "ConnectionError",
    "PersistenceError",
    "StorageError",
    # Implementations
    "GoogleSheetsClient",
    "GoogleSheetsPersistence",
    "InMemoryPersistence",
    "LayeredPersistence",
    "LocalFilePersistence",
]
