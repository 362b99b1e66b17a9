"""
Abstract Persistence Interface

DESIGN DECISION: The ledger store never talks to a storage backend
directly. It hands a complete snapshot blob to a PersistenceAdapter and
asks for the last one back on startup. This allows us to:
1. Keep the ledger on the device, in the cloud, or both
2. Use in-memory storage for testing
3. Keep business logic decoupled from storage implementation

The interface is intentionally tiny - the ledger always writes the whole
snapshot, so there is nothing to query.
"""

from abc import ABC, abstractmethod
from typing import Optional


class PersistenceAdapter(ABC):
    """
    Abstract interface for snapshot storage.

    Any storage implementation (local file, Google Sheets, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def save(self, blob: bytes) -> None:
        """
        Replace the stored snapshot.

        Args:
            blob: The complete serialized ledger

        Raises:
            PersistenceError: If the snapshot could not be stored
        """
        pass

    @abstractmethod
    async def load(self) -> Optional[bytes]:
        """
        Return the last stored snapshot.

        Returns:
            The blob, or None if nothing has been stored yet

        Raises:
            PersistenceError: If the backend could not be read
        """
        pass

    async def close(self) -> None:
        """Release any resources held by the adapter."""
        return None


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class PersistenceError(StorageError):
    """A snapshot could not be saved or loaded."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
