"""In-memory snapshot storage, for tests and throwaway ledgers."""

from typing import Optional

from allowance_ledger.services.storage.interface import PersistenceAdapter


class InMemoryPersistence(PersistenceAdapter):
    """Keeps every saved blob in memory; load returns the latest."""

    def __init__(self, blob: Optional[bytes] = None):
        self._initial = blob
        self.history: list[bytes] = []

    @property
    def blob(self) -> Optional[bytes]:
        return self.history[-1] if self.history else self._initial

    @property
    def save_count(self) -> int:
        return len(self.history)

    async def save(self, blob: bytes) -> None:
        self.history.append(blob)

    async def load(self) -> Optional[bytes]:
        return self.blob
