"""
Device-Local Snapshot Storage

Keeps the snapshot in a single JSON file on this device. This is the
store that is always available, even when the cloud is not.

Writes go to a temporary file first and are then renamed over the real
one, so a crash mid-write leaves the previous snapshot intact.
"""

import asyncio
import os
from pathlib import Path
from typing import Optional, Union

from allowance_ledger.services.storage.interface import (
    PersistenceAdapter,
    PersistenceError,
)


class LocalFilePersistence(PersistenceAdapter):
    """Snapshot storage in a file on the local filesystem."""

    def __init__(self, path: Union[str, Path]):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def _write(self, blob: bytes) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_name(self._path.name + ".tmp")
        tmp_path.write_bytes(blob)
        os.replace(tmp_path, self._path)

    async def save(self, blob: bytes) -> None:
        """Atomically replace the snapshot file."""
        try:
            await asyncio.to_thread(self._write, blob)
        except OSError as e:
            raise PersistenceError(f"Failed to write snapshot to {self._path}: {e}") from e

    async def load(self) -> Optional[bytes]:
        """Read the snapshot file; None if it does not exist yet."""
        try:
            return await asyncio.to_thread(self._path.read_bytes)
        except FileNotFoundError:
            return None
        except OSError as e:
            raise PersistenceError(f"Failed to read snapshot from {self._path}: {e}") from e
