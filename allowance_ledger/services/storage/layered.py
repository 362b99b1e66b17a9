"""
Layered Snapshot Storage

Writes every snapshot to several stores and reads from the first one that
has something. The usual setup is the cloud key-value store first with the
device-local file behind it, so a device that is offline or signed out of
the cloud still keeps its ledger.
"""

from typing import Any, Callable, Optional

import structlog

from allowance_ledger.models.snapshot import check_snapshot
from allowance_ledger.services.storage.interface import (
    PersistenceAdapter,
    PersistenceError,
)


class LayeredPersistence(PersistenceAdapter):
    """
    Combines several persistence adapters, most preferred first.

    save: writes to all layers; fails only if every layer fails.
    load: returns the first blob found; unreadable layers are skipped.

    A blob that check raises on is treated as damaged and the next layer
    is tried. By default this is any blob that is not an intact snapshot;
    pass check=None to accept every blob. When every blob found is
    damaged the first one is returned, so the caller still sees what is
    wrong with it.
    """

    def __init__(
        self,
        primary: PersistenceAdapter,
        *fallbacks: PersistenceAdapter,
        check: Optional[Callable[[bytes], Any]] = check_snapshot,
    ):
        self._layers = [primary, *fallbacks]
        self._check = check
        self._logger = structlog.get_logger(__name__)

    @property
    def layers(self) -> list[PersistenceAdapter]:
        return list(self._layers)

    async def save(self, blob: bytes) -> None:
        errors = []
        for layer in self._layers:
            try:
                await layer.save(blob)
            except Exception as e:
                errors.append(f"{type(layer).__name__}: {e}")
                self._logger.warning(
                    "persistence_layer_save_failed",
                    layer=type(layer).__name__,
                    error=str(e),
                )

        if len(errors) == len(self._layers):
            raise PersistenceError("All storage layers failed: " + "; ".join(errors))

    async def load(self) -> Optional[bytes]:
        errors = []
        damaged = None
        for layer in self._layers:
            try:
                blob = await layer.load()
            except Exception as e:
                errors.append(f"{type(layer).__name__}: {e}")
                self._logger.warning(
                    "persistence_layer_load_failed",
                    layer=type(layer).__name__,
                    error=str(e),
                )
                continue

            if blob is None:
                continue

            if self._check is not None:
                try:
                    self._check(blob)
                except Exception as e:
                    self._logger.warning(
                        "persistence_layer_blob_damaged",
                        layer=type(layer).__name__,
                        error=str(e),
                    )
                    if damaged is None:
                        damaged = blob
                    continue

            return blob

        if damaged is not None:
            return damaged
        if len(errors) == len(self._layers):
            raise PersistenceError("All storage layers failed: " + "; ".join(errors))
        return None

    async def close(self) -> None:
        for layer in self._layers:
            await layer.close()
