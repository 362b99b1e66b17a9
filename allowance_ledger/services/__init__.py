"""Services package."""

from allowance_ledger.services.replication import (
    HttpReplication,
    LocalPeerReplication,
    PeerHub,
    ReplicationAdapter,
    ReplicationError,
    SignatureError,
    SnapshotSigner,
)
from allowance_ledger.services.storage import (
    ConnectionError,
    GoogleSheetsClient,
    GoogleSheetsPersistence,
    InMemoryPersistence,
    LayeredPersistence,
    LocalFilePersistence,
    PersistenceAdapter,
    PersistenceError,
    StorageError,
)

__all__ = [
    # Storage
    "ConnectionError",
    "GoogleSheetsClient",
    "GoogleSheetsPersistence",
    "InMemoryPersistence",
    "LayeredPersistence",
    "LocalFilePersistence",
    "PersistenceAdapter",
    "PersistenceError",
    "StorageError",
    # Replication
    "HttpReplication",
    "LocalPeerReplication",
    "PeerHub",
    "ReplicationAdapter",
    "ReplicationError",
    "SignatureError",
    "SnapshotSigner",
]
