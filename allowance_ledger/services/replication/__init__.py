"""
Replication Services Package

Moves full ledger snapshots between devices: an in-process hub for tests
and a signed HTTP transport for real peers.
"""

from allowance_ledger.services.replication.interface import (
    Receiver,
    ReplicationAdapter,
    ReplicationError,
    SignatureError,
)
from allowance_ledger.services.replication.http import HttpReplication, SnapshotSigner
from allowance_ledger.services.replication.local import LocalPeerReplication, PeerHub

__all__ = [
    # Interface
    "Receiver",
    "ReplicationAdapter",
    # Exceptions
    "ReplicationError",
    "SignatureError",
    # Implementations
    "HttpReplication",
    "LocalPeerReplication",
    "PeerHub",
    "SnapshotSigner",
]
