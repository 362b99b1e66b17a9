"""
Abstract Replication Interface

DESIGN DECISION: Devices keep each other up to date by exchanging the
complete ledger snapshot, never individual transactions. Whoever writes
last wins. The store only needs two things from a transport:
1. A way to push its latest snapshot to peers (best effort)
2. A way to be told when a peer's snapshot arrives

Receivers are coroutines, so incoming snapshots are applied on the
store's event loop like any other mutation.
"""

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Optional


Receiver = Callable[[bytes], Awaitable[Any]]


class ReplicationAdapter(ABC):
    """
    Abstract interface for snapshot replication.

    Any transport (in-process hub, HTTP, etc.) must implement these methods.
    """

    @abstractmethod
    async def push(self, blob: bytes) -> None:
        """
        Send the snapshot to every peer.

        Raises:
            ReplicationError: If the snapshot could not be delivered
        """
        pass

    @abstractmethod
    def set_receiver(self, receiver: Optional[Receiver]) -> None:
        """Register the coroutine that handles snapshots from peers."""
        pass

    async def close(self) -> None:
        """Release any resources held by the adapter."""
        return None


class ReplicationError(Exception):
    """Base exception for replication operations."""
    pass


class SignatureError(ReplicationError):
    """An incoming snapshot carried a missing or invalid signature."""
    pass
