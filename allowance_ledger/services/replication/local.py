"""
In-Process Replication

A PeerHub connects several ledger stores living in the same process.
It stands in for a real device-to-device channel in tests and demos, and
behaves like one: deliveries are asynchronous, and a peer that has not
registered a receiver yet keeps its deliveries until it does.
"""

import asyncio
from collections import deque
from typing import Optional

import structlog

from allowance_ledger.services.replication.interface import (
    Receiver,
    ReplicationAdapter,
    ReplicationError,
)


class PeerHub:
    """Routes pushed snapshots to every other attached peer."""

    def __init__(self):
        self._peers: dict[str, "LocalPeerReplication"] = {}

    @property
    def peer_names(self) -> list[str]:
        return list(self._peers)

    def attach(self, name: str) -> "LocalPeerReplication":
        """Create and register a replication endpoint for one peer."""
        if name in self._peers:
            raise ReplicationError(f"Peer already attached: {name}")
        peer = LocalPeerReplication(self, name)
        self._peers[name] = peer
        return peer

    def detach(self, name: str) -> None:
        self._peers.pop(name, None)

    def broadcast(self, sender: str, blob: bytes) -> int:
        """Deliver a blob to all peers except the sender; returns the count."""
        recipients = [peer for name, peer in self._peers.items() if name != sender]
        for peer in recipients:
            peer.deliver(blob)
        return len(recipients)


class LocalPeerReplication(ReplicationAdapter):
    """One peer's endpoint on a PeerHub."""

    def __init__(self, hub: PeerHub, name: str):
        self._hub = hub
        self._name = name
        self._receiver: Optional[Receiver] = None
        self._inbox: deque[bytes] = deque()
        self._tasks: set[asyncio.Task] = set()
        self._closed = False
        self._logger = structlog.get_logger(__name__)

    @property
    def name(self) -> str:
        return self._name

    @property
    def pending(self) -> int:
        """Deliveries waiting for a receiver."""
        return len(self._inbox)

    async def push(self, blob: bytes) -> None:
        if self._closed:
            raise ReplicationError(f"Peer {self._name} is closed")
        self._hub.broadcast(self._name, blob)

    def set_receiver(self, receiver: Optional[Receiver]) -> None:
        self._receiver = receiver
        if receiver is None:
            return
        while self._inbox:
            self._dispatch(self._inbox.popleft())

    def deliver(self, blob: bytes) -> None:
        """Accept a blob from the hub."""
        if self._closed:
            return
        if self._receiver is None:
            self._inbox.append(blob)
            return
        self._dispatch(blob)

    def _dispatch(self, blob: bytes) -> None:
        task = asyncio.get_running_loop().create_task(self._receive(blob))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _receive(self, blob: bytes) -> None:
        try:
            await self._receiver(blob)
        except Exception as e:
            self._logger.error(
                "replication_receive_failed",
                peer=self._name,
                error=str(e),
                error_type=type(e).__name__,
            )

    async def drain(self) -> None:
        """Wait until every dispatched delivery has been handled."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def close(self) -> None:
        self._closed = True
        self._hub.detach(self._name)
        await self.drain()
