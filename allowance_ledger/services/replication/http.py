"""
HTTP Snapshot Replication

Pushes the snapshot to peer devices as a signed HTTP POST and verifies
snapshots posted to this device.

DESIGN DECISION: Every request is signed with HMAC-SHA256 over
"<timestamp>.<body>" using a secret shared by the household's devices.
This means:
1. A snapshot from outside the household is rejected before it can
   replace the ledger
2. Replayed requests go stale after the timestamp tolerance
3. No user accounts or TLS client certificates are needed

Receiving is transport-agnostic: whatever web handler accepts the POST
passes the raw body and headers to HttpReplication.receive().
"""

import asyncio
import hashlib
import hmac
import time
from collections import deque
from typing import Mapping, Optional

import httpx
import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from allowance_ledger.config import ReplicationSettings, get_settings
from allowance_ledger.services.replication.interface import (
    Receiver,
    ReplicationAdapter,
    ReplicationError,
    SignatureError,
)


class SnapshotSigner:
    """Handles snapshot signature generation and verification."""

    def __init__(
        self,
        signature_header: str = "X-Ledger-Signature",
        timestamp_header: str = "X-Ledger-Timestamp",
        tolerance_seconds: int = 300,  # 5 minutes
    ):
        self.signature_header = signature_header
        self.timestamp_header = timestamp_header
        self.tolerance_seconds = tolerance_seconds

    def sign(
        self,
        payload: bytes,
        secret: str,
        timestamp: Optional[int] = None,
    ) -> tuple[str, int]:
        """
        Generate a signature for a snapshot payload.

        Returns (signature, timestamp).
        """
        ts = int(time.time()) if timestamp is None else timestamp
        signed_payload = f"{ts}.".encode() + payload

        signature = hmac.new(
            secret.encode(),
            signed_payload,
            hashlib.sha256,
        ).hexdigest()

        return f"v1={signature}", ts

    def verify(
        self,
        payload: bytes,
        secret: str,
        signature: str,
        timestamp: int,
    ) -> bool:
        """
        Verify a snapshot signature.

        Returns True if valid, False otherwise.
        """
        now = int(time.time())
        if abs(now - timestamp) > self.tolerance_seconds:
            return False

        expected_sig, _ = self.sign(payload, secret, timestamp)

        # Constant-time comparison
        return hmac.compare_digest(expected_sig, signature)

    def get_headers(self, payload: bytes, secret: str) -> dict[str, str]:
        """Generate request headers including signature."""
        signature, timestamp = self.sign(payload, secret)
        return {
            self.signature_header: signature,
            self.timestamp_header: str(timestamp),
            "Content-Type": "application/json",
        }


class _TransientPushError(ReplicationError):
    """A peer answered with a server error; worth retrying."""
    pass


class HttpReplication(ReplicationAdapter):
    """
    Replication over signed HTTP POSTs.

    push: POSTs the blob to each configured peer, retrying transport
          errors and 5xx responses with exponential backoff.
    receive: verifies an incoming request and hands the blob on.
    """

    def __init__(
        self,
        peer_urls: Optional[list[str]] = None,
        shared_secret: Optional[str] = None,
        settings: Optional[ReplicationSettings] = None,
        client: Optional[httpx.AsyncClient] = None,
        signer: Optional[SnapshotSigner] = None,
        retry_wait: Optional[wait_base] = None,
    ):
        self._settings = settings or get_settings().replication
        self._peer_urls = (
            list(peer_urls) if peer_urls is not None else self._settings.peer_url_list
        )
        self._secret = shared_secret if shared_secret is not None else self._settings.shared_secret
        if not self._secret:
            raise ReplicationError("HTTP replication requires a shared secret")

        self._client = client or httpx.AsyncClient(timeout=self._settings.http_timeout)
        self._signer = signer or SnapshotSigner()
        self._receiver: Optional[Receiver] = None
        self._inbox: deque[bytes] = deque()
        self._tasks: set[asyncio.Task] = set()
        self._logger = structlog.get_logger(__name__)

        self._post = retry(
            stop=stop_after_attempt(self._settings.max_attempts),
            wait=retry_wait or wait_exponential(multiplier=1, min=1, max=10),
            retry=retry_if_exception_type((httpx.TransportError, _TransientPushError)),
            reraise=True,
        )(self._post_once)

    @property
    def peer_urls(self) -> list[str]:
        return list(self._peer_urls)

    async def _post_once(self, url: str, blob: bytes) -> None:
        headers = self._signer.get_headers(blob, self._secret)
        response = await self._client.post(url, content=blob, headers=headers)
        if response.status_code >= 500:
            raise _TransientPushError(f"{url} returned {response.status_code}")
        if response.status_code >= 400:
            raise ReplicationError(f"{url} rejected snapshot: {response.status_code}")

    async def push(self, blob: bytes) -> None:
        """Send the snapshot to every peer; fails if any peer could not be reached."""
        failures = []
        for url in self._peer_urls:
            try:
                await self._post(url, blob)
            except (httpx.HTTPError, ReplicationError) as e:
                failures.append(f"{url}: {e}")
                self._logger.warning("replication_push_failed", peer=url, error=str(e))

        if failures:
            raise ReplicationError("Snapshot push failed: " + "; ".join(failures))

    def set_receiver(self, receiver: Optional[Receiver]) -> None:
        self._receiver = receiver
        if receiver is not None and self._inbox:
            task = asyncio.get_running_loop().create_task(self.drain_pending())
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def receive(self, body: bytes, headers: Mapping[str, str]) -> None:
        """
        Verify and accept a snapshot posted by a peer.

        Snapshots that arrive before a receiver is registered are kept and
        handed over once one is set.

        Raises:
            SignatureError: If the signature is missing, stale or wrong
        """
        lowered = {key.lower(): value for key, value in headers.items()}
        signature = lowered.get(self._signer.signature_header.lower())
        raw_timestamp = lowered.get(self._signer.timestamp_header.lower())
        if not signature or not raw_timestamp:
            raise SignatureError("Missing signature headers")

        try:
            timestamp = int(raw_timestamp)
        except ValueError:
            raise SignatureError(f"Invalid signature timestamp: {raw_timestamp}")

        if not self._signer.verify(body, self._secret, signature, timestamp):
            raise SignatureError("Snapshot signature verification failed")

        if self._receiver is None:
            self._inbox.append(body)
            return
        await self._receiver(body)

    async def drain_pending(self) -> int:
        """Hand queued snapshots to the receiver; returns how many were handed over."""
        if self._receiver is None:
            return 0
        count = 0
        while self._inbox:
            await self._receiver(self._inbox.popleft())
            count += 1
        return count

    async def close(self) -> None:
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        await self._client.aclose()
