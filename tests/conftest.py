"""
Shared fixtures for Allowance Ledger tests.

No test touches the real home directory, Google Sheets or the network:
storage goes to tmp_path or memory, and HTTP goes through httpx.MockTransport.
"""

import pytest

from allowance_ledger.config import LedgerSettings, ReplicationSettings
from allowance_ledger.ledger import LedgerStore
from allowance_ledger.services.storage import InMemoryPersistence


class EventRecorder:
    """Subscriber that keeps every event it is given."""

    def __init__(self):
        self.events = []

    def __call__(self, event):
        self.events.append(event)

    @property
    def types(self):
        return [event.event_type.value for event in self.events]


@pytest.fixture
def ledger_settings(tmp_path):
    return LedgerSettings(data_dir=tmp_path, device_id="device-a", min_birth_year=1900)


@pytest.fixture
def replication_settings():
    return ReplicationSettings(
        peer_urls="http://peer-b/snapshots",
        shared_secret="household-secret",
        http_timeout=5.0,
        max_attempts=3,
    )


@pytest.fixture
def persistence():
    return InMemoryPersistence()


@pytest.fixture
def recorder():
    return EventRecorder()


@pytest.fixture
def store(ledger_settings, persistence, recorder):
    ledger = LedgerStore(persistence=persistence, settings=ledger_settings)
    ledger.subscribe(recorder)
    return ledger
