"""
Tests for snapshot storage adapters.

Google Sheets is replaced by an in-memory fake worksheet; no test talks
to Google.
"""

import json

import pytest
from tenacity import wait_none

from allowance_ledger.models import SCHEMA_VERSION, Account, encode_snapshot
from allowance_ledger.services.storage import (
    GoogleSheetsPersistence,
    InMemoryPersistence,
    LayeredPersistence,
    LocalFilePersistence,
    PersistenceAdapter,
    PersistenceError,
)
from allowance_ledger.services.storage.google_sheets import SNAPSHOT_COLUMNS


class FakeWorksheet:
    """Just enough of gspread.Worksheet for the snapshot store."""

    def __init__(self, col_count=26):
        self.rows = [list(SNAPSHOT_COLUMNS)]
        self.col_count = col_count

    def get_all_values(self):
        return [list(row) for row in self.rows]

    def append_row(self, row, value_input_option=None):
        self.rows.append(list(row))

    def update(self, range_name, values, value_input_option=None):
        self.rows[int(range_name[1:]) - 1] = list(values[0])

    def add_cols(self, cols):
        self.col_count += cols


class FakeSheetsClient:
    def __init__(self, sheet=None, error=None):
        self.sheet = sheet or FakeWorksheet()
        self.error = error

    def get_ledger_sheet(self):
        if self.error:
            raise self.error
        return self.sheet


class BrokenPersistence(PersistenceAdapter):
    def __init__(self):
        self.closed = False

    async def save(self, blob):
        raise PersistenceError("broken")

    async def load(self):
        raise PersistenceError("broken")

    async def close(self):
        self.closed = True


class TestInMemoryPersistence:
    """Tests for the in-memory store."""

    @pytest.mark.asyncio
    async def test_initial_blob(self):
        """Test that a preloaded blob is returned but not counted as a save."""
        persistence = InMemoryPersistence(b"seed")
        assert await persistence.load() == b"seed"
        assert persistence.save_count == 0

    @pytest.mark.asyncio
    async def test_latest_save_wins(self):
        """Test that load returns the most recent save."""
        persistence = InMemoryPersistence()
        assert await persistence.load() is None

        await persistence.save(b"one")
        await persistence.save(b"two")

        assert await persistence.load() == b"two"
        assert persistence.history == [b"one", b"two"]


class TestLocalFilePersistence:
    """Tests for the device-local file store."""

    @pytest.mark.asyncio
    async def test_missing_file_loads_none(self, tmp_path):
        """Test that a first run finds nothing."""
        persistence = LocalFilePersistence(tmp_path / "ledger.json")
        assert await persistence.load() is None

    @pytest.mark.asyncio
    async def test_save_and_load(self, tmp_path):
        """Test that a saved blob is read back, creating directories."""
        path = tmp_path / "nested" / "ledger.json"
        persistence = LocalFilePersistence(path)

        await persistence.save(b'{"schema_version": 1}')
        await persistence.save(b'{"schema_version": 1, "children": []}')

        assert await persistence.load() == b'{"schema_version": 1, "children": []}'
        assert [p.name for p in path.parent.iterdir()] == ["ledger.json"]

    @pytest.mark.asyncio
    async def test_unreadable_path(self, tmp_path):
        """Test that filesystem errors become PersistenceError."""
        persistence = LocalFilePersistence(tmp_path)
        with pytest.raises(PersistenceError):
            await persistence.load()


class TestLayeredPersistence:
    """Tests for cloud-then-local layering."""

    @pytest.mark.asyncio
    async def test_save_writes_every_layer(self):
        """Test that all layers receive the snapshot."""
        cloud, local = InMemoryPersistence(), InMemoryPersistence()
        await LayeredPersistence(cloud, local).save(b"blob")
        assert cloud.blob == b"blob"
        assert local.blob == b"blob"

    @pytest.mark.asyncio
    async def test_failing_layer_is_tolerated(self):
        """Test that one broken layer does not fail the save or load."""
        local = InMemoryPersistence()
        layered = LayeredPersistence(BrokenPersistence(), local)

        await layered.save(b"blob")

        assert local.blob == b"blob"
        assert await layered.load() == b"blob"

    @pytest.mark.asyncio
    async def test_load_prefers_primary(self):
        """Test that the first layer with a blob wins."""
        cloud_blob = encode_snapshot([], origin="cloud")
        layered = LayeredPersistence(
            InMemoryPersistence(cloud_blob),
            InMemoryPersistence(encode_snapshot([], origin="local")),
        )
        assert await layered.load() == cloud_blob

    @pytest.mark.asyncio
    async def test_load_falls_through_empty_layers(self):
        """Test that an empty primary falls back to the next layer."""
        local_blob = encode_snapshot([], origin="local")
        layered = LayeredPersistence(InMemoryPersistence(), InMemoryPersistence(local_blob))
        assert await layered.load() == local_blob

    @pytest.mark.asyncio
    async def test_load_skips_damaged_primary(self):
        """Test that a corrupt cloud blob falls back to a good local one."""
        local_blob = encode_snapshot([Account(name="Ada", birth_year=2015)])
        layered = LayeredPersistence(
            InMemoryPersistence(b"{not json"),
            InMemoryPersistence(local_blob),
        )
        assert await layered.load() == local_blob

    @pytest.mark.asyncio
    async def test_load_returns_damaged_blob_when_nothing_better(self):
        """Test that a damaged blob is still returned if no layer is intact."""
        layered = LayeredPersistence(
            InMemoryPersistence(b"{not json"),
            InMemoryPersistence(b"[1, 2"),
        )
        assert await layered.load() == b"{not json"

    @pytest.mark.asyncio
    async def test_newer_schema_is_not_skipped(self):
        """Test that an intact blob from newer code is not passed over."""
        newer = json.dumps({"schema_version": SCHEMA_VERSION + 1, "children": []}).encode()
        layered = LayeredPersistence(
            InMemoryPersistence(newer),
            InMemoryPersistence(encode_snapshot([])),
        )
        assert await layered.load() == newer

    @pytest.mark.asyncio
    async def test_check_can_be_disabled(self):
        """Test that check=None accepts any blob."""
        layered = LayeredPersistence(
            InMemoryPersistence(b"cloud"),
            InMemoryPersistence(b"local"),
            check=None,
        )
        assert await layered.load() == b"cloud"

    @pytest.mark.asyncio
    async def test_all_layers_failing(self):
        """Test that the layered store fails only when every layer does."""
        layered = LayeredPersistence(BrokenPersistence(), BrokenPersistence())
        with pytest.raises(PersistenceError):
            await layered.save(b"blob")
        with pytest.raises(PersistenceError):
            await layered.load()

    @pytest.mark.asyncio
    async def test_close_closes_every_layer(self):
        """Test that close reaches all layers."""
        first, second = BrokenPersistence(), BrokenPersistence()
        await LayeredPersistence(first, second).close()
        assert first.closed and second.closed


class TestGoogleSheetsPersistence:
    """Tests for the Google Sheets snapshot store."""

    @pytest.mark.asyncio
    async def test_save_appends_row(self):
        """Test that the first save adds one row for the storage key."""
        client = FakeSheetsClient()
        persistence = GoogleSheetsPersistence(client, storage_key="household")

        await persistence.save(b'{"children": []}')

        row = client.sheet.rows[1]
        assert row[0] == "household"
        assert row[2] == '{"children": []}'
        assert await persistence.load() == b'{"children": []}'

    @pytest.mark.asyncio
    async def test_missing_key_loads_none(self):
        """Test that an empty sheet has no snapshot."""
        persistence = GoogleSheetsPersistence(FakeSheetsClient(), storage_key="household")
        assert await persistence.load() is None

    @pytest.mark.asyncio
    async def test_large_payload_is_chunked(self):
        """Test that payloads are split across cells and reassembled."""
        client = FakeSheetsClient(FakeWorksheet(col_count=3))
        persistence = GoogleSheetsPersistence(client, storage_key="household", chunk_size=10)
        blob = b"x" * 25

        await persistence.save(blob)

        assert client.sheet.rows[1][2:] == ["x" * 10, "x" * 10, "x" * 5]
        assert client.sheet.col_count == 5
        assert await persistence.load() == blob

    @pytest.mark.asyncio
    async def test_update_in_place_clears_old_chunks(self):
        """Test that a shorter snapshot overwrites the same row completely."""
        client = FakeSheetsClient()
        persistence = GoogleSheetsPersistence(client, storage_key="household", chunk_size=10)

        await persistence.save(b"a" * 25)
        await persistence.save(b"b" * 5)

        assert len(client.sheet.rows) == 2
        assert client.sheet.rows[1][2:] == ["b" * 5, "", ""]
        assert await persistence.load() == b"b" * 5

    @pytest.mark.asyncio
    async def test_keys_are_independent(self):
        """Test that each storage key owns its own row."""
        client = FakeSheetsClient()
        first = GoogleSheetsPersistence(client, storage_key="one")
        second = GoogleSheetsPersistence(client, storage_key="two")

        await first.save(b"1")
        await second.save(b"2")

        assert await first.load() == b"1"
        assert await second.load() == b"2"

    @pytest.mark.asyncio
    async def test_errors_are_wrapped(self, monkeypatch):
        """Test that gspread failures surface as PersistenceError."""
        monkeypatch.setattr(GoogleSheetsPersistence._save_sync.retry, "wait", wait_none())
        monkeypatch.setattr(GoogleSheetsPersistence._load_sync.retry, "wait", wait_none())
        persistence = GoogleSheetsPersistence(
            FakeSheetsClient(error=RuntimeError("quota exceeded")),
            storage_key="household",
        )

        with pytest.raises(PersistenceError, match="quota exceeded"):
            await persistence.save(b"blob")
        with pytest.raises(PersistenceError, match="quota exceeded"):
            await persistence.load()
