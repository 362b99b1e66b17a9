"""Tests for configuration loading."""

from pathlib import Path

import pytest
from pydantic import ValidationError as PydanticValidationError

from allowance_ledger.config import (
    LedgerSettings,
    ReplicationSettings,
    get_settings,
    validate_all_settings,
)


@pytest.fixture(autouse=True)
def clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestLedgerSettings:
    """Tests for core ledger settings."""

    def test_defaults(self, monkeypatch):
        """Test default values match the original app's storage key."""
        monkeypatch.delenv("LEDGER_STORAGE_KEY", raising=False)
        settings = LedgerSettings(_env_file=None)
        assert settings.storage_key == "allowance-tracker-data"
        assert settings.use_cloud is False
        assert settings.min_birth_year == 1900

    def test_from_environment(self, monkeypatch, tmp_path):
        """Test that LEDGER_* variables are read."""
        monkeypatch.setenv("LEDGER_DATA_DIR", str(tmp_path))
        monkeypatch.setenv("LEDGER_DEVICE_ID", "kitchen-ipad")
        monkeypatch.setenv("LEDGER_USE_CLOUD", "true")

        settings = LedgerSettings(_env_file=None)

        assert settings.data_dir == Path(tmp_path)
        assert settings.device_id == "kitchen-ipad"
        assert settings.use_cloud is True

    def test_snapshot_path(self, tmp_path):
        """Test that the local file is named after the storage key."""
        settings = LedgerSettings(data_dir=tmp_path, storage_key="family")
        assert settings.snapshot_path == tmp_path / "family.json"

    def test_min_birth_year_bound(self):
        """Test that absurd birth year bounds are rejected."""
        with pytest.raises(PydanticValidationError):
            LedgerSettings(min_birth_year=1000)


class TestReplicationSettings:
    """Tests for replication settings."""

    def test_peer_url_list(self):
        """Test that peer URLs are split and trimmed."""
        settings = ReplicationSettings(peer_urls=" http://a/x , ,http://b/y ")
        assert settings.peer_url_list == ["http://a/x", "http://b/y"]

    def test_no_peers(self):
        """Test that an empty peer list means no replication."""
        assert ReplicationSettings(peer_urls="").peer_url_list == []

    def test_max_attempts_bounds(self):
        """Test that retry attempts are bounded."""
        with pytest.raises(PydanticValidationError):
            ReplicationSettings(max_attempts=0)


class TestSettingsAggregate:
    """Tests for the root settings container."""

    def test_get_settings_is_cached(self):
        """Test that settings are loaded once."""
        assert get_settings() is get_settings()

    def test_validate_all_settings_reports_missing_sheets(self, monkeypatch):
        """Test that missing Google Sheets configuration is reported, not raised."""
        monkeypatch.delenv("GOOGLE_SHEETS_CREDENTIALS_PATH", raising=False)
        monkeypatch.delenv("GOOGLE_SHEETS_SPREADSHEET_ID", raising=False)
        monkeypatch.chdir(Path(__file__).parent)

        results = validate_all_settings()

        assert results["ledger"] is True
        assert results["replication"] is True
        assert results["google_sheets"] is False
        assert "google_sheets_error" in results
