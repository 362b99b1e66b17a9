"""
Configuration Management for Allowance Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see which backends the ledger can talk to and
ensures bad configuration is caught at startup, not mid-sync.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LedgerSettings(BaseSettings):
    """Core ledger configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    storage_key: str = Field(
        default="allowance-tracker-data",
        min_length=1,
        description="Key under which the ledger snapshot is stored"
    )
    data_dir: Path = Field(
        default=Path.home() / ".allowance-ledger",
        description="Directory for the device-local snapshot file"
    )
    device_id: Optional[str] = Field(
        default=None,
        description=(
            "Stable identifier for this device. If unset, one is generated "
            "once and kept in the data directory"
        )
    )
    use_cloud: bool = Field(
        default=False,
        description="Also persist the snapshot to the cloud key-value store"
    )

    # Input bounds
    min_birth_year: int = Field(
        default=1900,
        ge=1800,
        description="Earliest birth year accepted for an account"
    )

    @property
    def snapshot_path(self) -> Path:
        """Path of the device-local snapshot file."""
        return self.data_dir / f"{self.storage_key}.json"

    @property
    def device_id_path(self) -> Path:
        """Path of the file holding the generated device id."""
        return self.data_dir / "device-id"


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets cloud key-value store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )
    ledger_sheet_name: str = Field(
        default="LedgerSnapshots",
        description="Name of the sheet holding snapshot rows"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class ReplicationSettings(BaseSettings):
    """Peer-to-peer snapshot replication configuration."""

    model_config = SettingsConfigDict(
        env_prefix="REPLICATION_",
        extra="ignore"
    )

    peer_urls: str = Field(
        default="",
        description="Comma-separated list of peer endpoints receiving snapshots"
    )
    shared_secret: str = Field(
        default="",
        description="Secret used to sign and verify snapshot messages"
    )
    http_timeout: float = Field(
        default=10.0,
        gt=0,
        description="Timeout in seconds for a single push request"
    )
    max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Delivery attempts per peer before giving up"
    )

    @property
    def peer_url_list(self) -> list[str]:
        """Get peer URLs as a list."""
        return [url.strip() for url in self.peer_urls.split(",") if url.strip()]


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are loaded lazily so the ledger runs with only
    # local storage configured.

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def replication(self) -> ReplicationSettings:
        return ReplicationSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    try:
        _ = settings.ledger
        results["ledger"] = True
    except Exception as e:
        results["ledger"] = False
        results["ledger_error"] = str(e)

    try:
        _ = settings.google_sheets
        results["google_sheets"] = True
    except Exception as e:
        results["google_sheets"] = False
        results["google_sheets_error"] = str(e)

    try:
        _ = settings.replication
        results["replication"] = True
    except Exception as e:
        results["replication"] = False
        results["replication_error"] = str(e)

    return results
