"""
Google Sheets Snapshot Storage

DESIGN DECISION: Google Sheets serves as the cloud key-value store because:
1. Every device signed in with the service account sees the same data
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. The household can inspect the raw data if they ever need to

Each storage key owns one row: [key, updated_at, payload chunk, ...].
A single cell holds at most 50,000 characters, so the payload is split
across as many cells as it needs.

TRADEOFFS:
- Not suitable for high-volume data (one snapshot per household is fine)
- No transactions (a row update is the unit of atomicity)
"""

import asyncio
from datetime import datetime, timezone
from typing import Optional

import gspread
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from allowance_ledger.config import GoogleSheetsSettings, get_settings
from allowance_ledger.services.storage.interface import (
    ConnectionError,
    PersistenceAdapter,
    PersistenceError,
    StorageError,
)


SNAPSHOT_COLUMNS = [
    "storage_key",
    "updated_at",
    "payload",
]

# Stay safely under the Sheets per-cell character limit.
CELL_CHUNK_SIZE = 45000

INITIAL_SHEET_COLUMNS = 26


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_ledger_sheet(self) -> gspread.Worksheet:
        """Get or create the snapshot worksheet."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(self._settings.ledger_sheet_name)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=self._settings.ledger_sheet_name,
                rows=100,
                cols=INITIAL_SHEET_COLUMNS,
            )
            sheet.append_row(SNAPSHOT_COLUMNS)
        return sheet


class GoogleSheetsPersistence(PersistenceAdapter):
    """
    Google Sheets implementation of snapshot storage.

    gspread is synchronous, so each call runs in a worker thread.
    """

    def __init__(
        self,
        client: Optional[GoogleSheetsClient] = None,
        storage_key: Optional[str] = None,
        chunk_size: int = CELL_CHUNK_SIZE,
    ):
        self._client = client or GoogleSheetsClient()
        self._storage_key = storage_key or get_settings().ledger.storage_key
        self._chunk_size = chunk_size

    def _blob_to_row(self, blob: bytes) -> list[str]:
        """Convert a snapshot blob to a spreadsheet row."""
        text = blob.decode("utf-8")
        chunks = [
            text[start:start + self._chunk_size]
            for start in range(0, len(text), self._chunk_size)
        ]
        return [
            self._storage_key,
            datetime.now(timezone.utc).isoformat(),
            *(chunks or [""]),
        ]

    def _row_to_blob(self, row: list) -> bytes:
        """Convert a spreadsheet row back to the snapshot blob."""
        return "".join(row[2:]).encode("utf-8")

    def _find_row(self, all_rows: list[list]) -> Optional[int]:
        """1-based sheet row index holding our key, if any."""
        for idx, row in enumerate(all_rows[1:], start=2):  # Row 1 is the header
            if row and row[0] == self._storage_key:
                return idx
        return None

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _save_sync(self, blob: bytes) -> None:
        sheet = self._client.get_ledger_sheet()
        row = self._blob_to_row(blob)
        all_rows = sheet.get_all_values()
        idx = self._find_row(all_rows)

        if sheet.col_count < len(row):
            sheet.add_cols(len(row) - sheet.col_count)

        if idx is None:
            sheet.append_row(row, value_input_option="RAW")
            return

        # Blank out chunks left over from a longer previous snapshot
        previous = all_rows[idx - 1]
        row = row + [""] * (len(previous) - len(row))
        sheet.update(
            range_name=f"A{idx}",
            values=[row],
            value_input_option="RAW",
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _load_sync(self) -> Optional[bytes]:
        sheet = self._client.get_ledger_sheet()
        all_rows = sheet.get_all_values()
        idx = self._find_row(all_rows)
        if idx is None:
            return None
        return self._row_to_blob(all_rows[idx - 1])

    async def save(self, blob: bytes) -> None:
        """Write the snapshot to the storage key's row."""
        try:
            await asyncio.to_thread(self._save_sync, blob)
        except StorageError:
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to save snapshot to Google Sheets: {e}") from e

    async def load(self) -> Optional[bytes]:
        """Read the snapshot from the storage key's row."""
        try:
            return await asyncio.to_thread(self._load_sync)
        except StorageError:
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to load snapshot from Google Sheets: {e}") from e
