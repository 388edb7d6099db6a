"""
Google Sheets Remote Store

DESIGN DECISION: Google Sheets serves as the remote document store because:
1. Users can view their synced data directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

Each collection path ('users/<uid>/transactions') maps to one worksheet.
Rows have three columns: [id, created_at, fields_json].

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No server-side querying (we filter in Python)
- Ids are assigned by this client, since Sheets has no id generator
"""

import json
from typing import Any, Optional
from uuid import uuid4

import gspread
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from finsync.config import GoogleSheetsSettings, get_settings
from finsync.services.storage.interface import (
    ConnectionError,
    RemoteFields,
    RemoteStoreError,
    RemoteStoreInterface,
    matches_filters,
)


COLLECTION_COLUMNS = [
    "id",
    "created_at",
    "fields_json",
]

_FORBIDDEN_TITLE_CHARS = "[]:*?/\\"


def worksheet_title(collection_path: str) -> str:
    """
    Map a collection path to a legal worksheet title.

    'users/abc/transactions' -> 'users.abc.transactions'
    """
    title = collection_path.strip("/")
    for char in _FORBIDDEN_TITLE_CHARS:
        title = title.replace(char, ".")
    return title[:100]


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and worksheet lookup/creation.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._worksheets: dict[str, gspread.Worksheet] = {}
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

    def get_collection_sheet(self, collection_path: str) -> gspread.Worksheet:
        """Get or create the worksheet backing a collection."""
        title = worksheet_title(collection_path)
        if title in self._worksheets:
            return self._worksheets[title]

        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=self._settings.worksheet_rows,
                cols=len(COLLECTION_COLUMNS),
            )
            sheet.append_row(COLLECTION_COLUMNS)
        self._worksheets[title] = sheet
        return sheet


class GoogleSheetsRemoteStore(RemoteStoreInterface):
    """
    Google Sheets implementation of the remote document store.

    Field dicts are JSON-serialized into one cell. created_at gets its own
    column so the sheet stays sortable by humans.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _fields_to_row(self, record_id: str, fields: RemoteFields) -> list:
        return [
            record_id,
            str(fields.get("created_at", "")),
            json.dumps(fields, sort_keys=True),
        ]

    def _row_to_fields(self, row: list) -> tuple[str, RemoteFields]:
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        fields_json = safe_get(2)
        fields = json.loads(fields_json) if fields_json else {}
        return safe_get(0), fields

    def _data_rows(self, sheet: gspread.Worksheet) -> list[list]:
        # Row 1 is the header
        return sheet.get_all_values()[1:]

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def query(
        self,
        collection_path: str,
        filters: Optional[dict[str, Any]] = None,
    ) -> list[tuple[str, RemoteFields]]:
        """Return every document in the collection matching all filters."""
        try:
            sheet = self._client.get_collection_sheet(collection_path)
            results = []
            for row in self._data_rows(sheet):
                if not row or not row[0]:
                    continue
                try:
                    record_id, fields = self._row_to_fields(row)
                except ValueError:
                    continue  # Skip malformed rows
                if matches_filters(fields, filters):
                    results.append((record_id, fields))
            return results
        except ConnectionError:
            raise
        except Exception as e:
            raise RemoteStoreError(f"Failed to query {collection_path}: {e}")

    async def insert(self, collection_path: str, fields: RemoteFields) -> str:
        """
        Append a new document and return its id.

        The id is fixed before the first attempt, so a retry after a lost
        response finds the row already written instead of appending twice.
        """
        record_id = uuid4().hex[:20]
        await self._append_once(collection_path, record_id, fields)
        return record_id

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _append_once(
        self,
        collection_path: str,
        record_id: str,
        fields: RemoteFields,
    ) -> None:
        try:
            sheet = self._client.get_collection_sheet(collection_path)
            if any(row and row[0] == record_id for row in self._data_rows(sheet)):
                return
            sheet.append_row(
                self._fields_to_row(record_id, fields),
                value_input_option="RAW",
            )
        except ConnectionError:
            raise
        except Exception as e:
            raise RemoteStoreError(f"Failed to insert into {collection_path}: {e}")

    async def get_by_id(
        self,
        collection_path: str,
        record_id: str,
    ) -> Optional[RemoteFields]:
        """Retrieve a document by id."""
        try:
            sheet = self._client.get_collection_sheet(collection_path)
            for row in self._data_rows(sheet):
                if row and row[0] == record_id:
                    return self._row_to_fields(row)[1]
            return None
        except ConnectionError:
            raise
        except Exception as e:
            raise RemoteStoreError(f"Failed to get {record_id}: {e}")

    async def delete(self, collection_path: str, record_id: str) -> bool:
        """Delete a document by id."""
        try:
            sheet = self._client.get_collection_sheet(collection_path)
            for idx, row in enumerate(self._data_rows(sheet), start=2):
                if row and row[0] == record_id:
                    sheet.delete_rows(idx)
                    return True
            return False
        except ConnectionError:
            raise
        except Exception as e:
            raise RemoteStoreError(f"Failed to delete {record_id}: {e}")
