"""
Google Sheets Document Store

DESIGN DECISION: Google Sheets is used as the durable storage backend because:
1. Users can view their budget directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

LAYOUT:
- One worksheet per collection (budgetItems, accounts)
- Row 1 is a header of field names; column A is always "id"
- Fields not seen before are appended as new header columns
- Every value is written RAW as text; the models parse it back

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- Limited query capabilities (we filter in Python)
- Atomic batches rely on a single values.batchUpdate request, which
  the Sheets API applies as a whole or rejects as a whole

gspread is synchronous, so calls run in a worker thread to keep the
event loop free for other in-flight writes.
"""

import asyncio
import json
import threading
from typing import Any, Callable, Optional, TypeVar
from uuid import uuid4

import gspread
from google.oauth2.service_account import Credentials
from gspread.utils import rowcol_to_a1
from tenacity import retry, stop_after_attempt, wait_exponential

from every_rand.config import GoogleSheetsSettings, get_settings
from every_rand.services.storage.interface import (
    BatchError,
    BatchOperation,
    BatchOperationType,
    ConnectionError,
    DocumentStore,
    NotFoundError,
    Record,
    StorageError,
)


ID_COLUMN = "id"

# Rows requested when a collection's worksheet is first created
INITIAL_SHEET_ROWS = 1000

T = TypeVar("T")


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication, worksheet lookup and retry logic for connecting.
    """

    def __init__(
        self,
        settings: Optional[GoogleSheetsSettings] = None,
        spreadsheet: Optional[gspread.Spreadsheet] = None,
    ):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet = spreadsheet
        self._settings = settings
        self._worksheets: dict[str, gspread.Worksheet] = {}

    @property
    def settings(self) -> GoogleSheetsSettings:
        if self._settings is None:
            self._settings = get_settings().google_sheets
        return self._settings

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
                    self.settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self.settings.credentials_path}"
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
                    self.settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self.settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def sheet_name_for(self, collection: str) -> str:
        """Worksheet title used for a collection."""
        names = {
            "budgetItems": self.settings.budget_items_sheet_name,
            "accounts": self.settings.accounts_sheet_name,
        }
        return names.get(collection, collection)

    def get_collection_sheet(self, collection: str) -> gspread.Worksheet:
        """Get or create the worksheet backing a collection."""
        if collection in self._worksheets:
            return self._worksheets[collection]

        spreadsheet = self.get_spreadsheet()
        title = self.sheet_name_for(collection)
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with the id header
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=INITIAL_SHEET_ROWS,
                cols=10,
            )
            sheet.append_row([ID_COLUMN], value_input_option="RAW")

        self._worksheets[collection] = sheet
        return sheet


def _to_cell(value: Any) -> str:
    """Render a field value as sheet text."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


class _SheetTable:
    """A worksheet's contents read into memory for one operation."""

    def __init__(self, sheet: gspread.Worksheet):
        self.sheet = sheet
        values = sheet.get_all_values()
        if values and values[0] and values[0][0] == ID_COLUMN:
            self.header = list(values[0])
            self.rows = [list(row) for row in values[1:]]
            self.header_changed = False
        else:
            self.header = [ID_COLUMN]
            self.rows = [list(row) for row in values[1:]] if values else []
            self.header_changed = True

    def find(self, record_id: str) -> Optional[int]:
        """Index into self.rows of the record, or None."""
        for idx, row in enumerate(self.rows):
            if row and row[0] == record_id:
                return idx
        return None

    @staticmethod
    def row_number(idx: int) -> int:
        # Row 1 is the header
        return idx + 2

    def ensure_columns(self, fields: Record) -> None:
        for key in fields:
            if key != ID_COLUMN and key not in self.header:
                self.header.append(key)
                self.header_changed = True

    def build_row(
        self,
        record_id: str,
        fields: Record,
        base: Optional[list[str]] = None,
    ) -> list[str]:
        row = list(base or [])
        row.extend([""] * (len(self.header) - len(row)))
        row[0] = record_id
        for key, value in fields.items():
            if key == ID_COLUMN:
                continue
            row[self.header.index(key)] = _to_cell(value)
        return row

    def to_record(self, row: list[str]) -> Record:
        record: Record = {ID_COLUMN: row[0]}
        for col_idx, key in enumerate(self.header[1:], start=1):
            if col_idx < len(row) and row[col_idx] != "":
                record[key] = row[col_idx]
        return record

    def range_for(self, row_number: int) -> str:
        return f"'{self.sheet.title}'!{rowcol_to_a1(row_number, 1)}"

    def ensure_grid(self) -> None:
        """Grow the worksheet so every row and header column fits."""
        rows_needed = len(self.rows) + 1
        if rows_needed > self.sheet.row_count:
            self.sheet.add_rows(rows_needed - self.sheet.row_count)
        if len(self.header) > self.sheet.col_count:
            self.sheet.add_cols(len(self.header) - self.sheet.col_count)


class GoogleSheetsDocumentStore(DocumentStore):
    """
    Google Sheets implementation of the document store.

    Records are stored as rows with one record per row.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        # Held from reading a sheet until its write is sent
        self._lock = threading.Lock()

    def _table(self, collection: str) -> _SheetTable:
        return _SheetTable(self._client.get_collection_sheet(collection))

    def _matches(self, record: Record, where: Optional[Record]) -> bool:
        if not where:
            return True
        return all(
            record.get(key, "") == _to_cell(value) for key, value in where.items()
        )

    # -------------------------------------------------------------------------
    # Synchronous gspread work (run in a worker thread)
    # -------------------------------------------------------------------------

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _query_sync(
        self,
        collection: str,
        where: Optional[Record],
        order_by: Optional[str],
    ) -> list[Record]:
        with self._lock:
            table = self._table(collection)
        records = []
        for row in table.rows:
            if not row or not row[0]:  # Skip empty rows
                continue
            record = table.to_record(row)
            if self._matches(record, where):
                records.append(record)

        if order_by:
            records.sort(key=lambda record: record.get(order_by, ""))
        return records

    def _locked(self, work: Callable[..., T], *args: Any) -> T:
        with self._lock:
            return work(*args)

    def _insert_sync(self, collection: str, fields: Record) -> str:
        table = self._table(collection)
        table.ensure_columns(fields)
        if table.header_changed:
            table.ensure_grid()
            table.sheet.update(range_name="A1", values=[table.header])

        record_id = uuid4().hex
        table.sheet.append_row(
            table.build_row(record_id, fields),
            value_input_option="RAW",
        )
        return record_id

    def _update_sync(self, collection: str, record_id: str, fields: Record) -> None:
        table = self._table(collection)
        idx = table.find(record_id)
        if idx is None:
            raise NotFoundError(f"Record not found: {collection}/{record_id}")

        table.ensure_columns(fields)
        table.ensure_grid()
        row = table.build_row(record_id, fields, base=table.rows[idx])

        data = [{"range": table.range_for(table.row_number(idx)), "values": [row]}]
        if table.header_changed:
            data.insert(0, {"range": table.range_for(1), "values": [table.header]})
        self._client.get_spreadsheet().values_batch_update(
            {"valueInputOption": "RAW", "data": data}
        )

    def _delete_sync(self, collection: str, record_id: str) -> bool:
        table = self._table(collection)
        idx = table.find(record_id)
        if idx is None:
            return False
        table.sheet.delete_rows(table.row_number(idx))
        return True

    def _batch_sync(self, operations: list[BatchOperation]) -> list[str]:
        tables: dict[str, _SheetTable] = {}
        touched: dict[str, set[int]] = {}
        ids = []

        # Stage every write in memory first; nothing is sent if any op is invalid
        for operation in operations:
            if operation.collection not in tables:
                tables[operation.collection] = self._table(operation.collection)
                touched[operation.collection] = set()
            table = tables[operation.collection]
            table.ensure_columns(operation.fields)

            if operation.op == BatchOperationType.INSERT:
                record_id = operation.id or uuid4().hex
                if table.find(record_id) is not None:
                    raise BatchError(
                        f"Batch rejected: {operation.collection}/{record_id} already exists"
                    )
                table.rows.append(table.build_row(record_id, operation.fields))
                idx = len(table.rows) - 1
            else:
                record_id = operation.id
                idx = table.find(record_id)
                if idx is None:
                    raise BatchError(
                        f"Batch rejected: {operation.collection}/{record_id} not found"
                    )
                table.rows[idx] = table.build_row(
                    record_id, operation.fields, base=table.rows[idx]
                )

            touched[operation.collection].add(idx)
            ids.append(record_id)

        if not operations:
            return ids

        data = []
        for collection, table in tables.items():
            table.ensure_grid()
            if table.header_changed:
                data.append({"range": table.range_for(1), "values": [table.header]})
            for idx in sorted(touched[collection]):
                data.append({
                    "range": table.range_for(table.row_number(idx)),
                    "values": [table.build_row(table.rows[idx][0], {}, base=table.rows[idx])],
                })

        # One request: the Sheets API applies all ranges or none
        self._client.get_spreadsheet().values_batch_update(
            {"valueInputOption": "RAW", "data": data}
        )
        return ids

    # -------------------------------------------------------------------------
    # DocumentStore interface
    # -------------------------------------------------------------------------

    async def query(
        self,
        collection: str,
        where: Optional[Record] = None,
        order_by: Optional[str] = None,
    ) -> list[Record]:
        """Fetch records from a collection worksheet."""
        try:
            return await asyncio.to_thread(self._query_sync, collection, where, order_by)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to query {collection}: {e}")

    async def insert(self, collection: str, fields: Record) -> str:
        """Append a record row."""
        try:
            return await asyncio.to_thread(self._locked, self._insert_sync, collection, fields)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to insert into {collection}: {e}")

    async def update(self, collection: str, record_id: str, fields: Record) -> None:
        """Rewrite a record row with merged fields."""
        try:
            await asyncio.to_thread(self._locked, self._update_sync, collection, record_id, fields)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update {collection}/{record_id}: {e}")

    async def delete(self, collection: str, record_id: str) -> bool:
        """Delete a record row."""
        try:
            return await asyncio.to_thread(self._locked, self._delete_sync, collection, record_id)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete {collection}/{record_id}: {e}")

    async def atomic_batch(self, operations: list[BatchOperation]) -> list[str]:
        """Apply all writes in one batchUpdate request."""
        try:
            return await asyncio.to_thread(self._locked, self._batch_sync, operations)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to apply batch: {e}")
