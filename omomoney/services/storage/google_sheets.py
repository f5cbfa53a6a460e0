"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is offered as a hosted storage backend because:
1. Non-technical users can view their data directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No transactions (we handle this with careful ordering)
- Limited query capabilities (we filter in Python)
- Every read is a network round trip, which is what the cache is for

Each record kind gets its own worksheet. A row holds the id and timestamps
in plain columns (so the sheet stays readable) plus the full record as JSON.
"""

import json
from datetime import datetime
from typing import Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from pydantic import ValidationError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from omomoney.config import GoogleSheetsSettings, get_settings
from omomoney.models.audit import AuditEvent, AuditEventType, AuditSeverity
from omomoney.models.finance import RECORD_TYPES, EntityKind, Record
from omomoney.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    Predicate,
    RecordStore,
    SortOrder,
    StorageError,
    apply_query,
)


# Column mappings for record sheets
RECORD_COLUMNS = [
    "id",
    "created_at",
    "last_modified_at",
    "payload_json",
]

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
]

RECORD_SHEETS: dict[EntityKind, str] = {
    EntityKind.USER: "Users",
    EntityKind.GROUP: "Groups",
    EntityKind.USER_GROUP: "UserGroups",
    EntityKind.CATEGORY: "Categories",
    EntityKind.ENTRY: "Entries",
    EntityKind.ITEM: "Items",
}


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and worksheet lookup. Worksheets are created
    with a header row the first time they are needed.
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

    def _get_or_create_sheet(
        self,
        title: str,
        columns: list[str],
        rows: int,
    ) -> gspread.Worksheet:
        if title in self._worksheets:
            return self._worksheets[title]

        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)

        self._worksheets[title] = sheet
        return sheet

    def get_record_sheet(self, kind: EntityKind) -> gspread.Worksheet:
        """Get or create the worksheet holding one kind of record."""
        return self._get_or_create_sheet(RECORD_SHEETS[kind], RECORD_COLUMNS, 1000)

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name,
            AUDIT_COLUMNS,
            5000,  # More rows for audit log
        )


class GoogleSheetsRecordStore(RecordStore):
    """
    Google Sheets implementation of the record store.

    One row per record. Saving an id that already has a row rewrites that
    row in place; otherwise a row is appended.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        self._logger = structlog.get_logger(__name__)

    def _record_to_row(self, record: Record) -> list:
        """Convert a record to a spreadsheet row."""
        return [
            str(record.id),
            record.created_at.isoformat(),
            record.last_modified_at.isoformat() if record.last_modified_at else "",
            record.model_dump_json(),
        ]

    def _row_to_record(self, kind: EntityKind, row: list) -> Record:
        """Convert a spreadsheet row to a record of the given kind."""
        return RECORD_TYPES[kind].model_validate_json(row[3])

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(gspread.exceptions.APIError),
        reraise=True,
    )
    def _read_rows(self, kind: EntityKind) -> list[list[str]]:
        sheet = self._client.get_record_sheet(kind)
        # Skip header
        return sheet.get_all_values()[1:]

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(gspread.exceptions.APIError),
        reraise=True,
    )
    def _write_row(self, kind: EntityKind, row: list) -> None:
        sheet = self._client.get_record_sheet(kind)
        ids = sheet.col_values(1)

        # Start from 2 (row 1 is header)
        for idx, value in enumerate(ids[1:], start=2):
            if value == row[0]:
                sheet.update(
                    range_name=f"A{idx}:D{idx}",
                    values=[row],
                )
                return

        sheet.append_row(row, value_input_option="RAW")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(gspread.exceptions.APIError),
        reraise=True,
    )
    def _delete_row(self, kind: EntityKind, record_id: UUID) -> bool:
        sheet = self._client.get_record_sheet(kind)
        ids = sheet.col_values(1)

        for idx, value in enumerate(ids[1:], start=2):
            if value == str(record_id):
                sheet.delete_rows(idx)
                return True

        return False

    async def query(
        self,
        kind: EntityKind,
        predicate: Optional[Predicate] = None,
        sort: Optional[SortOrder] = None,
        limit: Optional[int] = None,
    ) -> list[Record]:
        """Fetch records of one kind, filtering in Python."""
        try:
            rows = self._read_rows(kind)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read {kind.value} records: {e}") from e

        records = []
        for row in rows:
            if not row or not row[0]:  # Skip empty rows
                continue

            try:
                records.append(self._row_to_record(kind, row))
            except (IndexError, ValidationError) as e:
                self._logger.warning(
                    "malformed_row_skipped",
                    kind=kind.value,
                    record_id=row[0],
                    error=str(e),
                )

        return apply_query(records, predicate, sort, limit)

    async def save(self, record: Record) -> bool:
        """Insert or replace a record."""
        try:
            self._write_row(record.kind, self._record_to_row(record))
            return True
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save {record.kind.value}: {e}") from e

    async def delete(self, record: Record) -> bool:
        """Delete a record by id."""
        try:
            return self._delete_row(record.kind, record.id)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete {record.kind.value}: {e}") from e

    async def count(
        self,
        kind: EntityKind,
        predicate: Optional[Predicate] = None,
    ) -> int:
        """Count records; Sheets has no server-side count, so this reads them all."""
        return len(await self.query(kind, predicate))


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        self._logger = structlog.get_logger(__name__)

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            entity_type=safe_get(4) or None,
            entity_id=UUID(safe_get(5)) if safe_get(5) else None,
            correlation_id=UUID(safe_get(6)) if safe_get(6) else None,
            description=safe_get(7),
            details=json.loads(safe_get(8)) if safe_get(8) else {},
            error_message=safe_get(9) or None,
        )

    def _read_events(self) -> list[AuditEvent]:
        try:
            sheet = self._client.get_audit_sheet()
            all_rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}") from e

        events = []
        for row in all_rows:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except (ValueError, ValidationError) as e:
                self._logger.warning(
                    "malformed_audit_row_skipped",
                    event_id=row[0],
                    error=str(e),
                )
        return events

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(gspread.exceptions.APIError),
        reraise=True,
    )
    def _append_row(self, row: list) -> None:
        sheet = self._client.get_audit_sheet()
        sheet.append_row(row, value_input_option="RAW")

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            self._append_row(event.to_sheets_row())
            return True
        except Exception as e:
            # Don't raise - audit logging should not break the main flow
            self._logger.warning(
                "audit_append_failed",
                event_id=str(event.event_id),
                error=str(e),
            )
            return False

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by entity."""
        events = [
            event for event in self._read_events()
            if event.entity_type == entity_type and event.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        events = self._read_events()

        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
