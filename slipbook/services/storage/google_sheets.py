"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the default remote backend because:
1. Users can view (and hand-edit) their records directly in Sheets
2. No database setup required
3. Easy to export/migrate later

TRADEOFFS:
- Hand edits mean timestamps can be malformed. Record rows keep the raw
  timestamp text; the aggregation engine decides what it can parse.
- No transactions and no conflict detection: the settings row is simply
  overwritten by the last writer.
- Limited query capabilities (we read everything and filter in Python)

The implementation follows the abstract interfaces, so the backend can
be swapped without touching aggregation or settings logic.
"""

import json
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from slipbook.config import GoogleSheetsSettings, get_settings
from slipbook.models.audit import AuditEvent, AuditEventType, AuditSeverity
from slipbook.models.record import FinancialRecord, RecordKind
from slipbook.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    NotFoundError,
    RecordStoreInterface,
    SettingsStoreInterface,
    StorageError,
)


logger = structlog.get_logger(__name__)

RECORD_COLUMNS = [
    "id",
    "occurred_at",
    "amount",
    "kind",
    "category",
    "note",
    "receipt_ref",
]

SETTINGS_COLUMNS = [
    "key",
    "document_json",
    "updated_at",
]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]


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
        """Authenticate with the service account credentials."""
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
    
    def _get_or_create(self, title: str, columns: list[str], rows: int) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet
    
    def get_transactions_sheet(self) -> gspread.Worksheet:
        return self._get_or_create(
            self._settings.transactions_sheet_name, RECORD_COLUMNS, 1000
        )
    
    def get_settings_sheet(self) -> gspread.Worksheet:
        return self._get_or_create(
            self._settings.settings_sheet_name, SETTINGS_COLUMNS, 100
        )
    
    def get_audit_sheet(self) -> gspread.Worksheet:
        return self._get_or_create(
            self._settings.audit_sheet_name, AUDIT_COLUMNS, 5000
        )


def _safe_getter(row: list):
    def safe_get(index: int, default: str = "") -> str:
        try:
            return row[index] if row[index] else default
        except IndexError:
            return default
    return safe_get


class GoogleSheetsRecordStore(RecordStoreInterface):
    """
    Financial records, one per row.
    
    Amount and kind must be readable for a row to count as a record.
    The timestamp is passed through untouched.
    """
    
    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
    
    def _record_to_row(self, record: FinancialRecord) -> list:
        occurred_at = record.occurred_at
        if not isinstance(occurred_at, str):
            occurred_at = occurred_at.isoformat()
        return [
            record.id,
            occurred_at,
            str(record.amount),
            record.kind.value,
            record.category,
            record.note or "",
            record.receipt_ref or "",
        ]
    
    def _row_to_record(self, row: list) -> FinancialRecord:
        safe_get = _safe_getter(row)
        return FinancialRecord(
            id=safe_get(0),
            occurred_at=safe_get(1),
            amount=Decimal(safe_get(2)),
            kind=RecordKind(safe_get(3).strip().lower()),
            category=safe_get(4),
            note=safe_get(5) or None,
            receipt_ref=safe_get(6) or None,
        )
    
    def _find_row_index(self, all_rows: list, record_id: str) -> Optional[int]:
        # Row 1 is the header; sheet rows are 1-based
        for idx, row in enumerate(all_rows[1:], start=2):
            if row and row[0] == record_id:
                return idx
        return None
    
    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_not_exception_type(DuplicateError),
        reraise=True,
    )
    async def create_record(self, record: FinancialRecord) -> bool:
        try:
            sheet = self._client.get_transactions_sheet()
            if self._find_row_index(sheet.get_all_values(), record.id) is not None:
                raise DuplicateError(f"Record already exists: {record.id}")
            sheet.append_row(self._record_to_row(record), value_input_option="RAW")
            return True
        except DuplicateError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save record: {e}")
    
    async def get_record(self, record_id: str) -> Optional[FinancialRecord]:
        try:
            sheet = self._client.get_transactions_sheet()
            for row in sheet.get_all_values()[1:]:
                if row and row[0] == record_id:
                    return self._row_to_record(row)
            return None
        except Exception as e:
            raise StorageError(f"Failed to get record: {e}")
    
    async def update_record(self, record: FinancialRecord) -> bool:
        try:
            sheet = self._client.get_transactions_sheet()
            idx = self._find_row_index(sheet.get_all_values(), record.id)
            if idx is None:
                raise NotFoundError(f"Record not found: {record.id}")
            for col_idx, value in enumerate(self._record_to_row(record), start=1):
                sheet.update_cell(idx, col_idx, value)
            return True
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update record: {e}")
    
    async def delete_record(self, record_id: str) -> bool:
        try:
            sheet = self._client.get_transactions_sheet()
            idx = self._find_row_index(sheet.get_all_values(), record_id)
            if idx is None:
                return False
            sheet.delete_rows(idx)
            return True
        except Exception as e:
            raise StorageError(f"Failed to delete record: {e}")
    
    async def fetch_all_records(self) -> list[FinancialRecord]:
        try:
            sheet = self._client.get_transactions_sheet()
            all_rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to list records: {e}")
        
        records = []
        skipped = 0
        for row in all_rows:
            if not row or not row[0]:
                continue
            try:
                records.append(self._row_to_record(row))
            except Exception:
                skipped += 1
        
        if skipped:
            logger.warning("malformed_record_rows_skipped", count=skipped)
        return records


class GoogleSheetsSettingsStore(SettingsStoreInterface):
    """
    Settings documents, one JSON document per key.
    
    Writes replace the whole row; there is no per-field merge.
    """
    
    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
    
    async def read_settings_document(self, key: str) -> Optional[dict]:
        try:
            sheet = self._client.get_settings_sheet()
            all_rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to read settings: {e}")
        
        for row in all_rows:
            if row and row[0] == key:
                raw = _safe_getter(row)(1)
                if not raw:
                    return None
                try:
                    return json.loads(raw)
                except json.JSONDecodeError as e:
                    raise StorageError(f"Settings document for {key} is not valid JSON: {e}")
        return None
    
    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def write_settings_document(self, key: str, document: dict) -> bool:
        try:
            sheet = self._client.get_settings_sheet()
            new_row = [
                key,
                json.dumps(document, sort_keys=True),
                datetime.now(timezone.utc).isoformat(),
            ]
            
            for idx, row in enumerate(sheet.get_all_values()[1:], start=2):
                if row and row[0] == key:
                    for col_idx, value in enumerate(new_row, start=1):
                        sheet.update_cell(idx, col_idx, value)
                    return True
            
            sheet.append_row(new_row, value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to write settings: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.
    
    Audit events are append-only.
    """
    
    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
    
    def _row_to_event(self, row: list) -> AuditEvent:
        safe_get = _safe_getter(row)
        return AuditEvent(
            event_id=safe_get(0),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            entity_type=safe_get(4) or None,
            entity_id=safe_get(5) or None,
            description=safe_get(6),
            details=json.loads(safe_get(7)) if safe_get(7) else {},
            error_message=safe_get(8) or None,
            is_user_action=safe_get(9).lower() == "true",
        )
    
    async def append_event(self, event: AuditEvent) -> bool:
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            # Audit logging must not break the main flow
            logger.warning(
                "audit_sheet_write_failed",
                error=str(e),
                event_id=str(event.event_id),
            )
            return False
    
    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        try:
            sheet = self._client.get_audit_sheet()
            all_rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        
        events = []
        for row in all_rows:
            if row and row[0]:
                try:
                    events.append(self._row_to_event(row))
                except Exception:
                    continue
        
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
