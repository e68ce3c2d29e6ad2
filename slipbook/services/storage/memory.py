"""
In-memory storage backends.

Used by the test suite and as the fallback when no remote backend is
configured. Documents are deep-copied on the way in and out so callers
can never alias stored state.
"""

import copy
from typing import Optional

from slipbook.models.audit import AuditEvent
from slipbook.models.record import FinancialRecord
from slipbook.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    NotFoundError,
    RecordStoreInterface,
    SettingsStoreInterface,
)


class InMemoryRecordStore(RecordStoreInterface):
    
    def __init__(self, records: Optional[list[FinancialRecord]] = None):
        self._records: dict[str, FinancialRecord] = {}
        for record in records or []:
            self._records[record.id] = record
    
    async def create_record(self, record: FinancialRecord) -> bool:
        if record.id in self._records:
            raise DuplicateError(f"Record already exists: {record.id}")
        self._records[record.id] = record
        return True
    
    async def get_record(self, record_id: str) -> Optional[FinancialRecord]:
        return self._records.get(record_id)
    
    async def update_record(self, record: FinancialRecord) -> bool:
        if record.id not in self._records:
            raise NotFoundError(f"Record not found: {record.id}")
        self._records[record.id] = record
        return True
    
    async def delete_record(self, record_id: str) -> bool:
        return self._records.pop(record_id, None) is not None
    
    async def fetch_all_records(self) -> list[FinancialRecord]:
        return list(self._records.values())


class InMemorySettingsStore(SettingsStoreInterface):
    """
    Settings documents kept in a dict.
    
    `reads` and `writes` record every call (key and document) so tests can
    assert on exactly what reached the store.
    """
    
    def __init__(self, documents: Optional[dict[str, dict]] = None):
        self._documents: dict[str, dict] = copy.deepcopy(documents or {})
        self.reads: list[str] = []
        self.writes: list[tuple[str, dict]] = []
    
    async def read_settings_document(self, key: str) -> Optional[dict]:
        self.reads.append(key)
        document = self._documents.get(key)
        return copy.deepcopy(document) if document is not None else None
    
    async def write_settings_document(self, key: str, document: dict) -> bool:
        stored = copy.deepcopy(document)
        self.writes.append((key, stored))
        self._documents[key] = stored
        return True
    
    def document(self, key: str) -> Optional[dict]:
        """Current stored document (test helper)."""
        return copy.deepcopy(self._documents.get(key))


class InMemoryAuditStorage(AuditStorageInterface):
    
    def __init__(self):
        self._events: list[AuditEvent] = []
    
    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True
    
    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return sorted(self._events, key=lambda e: e.timestamp, reverse=True)[:limit]
