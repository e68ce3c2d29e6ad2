"""
Abstract Storage Interface

DESIGN DECISION: The remote data store is an opaque record store with
create/read/update/delete operations. The core never depends on a
particular backend; it talks to these interfaces only. This allows us to:
1. Use in-memory storage for tests and offline use
2. Keep Google Sheets (or anything else) swappable
3. Keep aggregation and settings logic decoupled from the transport

Every operation is asynchronous and fallible. Backends wrap their own
errors in StorageError so callers handle a single exception family.
"""

from abc import ABC, abstractmethod
from typing import Optional

from slipbook.models.audit import AuditEvent
from slipbook.models.record import FinancialRecord


class RecordStoreInterface(ABC):
    """
    Abstract interface for financial record storage.
    
    Records are immutable once created from the core's point of view;
    update exists for the surrounding application's edit screens.
    """
    
    @abstractmethod
    async def create_record(self, record: FinancialRecord) -> bool:
        """
        Store a new record.
        
        Raises:
            DuplicateError: If a record with the same id exists
            StorageError: If the write fails
        """
        pass
    
    @abstractmethod
    async def get_record(self, record_id: str) -> Optional[FinancialRecord]:
        """Return the record, or None if it does not exist."""
        pass
    
    @abstractmethod
    async def update_record(self, record: FinancialRecord) -> bool:
        """
        Replace an existing record.
        
        Raises:
            NotFoundError: If the record doesn't exist
            StorageError: If the write fails
        """
        pass
    
    @abstractmethod
    async def delete_record(self, record_id: str) -> bool:
        """Delete a record. Returns False if it did not exist."""
        pass
    
    @abstractmethod
    async def fetch_all_records(self) -> list[FinancialRecord]:
        """
        Every record, flat and unordered.
        
        No filtering, paging or server-side aggregation is applied.
        """
        pass


class SettingsStoreInterface(ABC):
    """
    Abstract key -> document store for user settings.
    
    A failure is a whole-operation failure: there is no partial success
    at field level.
    """
    
    @abstractmethod
    async def read_settings_document(self, key: str) -> Optional[dict]:
        """
        Read the settings document stored under `key`.
        
        Returns:
            The document, or None if nothing is stored under the key
            
        Raises:
            StorageError: If the read fails or the stored data is unreadable
        """
        pass
    
    @abstractmethod
    async def write_settings_document(self, key: str, document: dict) -> bool:
        """
        Store `document` under `key`, replacing any previous document.
        
        Raises:
            StorageError: If the write fails
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.
    
    Audit logs are append-only - we never delete or modify them.
    """
    
    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event. Returns True if logged successfully."""
        pass
    
    @abstractmethod
    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        """Most recent events, newest first."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
