"""
Storage Services Package

Abstract interfaces for the remote record store, plus in-memory and
Google Sheets implementations.
"""

from slipbook.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    NotFoundError,
    RecordStoreInterface,
    SettingsStoreInterface,
    StorageError,
)
from slipbook.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryRecordStore,
    InMemorySettingsStore,
)
from slipbook.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsRecordStore,
    GoogleSheetsSettingsStore,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "RecordStoreInterface",
    "SettingsStoreInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryRecordStore",
    "InMemorySettingsStore",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsRecordStore",
    "GoogleSheetsSettingsStore",
]
