"""Services package."""

from slipbook.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsRecordStore,
    GoogleSheetsSettingsStore,
    InMemoryAuditStorage,
    InMemoryRecordStore,
    InMemorySettingsStore,
    NotFoundError,
    RecordStoreInterface,
    SettingsStoreInterface,
    StorageError,
)

__all__ = [
    "AuditStorageInterface",
    "ConnectionError",
    "DuplicateError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsRecordStore",
    "GoogleSheetsSettingsStore",
    "InMemoryAuditStorage",
    "InMemoryRecordStore",
    "InMemorySettingsStore",
    "NotFoundError",
    "RecordStoreInterface",
    "SettingsStoreInterface",
    "StorageError",
]
