"""
Session Orchestrator for Slipbook

This module ties the components together for one signed-in session:
1. Settings (load once → edit → debounced persist)
2. Transactions (record → store → "category used" event)
3. Dashboard (records → aggregated report)

DESIGN DECISION: The transaction flow never touches the category list.
It emits a CategoryUsed event and the synchronizer, as the single owner
of SettingsState, decides what to do with it.
"""

from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional, Union
from uuid import uuid4

import structlog

from slipbook.audit import AuditLogger, configure_logging
from slipbook.config import get_settings
from slipbook.models.audit import AuditEventBuilder
from slipbook.models.record import FinancialRecord, Granularity, RecordKind
from slipbook.models.settings import CategoryUsed
from slipbook.reports import DashboardReport, DashboardReporter
from slipbook.services.storage import (
    AuditStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsRecordStore,
    GoogleSheetsSettingsStore,
    InMemoryRecordStore,
    InMemorySettingsStore,
    RecordStoreInterface,
    SettingsStoreInterface,
)
from slipbook.sync import SettingsSynchronizer


logger = structlog.get_logger(__name__)


class TransactionFlow:
    """
    Records income and expense events.
    
    Flow:
    1. Build a FinancialRecord (validation happens in the model)
    2. Store it
    3. Audit it
    4. Emit CategoryUsed so a new category joins the settings list
    """
    
    def __init__(
        self,
        record_store: RecordStoreInterface,
        synchronizer: SettingsSynchronizer,
        audit_logger: Optional[AuditLogger] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._store = record_store
        self._synchronizer = synchronizer
        self._audit_logger = audit_logger or AuditLogger()
        self._clock = clock
    
    async def record_transaction(
        self,
        amount: Union[Decimal, int, float, str],
        kind: Union[RecordKind, str],
        category: str,
        note: Optional[str] = None,
        receipt_ref: Optional[str] = None,
        occurred_at: Optional[datetime] = None,
    ) -> FinancialRecord:
        """
        Create and store a record.
        
        Raises:
            pydantic.ValidationError: If the record is invalid (e.g. negative amount)
            StorageError: If the store rejects the write
        """
        record = FinancialRecord(
            id=str(uuid4()),
            occurred_at=(occurred_at or self._clock()).isoformat(),
            amount=Decimal(str(amount)),
            kind=kind,
            category=category,
            note=note or None,
            receipt_ref=receipt_ref,
        )
        
        await self._store.create_record(record)
        await self._audit_logger.log(
            AuditEventBuilder.record_created(
                record_id=record.id,
                kind=record.kind.value,
                amount=str(record.amount),
                category=record.category,
            )
        )
        
        self._synchronizer.handle(CategoryUsed(category=record.category))
        return record


class Session:
    """
    One signed-in session: owns the synchronizer for its lifetime.
    
    Usage:
        session = create_session_components()
        await session.start()
        ...
        await session.close()
    """
    
    def __init__(
        self,
        synchronizer: SettingsSynchronizer,
        transactions: TransactionFlow,
        reporter: DashboardReporter,
    ):
        self.synchronizer = synchronizer
        self.transactions = transactions
        self.reporter = reporter
    
    async def start(self) -> bool:
        """Load settings. Returns False if the load failed (retry with start())."""
        loaded = await self.synchronizer.load()
        if not loaded:
            logger.warning(
                "session_settings_unavailable",
                load_state=self.synchronizer.load_state.value,
            )
        return loaded
    
    async def dashboard(
        self,
        granularity: Union[Granularity, str] = Granularity.DAY,
        kind: Union[RecordKind, str] = RecordKind.EXPENSE,
        reference_time: Optional[datetime] = None,
    ) -> DashboardReport:
        """Dashboard with the budget taken from the current settings."""
        return await self.reporter.build(
            granularity=granularity,
            kind=kind,
            reference_time=reference_time,
            budget=self.synchronizer.state.budget,
        )
    
    async def close(self) -> None:
        await self.synchronizer.close()


def create_session_components(
    use_storage: bool = True,
    record_store: Optional[RecordStoreInterface] = None,
    settings_store: Optional[SettingsStoreInterface] = None,
    audit_storage: Optional[AuditStorageInterface] = None,
) -> Session:
    """
    Factory function to create all session components.
    
    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    Falls back to in-memory storage when False or
                    when Sheets is not configured.
        record_store, settings_store, audit_storage: Explicit backends,
                    used instead of the configured ones when given.
    """
    settings = get_settings()
    app_settings = settings.app
    configure_logging(app_settings.effective_log_level)
    
    if use_storage and (record_store is None or settings_store is None):
        try:
            client = GoogleSheetsClient()
            record_store = record_store or GoogleSheetsRecordStore(client)
            settings_store = settings_store or GoogleSheetsSettingsStore(client)
            audit_storage = audit_storage or GoogleSheetsAuditStorage(client)
        except Exception as e:
            # Storage not configured - continue without it
            logger.warning("storage_not_configured", error=str(e))
    
    record_store = record_store or InMemoryRecordStore()
    settings_store = settings_store or InMemorySettingsStore()
    audit_logger = AuditLogger(audit_storage)
    
    sync_settings = settings.sync
    synchronizer = SettingsSynchronizer(
        settings_store,
        document_key=sync_settings.document_key,
        debounce_seconds=sync_settings.debounce_seconds,
        audit_logger=audit_logger,
    )
    transactions = TransactionFlow(record_store, synchronizer, audit_logger)
    reporter = DashboardReporter(record_store, settings.aggregation)
    
    logger.info(
        "session_components_created",
        environment=app_settings.app_environment,
        record_store=type(record_store).__name__,
        settings_store=type(settings_store).__name__,
    )
    
    return Session(synchronizer, transactions, reporter)
