"""
Flow tests for the session orchestrator.

All components run against in-memory storage.
"""

import asyncio
from datetime import datetime
from decimal import Decimal

import pytest
from pydantic import ValidationError

from slipbook.audit import AuditLogger
from slipbook.models.audit import AuditEventType
from slipbook.models.record import RecordKind
from slipbook.models.settings import LoadState, SettingsState
from slipbook.orchestrator import Session, TransactionFlow, create_session_components
from slipbook.reports import DashboardReporter
from slipbook.services.storage import (
    InMemoryAuditStorage,
    InMemoryRecordStore,
    InMemorySettingsStore,
)
from slipbook.sync import SettingsSynchronizer


KEY = "user_settings"
NOW = datetime(2025, 3, 12, 15, 0)


def fixed_clock():
    return NOW


def build_session(documents=None):
    records = InMemoryRecordStore()
    settings_store = InMemorySettingsStore(documents)
    audit = InMemoryAuditStorage()
    audit_logger = AuditLogger(audit)
    synchronizer = SettingsSynchronizer(
        settings_store,
        document_key=KEY,
        debounce_seconds=0.05,
        audit_logger=audit_logger,
    )
    transactions = TransactionFlow(records, synchronizer, audit_logger, clock=fixed_clock)
    reporter = DashboardReporter(records, clock=fixed_clock)
    session = Session(synchronizer, transactions, reporter)
    return session, records, settings_store, audit


class TestTransactionFlow:
    """Recording transactions."""
    
    @pytest.mark.asyncio
    async def test_record_is_stored_and_audited(self):
        session, records, _, audit = build_session()
        await session.start()
        
        record = await session.transactions.record_transaction(
            amount="12.40", kind="expense", category="Food", note="Coffee",
        )
        
        assert record.occurred_at == NOW.isoformat()
        assert record.amount == Decimal("12.40")
        assert await records.get_record(record.id) == record
        
        types = [e.event_type for e in await audit.get_recent_events()]
        assert AuditEventType.RECORD_CREATED in types
        await session.close()
    
    @pytest.mark.asyncio
    async def test_new_category_is_added_through_settings(self):
        session, _, settings_store, _ = build_session()
        await session.start()
        
        await session.transactions.record_transaction(50, RecordKind.EXPENSE, "Pets")
        await session.transactions.record_transaction(20, RecordKind.EXPENSE, "Pets")
        
        assert session.synchronizer.state.categories[0] == "Pets"
        await asyncio.sleep(0.25)
        assert settings_store.document(KEY)["categories"][0] == "Pets"
        await session.close()
    
    @pytest.mark.asyncio
    async def test_known_category_causes_no_write(self):
        session, _, settings_store, _ = build_session(
            {KEY: SettingsState.defaults().to_document()}
        )
        await session.start()
        
        await session.transactions.record_transaction(5, "expense", "Food")
        await asyncio.sleep(0.25)
        assert settings_store.writes == []
        await session.close()
    
    @pytest.mark.asyncio
    async def test_negative_amount_rejected_before_storage(self):
        session, records, _, _ = build_session()
        await session.start()
        with pytest.raises(ValidationError):
            await session.transactions.record_transaction(-5, "expense", "Food")
        assert await records.fetch_all_records() == []
        await session.close()
    
    @pytest.mark.asyncio
    async def test_explicit_occurred_at(self):
        session, _, _, _ = build_session()
        await session.start()
        record = await session.transactions.record_transaction(
            1000, "income", "Salary", occurred_at=datetime(2025, 3, 1, 9),
        )
        assert record.occurred_at == "2025-03-01T09:00:00"
        await session.close()


class TestSession:
    """Session lifecycle and dashboard."""
    
    @pytest.mark.asyncio
    async def test_start_loads_settings(self):
        session, _, _, _ = build_session()
        assert await session.start() is True
        assert session.synchronizer.load_state == LoadState.LOADED
        await session.close()
    
    @pytest.mark.asyncio
    async def test_dashboard_uses_budget_from_settings(self):
        document = SettingsState.defaults().to_document()
        document["budget"] = {"enabled": True, "limit": "100", "alert_threshold_percent": 50}
        session, _, _, _ = build_session({KEY: document})
        await session.start()
        
        await session.transactions.record_transaction(75, "expense", "Food")
        report = await session.dashboard("day", "expense")
        
        assert report.current_value == Decimal("75")
        assert report.budget.enabled is True
        assert report.budget.alert is True
        assert report.budget.exceeded is False
        await session.close()
    
    @pytest.mark.asyncio
    async def test_factory_without_remote_storage(self):
        session = create_session_components(use_storage=False)
        assert isinstance(session, Session)
        assert await session.start() is True
        await session.close()
    
    @pytest.mark.asyncio
    async def test_factory_with_explicit_backends(self):
        records = InMemoryRecordStore()
        settings_store = InMemorySettingsStore()
        session = create_session_components(
            record_store=records,
            settings_store=settings_store,
        )
        await session.start()
        
        assert settings_store.reads == ["user_settings"]
        await session.transactions.record_transaction(3, "expense", "Food")
        assert len(await records.fetch_all_records()) == 1
        await session.close()
