"""Tests for the audit logger."""

import pytest

from slipbook.audit import AuditLogger
from slipbook.models.audit import AuditEventBuilder
from slipbook.services.storage import InMemoryAuditStorage


class FailingAuditStorage(InMemoryAuditStorage):
    async def append_event(self, event):
        raise RuntimeError("audit sheet unavailable")


class TestAuditLogger:
    """Tests for AuditLogger."""
    
    @pytest.mark.asyncio
    async def test_without_storage_succeeds(self):
        logger = AuditLogger()
        assert await logger.log(AuditEventBuilder.category_removed("Rent")) is True
    
    @pytest.mark.asyncio
    async def test_persists_to_storage(self):
        storage = InMemoryAuditStorage()
        logger = AuditLogger(storage)
        event = AuditEventBuilder.settings_persisted("user_settings", 3)
        
        assert await logger.log(event) is True
        events = await storage.get_recent_events()
        assert [e.event_id for e in events] == [event.event_id]
    
    @pytest.mark.asyncio
    async def test_storage_failure_does_not_raise(self):
        logger = AuditLogger(FailingAuditStorage())
        event = AuditEventBuilder.settings_load_failed("user_settings", "timeout")
        assert await logger.log(event) is False
