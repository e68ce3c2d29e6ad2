"""
Audit Models for Slipbook

Significant actions of the core (settings loads and writes, category
changes, recorded transactions) are captured as audit events. They feed
the structured local log and, when configured, an append-only audit sheet.

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Settings synchronization
    SETTINGS_LOAD_STARTED = "settings_load_started"
    SETTINGS_LOADED = "settings_loaded"
    SETTINGS_PROVISIONED = "settings_provisioned"
    SETTINGS_LOAD_FAILED = "settings_load_failed"
    PRELOAD_EDITS_DISCARDED = "preload_edits_discarded"
    SETTINGS_PERSISTED = "settings_persisted"
    SETTINGS_PERSIST_FAILED = "settings_persist_failed"
    
    # Categories
    CATEGORY_ADDED = "category_added"
    CATEGORY_REMOVED = "category_removed"
    
    # Records
    RECORD_CREATED = "record_created"
    
    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.
    
    This is the core unit of our audit trail.
    """
    
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO
    
    # What is this about? ('settings', 'category', 'record')
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    
    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(default_factory=dict)
    error_message: Optional[str] = None
    is_user_action: bool = False
    
    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }
    
    def to_sheets_row(self) -> list:
        """
        Convert to a row for the audit sheet.
        
        Columns: [event_id, timestamp, event_type, severity, entity_type,
        entity_id, description, details_json, error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.
    
    Usage:
        event = AuditEventBuilder.settings_loaded("user_settings", provisioned=False)
        event = AuditEventBuilder.category_added("Pets")
    """
    
    @staticmethod
    def settings_load_started(document_key: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTINGS_LOAD_STARTED,
            severity=AuditSeverity.DEBUG,
            entity_type="settings",
            entity_id=document_key,
            description="Loading settings from remote store",
        )
    
    @staticmethod
    def settings_loaded(document_key: str, provisioned: bool) -> AuditEvent:
        if provisioned:
            return AuditEvent(
                event_type=AuditEventType.SETTINGS_PROVISIONED,
                entity_type="settings",
                entity_id=document_key,
                description="No remote settings found; default document written",
            )
        return AuditEvent(
            event_type=AuditEventType.SETTINGS_LOADED,
            entity_type="settings",
            entity_id=document_key,
            description="Settings adopted from remote store",
        )
    
    @staticmethod
    def settings_load_failed(document_key: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTINGS_LOAD_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="settings",
            entity_id=document_key,
            description="Settings load failed; remote writes disabled",
            error_message=error_message,
        )
    
    @staticmethod
    def preload_edits_discarded(document_key: str, keys: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PRELOAD_EDITS_DISCARDED,
            severity=AuditSeverity.WARNING,
            entity_type="settings",
            entity_id=document_key,
            description=f"{len(keys)} edit(s) made before load were discarded",
            details={"keys": keys},
        )
    
    @staticmethod
    def settings_persisted(document_key: str, write_number: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTINGS_PERSISTED,
            entity_type="settings",
            entity_id=document_key,
            description="Settings snapshot written to remote store",
            details={"write_number": write_number},
        )
    
    @staticmethod
    def settings_persist_failed(document_key: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTINGS_PERSIST_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="settings",
            entity_id=document_key,
            description="Settings write failed; local state kept as unsynced",
            error_message=error_message,
        )
    
    @staticmethod
    def category_added(category: str, implicit: bool) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_ADDED,
            entity_type="category",
            entity_id=category,
            description="Category added",
            details={"implicit": implicit},
            is_user_action=not implicit,
        )
    
    @staticmethod
    def category_removed(category: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_REMOVED,
            entity_type="category",
            entity_id=category,
            description="Category removed",
            is_user_action=True,
        )
    
    @staticmethod
    def record_created(record_id: str, kind: str, amount: str, category: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_CREATED,
            entity_type="record",
            entity_id=record_id,
            description=f"Recorded {kind} of {amount} in {category}",
            details={
                "kind": kind,
                "amount": amount,
                "category": category,
            },
            is_user_action=True,
        )
    
    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
        )
