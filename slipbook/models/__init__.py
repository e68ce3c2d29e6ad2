"""
Data Models Package

All Pydantic models used by Slipbook: financial records and aggregation
output, user settings, and audit events.
"""

from slipbook.models.record import (
    Bucket,
    BudgetStatus,
    CategoryShare,
    FinancialRecord,
    Granularity,
    PeriodTotals,
    RecordKind,
)
from slipbook.models.settings import (
    DEFAULT_CATEGORIES,
    BudgetSettings,
    CategoryUsed,
    LoadState,
    SettingsState,
)
from slipbook.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Record models
    "Bucket",
    "BudgetStatus",
    "CategoryShare",
    "FinancialRecord",
    "Granularity",
    "PeriodTotals",
    "RecordKind",
    # Settings models
    "DEFAULT_CATEGORIES",
    "BudgetSettings",
    "CategoryUsed",
    "LoadState",
    "SettingsState",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
