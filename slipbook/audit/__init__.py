"""Audit logging package."""

from slipbook.audit.logger import AuditLogger, configure_logging

__all__ = ["AuditLogger", "configure_logging"]
