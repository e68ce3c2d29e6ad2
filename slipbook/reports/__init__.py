"""Dashboard reporting package."""

from slipbook.reports.dashboard import DashboardReport, DashboardReporter, ReportError

__all__ = ["DashboardReport", "DashboardReporter", "ReportError"]
