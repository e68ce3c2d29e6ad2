"""Configuration package."""

from slipbook.config.settings import (
    AggregationSettings,
    AppSettings,
    GoogleSheetsSettings,
    Settings,
    SyncSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AggregationSettings",
    "AppSettings",
    "GoogleSheetsSettings",
    "Settings",
    "SyncSettings",
    "get_settings",
    "validate_all_settings",
]
