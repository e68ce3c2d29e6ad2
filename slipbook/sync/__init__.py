"""Debounced, load-guarded synchronization of user settings."""

from slipbook.sync.debounce import Debouncer
from slipbook.sync.synchronizer import SettingsSynchronizer, UnknownSettingError

__all__ = ["Debouncer", "SettingsSynchronizer", "UnknownSettingError"]
