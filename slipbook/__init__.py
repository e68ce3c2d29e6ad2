"""
Slipbook - Source Package

Core of a personal finance tracker: time-bucketed aggregation of income
and expense records, and debounced, load-guarded synchronization of user
settings with a remote record store.

DESIGN PRINCIPLES:
1. Aggregation is pure: same records and reference time, same result
2. Malformed data degrades the result, it never crashes it
3. No remote write before the remote state has been read
4. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Slipbook Team"
