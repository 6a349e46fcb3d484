"""
Record Store Package

The store is the only code that reads or writes persisted blobs.
"""

from expense_tracker.services.store.categories import CategoryManager
from expense_tracker.services.store.preferences import (
    MIGRATIONS,
    MigrationError,
    detect_version,
    upgrade_preferences,
)
from expense_tracker.services.store.records import RecordStore

__all__ = [
    "CategoryManager",
    "MIGRATIONS",
    "MigrationError",
    "RecordStore",
    "detect_version",
    "upgrade_preferences",
]
