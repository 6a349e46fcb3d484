"""
Storage Services Package

Provides the abstract key-value interface and local implementations.
"""

from expense_tracker.services.storage.interface import (
    CategoryInUseError,
    DuplicateError,
    KeyValueStorage,
    NotFoundError,
    StorageCapacityError,
    StorageError,
)
from expense_tracker.services.storage.local import (
    InMemoryStorage,
    JsonFileStorage,
)

__all__ = [
    # Interface
    "KeyValueStorage",
    # Exceptions
    "CategoryInUseError",
    "DuplicateError",
    "NotFoundError",
    "StorageCapacityError",
    "StorageError",
    # Local implementations
    "InMemoryStorage",
    "JsonFileStorage",
]
