"""
Abstract Storage Interface

DESIGN DECISION: The store talks to a tiny synchronous key-value
surface. This allows us to:
1. Keep every collection as one serialized blob per key
2. Use in-memory storage for testing
3. Swap the on-disk format without touching validation or the store

The interface is intentionally minimal - get, set, remove. All
interpretation of the blobs (JSON, schemas, migrations) lives above it.
"""

from abc import ABC, abstractmethod
from typing import Optional


class KeyValueStorage(ABC):
    """
    Abstract synchronous persistence surface.

    Any backend (memory, files, a browser bridge) must implement these.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """
        Read the blob stored under `key`.

        Returns:
            The stored string, or None if the key is absent or unreadable
        """
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> bool:
        """
        Write a blob under `key`, replacing any previous value.

        Returns:
            True if written; False if the write failed (e.g. capacity
            exceeded). The previous value is left untouched on failure.
        """
        pass

    @abstractmethod
    def remove(self, key: str) -> bool:
        """
        Remove `key`.

        Returns:
            True if something was removed
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class StorageCapacityError(StorageError):
    """The underlying write failed, usually because storage is full."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class CategoryInUseError(StorageError):
    """A category still referenced by expenses cannot be deleted."""

    def __init__(self, name: str, expense_count: int):
        self.name = name
        self.expense_count = expense_count
        super().__init__(
            f"Category '{name}' is used by {expense_count} expenses; "
            "merge it into another category first"
        )
