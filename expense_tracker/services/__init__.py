"""Services package."""

from expense_tracker.services.currency import (
    ExchangeRateError,
    ExchangeRateService,
    MoneyFormatter,
)
from expense_tracker.services.rate_limit import (
    RateLimiter,
    RateLimitExceededError,
)
from expense_tracker.services.storage import (
    CategoryInUseError,
    DuplicateError,
    InMemoryStorage,
    JsonFileStorage,
    KeyValueStorage,
    NotFoundError,
    StorageCapacityError,
    StorageError,
)
from expense_tracker.services.store import (
    CategoryManager,
    MigrationError,
    RecordStore,
)

__all__ = [
    # Currency
    "ExchangeRateError",
    "ExchangeRateService",
    "MoneyFormatter",
    # Rate limiting
    "RateLimiter",
    "RateLimitExceededError",
    # Storage
    "CategoryInUseError",
    "DuplicateError",
    "InMemoryStorage",
    "JsonFileStorage",
    "KeyValueStorage",
    "NotFoundError",
    "StorageCapacityError",
    "StorageError",
    # Store
    "CategoryManager",
    "MigrationError",
    "RecordStore",
]
