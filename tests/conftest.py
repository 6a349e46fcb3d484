"""
Shared fixtures.

Every test gets a fresh in-memory storage, a fresh rate limiter on a
controllable clock and a store whose wall clock is frozen.
"""

from datetime import date, datetime, timezone
from itertools import count
from typing import Optional
from uuid import UUID

import pytest

from expense_tracker.audit import AuditLogger
from expense_tracker.config import RateLimitSettings, StoreSettings
from expense_tracker.models import Expense
from expense_tracker.services.rate_limit import RateLimiter
from expense_tracker.services.storage import InMemoryStorage
from expense_tracker.services.store import CategoryManager, RecordStore


FIXED_NOW = datetime(2024, 3, 20, 12, 0, tzinfo=timezone.utc)


class FakeMonotonic:
    """Manually advanced monotonic clock."""

    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def sequential_ids():
    counter = count(1)
    return lambda: UUID(int=next(counter))


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def monotonic():
    return FakeMonotonic()


@pytest.fixture
def rate_limiter(monotonic):
    return RateLimiter(max_ops=100, window_seconds=60.0, clock=monotonic)


@pytest.fixture
def audit_logger():
    return AuditLogger()


@pytest.fixture
def store(storage, rate_limiter, audit_logger):
    return RecordStore(
        storage,
        rate_limiter=rate_limiter,
        audit_logger=audit_logger,
        clock=lambda: FIXED_NOW,
        id_factory=sequential_ids(),
        base_currency="EUR",
        store_settings=StoreSettings(),
        rate_limit_settings=RateLimitSettings(),
    )


@pytest.fixture
def categories(store):
    return CategoryManager(store)


@pytest.fixture
def make_expense():
    """Build a valid Expense without going through the store."""
    ids = sequential_ids()

    def _make(
        amount_cents: int = 1000,
        category: str = "Food",
        paid_at: date = date(2024, 3, 15),
        note: Optional[str] = None,
        payment_method: Optional[str] = None,
    ) -> Expense:
        return Expense(
            id=UUID(int=10_000 + ids().int),
            amount_cents=amount_cents,
            currency="EUR",
            category=category,
            note=note,
            paid_at=paid_at,
            payment_method=payment_method,
            created_at=FIXED_NOW,
            updated_at=FIXED_NOW,
        )

    return _make


@pytest.fixture
def fixed_now():
    return FIXED_NOW
