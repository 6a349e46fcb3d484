"""
Core Data Models for the Expense Tracker

These models define the strict schemas for every record that is persisted
to local storage. They are designed to:
1. Enforce type and range safety at runtime
2. Serialize to the camelCase JSON layout stored on the device
3. Accept both snake_case (Python callers) and camelCase (stored blobs)

DESIGN DECISION: Money is always an integer count of minor units (cents).
Amount fields are validated in strict mode so a float or a numeric string
never silently becomes a stored amount.
"""

from datetime import date, datetime
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from expense_tracker.models.preferences import Category


# 1,000,000.00 in major units
MAX_AMOUNT_CENTS = 100_000_000

MAX_CATEGORY_LENGTH = 50
MAX_NOTE_LENGTH = 500
MAX_PAYMENT_METHOD_LENGTH = 50


class StoredModel(BaseModel):
    """Base for models persisted as JSON blobs."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    def to_storage(self) -> dict:
        """Dump to the JSON-compatible dict written to storage."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# =============================================================================
# EXPENSES
# =============================================================================

class Expense(StoredModel):
    """
    One spending event.

    CRITICAL: `category` is a soft reference to a Category by name.
    Renaming a category does not touch historical expenses; only a
    merge rewrites them.
    """

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique expense ID (immutable)"
    )
    amount_cents: int = Field(
        ...,
        ge=1,
        le=MAX_AMOUNT_CENTS,
        strict=True,
        description="Amount in minor units of `currency`"
    )
    currency: str = Field(
        ...,
        pattern=r"^[A-Z]{3}$",
        description="Storage-time currency code"
    )
    category: str = Field(
        ...,
        min_length=1,
        max_length=MAX_CATEGORY_LENGTH,
    )
    note: Optional[str] = Field(
        default=None,
        max_length=MAX_NOTE_LENGTH,
    )
    paid_at: date = Field(
        ...,
        description="Calendar date of the payment"
    )
    payment_method: Optional[str] = Field(
        default=None,
        max_length=MAX_PAYMENT_METHOD_LENGTH,
    )
    created_at: datetime
    updated_at: datetime


class ExpenseDraft(BaseModel):
    """
    User input for a new expense, before sanitization.

    Intentionally loose: range checks happen in the user-facing validator
    so that every problem can be reported at once.
    """

    amount_cents: int
    category: str
    paid_at: date
    note: Optional[str] = None
    payment_method: Optional[str] = None
    currency: Optional[str] = None


class ExpenseUpdate(BaseModel):
    """Partial update for an existing expense. Only set fields are applied."""

    amount_cents: Optional[int] = None
    category: Optional[str] = None
    paid_at: Optional[date] = None
    note: Optional[str] = None
    payment_method: Optional[str] = None
    currency: Optional[str] = None


# =============================================================================
# BUDGETS
# =============================================================================

class Budget(StoredModel):
    """
    Spending ceiling for one calendar month.

    `category=None` is the overall monthly budget. At most one budget
    exists per (year_month, category) pair.
    """

    id: UUID = Field(default_factory=uuid4)
    year_month: str = Field(
        ...,
        pattern=r"^\d{4}-(0[1-9]|1[0-2])$",
        description="Month in YYYY-MM format"
    )
    category: Optional[str] = Field(
        default=None,
        max_length=MAX_CATEGORY_LENGTH,
    )
    limit_cents: int = Field(
        ...,
        ge=0,
        le=MAX_AMOUNT_CENTS,
        strict=True,
    )

    @property
    def key(self) -> tuple[str, Optional[str]]:
        return (self.year_month, self.category)


# =============================================================================
# DERIVED / RESULT MODELS
# =============================================================================

class CategoryTotal(BaseModel):
    """Per-category aggregate for a set of expenses."""

    category: str
    total_cents: int = Field(ge=0)
    expense_count: int = Field(ge=0)


class ImportResult(BaseModel):
    """
    Outcome of a CSV import.

    Row-level problems are reported here instead of aborting the batch.
    """

    imported: int = Field(default=0, ge=0)
    skipped: int = Field(default=0, ge=0)
    errors: list[str] = Field(
        default_factory=list,
        description="Row-level error messages, in file order"
    )
    warnings: list[str] = Field(
        default_factory=list,
        description="Non-fatal header warnings"
    )
    created_categories: list[Category] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return len(self.errors) > 0
