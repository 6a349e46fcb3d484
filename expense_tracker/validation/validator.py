"""
Two-Path Validation

DESIGN DECISION: Validation has two distinct entry points with
different contracts:

STORAGE-INTEGRITY PATH:
- One boolean verdict per collection
- Used on every read and every write of a persisted blob
- Does not say which record or field failed; callers fall back to a
  safe default or refuse the write

USER-FACING PATH:
- An ordered list of human-readable messages
- Used before an add/edit is accepted
- Reports every problem at once instead of failing on the first one

The two are kept separate on purpose: the coarse verdict keeps schema
detail out of top-level logs.
"""

from collections.abc import Mapping
from datetime import date, datetime
from typing import Any, Optional

import structlog
from pydantic import TypeAdapter, ValidationError

from expense_tracker.models.expense import (
    MAX_AMOUNT_CENTS,
    MAX_CATEGORY_LENGTH,
    MAX_NOTE_LENGTH,
    MAX_PAYMENT_METHOD_LENGTH,
    Budget,
    Expense,
)
from expense_tracker.models.preferences import LegacySettings, PreferencesEnvelope


logger = structlog.get_logger(__name__)

_EXPENSE_LIST = TypeAdapter(list[Expense])
_BUDGET_LIST = TypeAdapter(list[Budget])

MAX_EXPENSE_AGE_YEARS = 10


class InvalidRecordError(Exception):
    """
    A record or collection failed validation and was not applied.

    `messages` holds the itemized user-facing messages when they are
    known; storage-integrity failures carry a single coarse message.
    """

    def __init__(self, message: str, messages: Optional[list[str]] = None):
        self.messages = messages or [message]
        super().__init__(message)


# =============================================================================
# STORAGE-INTEGRITY VALIDATORS
# =============================================================================

def validate_expense_data(data: Any) -> bool:
    """Every record must pass the Expense schema and ids must be unique."""
    if not isinstance(data, list):
        return False
    try:
        expenses = _EXPENSE_LIST.validate_python(data)
    except ValidationError:
        logger.warning("invalid_expense_data_detected")
        return False

    ids = [expense.id for expense in expenses]
    if len(ids) != len(set(ids)):
        logger.warning("invalid_expense_data_detected")
        return False
    return True


def validate_budget_data(data: Any) -> bool:
    """Every record must pass the Budget schema; ids and (month, category) unique."""
    if not isinstance(data, list):
        return False
    try:
        budgets = _BUDGET_LIST.validate_python(data)
    except ValidationError:
        logger.warning("invalid_budget_data_detected")
        return False

    ids = [budget.id for budget in budgets]
    keys = [budget.key for budget in budgets]
    if len(ids) != len(set(ids)) or len(keys) != len(set(keys)):
        logger.warning("invalid_budget_data_detected")
        return False
    return True


def validate_settings_data(data: Any) -> bool:
    """Check the legacy flat settings shape."""
    if not isinstance(data, dict):
        return False
    try:
        LegacySettings.model_validate(data)
    except ValidationError:
        logger.warning("invalid_settings_data_detected")
        return False
    return True


def validate_preferences_data(data: Any) -> bool:
    """Check a versioned preferences envelope. The version must be explicit."""
    if not isinstance(data, dict) or "version" not in data:
        return False
    try:
        PreferencesEnvelope.model_validate(data)
    except ValidationError:
        logger.warning("invalid_preferences_data_detected")
        return False
    return True


# =============================================================================
# USER-FACING VALIDATOR
# =============================================================================

def _years_before(day: date, years: int) -> date:
    try:
        return day.replace(year=day.year - years)
    except ValueError:
        # Feb 29 on a non-leap target year
        return day.replace(year=day.year - years, day=28)


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _coerce_date(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value[:10])
        except ValueError:
            return None
    return None


def validate_expense(
    fields: Mapping[str, Any], today: date, require_date: bool = False
) -> list[str]:
    """
    Validate expense input before an add or edit is accepted.

    Args:
        fields: Expense fields by snake_case name; missing keys are
            treated as absent
        today: The caller's current date
        require_date: Report a missing date instead of skipping the
            date checks

    Returns:
        Ordered list of messages; empty means the input is acceptable
    """
    errors = []

    amount = fields.get("amount_cents")
    valid_amount = isinstance(amount, int) and not isinstance(amount, bool)
    if not valid_amount or amount <= 0:
        errors.append("Amount must be greater than 0")
    if valid_amount and amount > MAX_AMOUNT_CENTS:
        errors.append("Amount exceeds maximum limit")

    category = _text(fields.get("category"))
    if not category.strip():
        errors.append("Category is required")
    if len(category) > MAX_CATEGORY_LENGTH:
        errors.append("Category name is too long")

    if len(_text(fields.get("note"))) > MAX_NOTE_LENGTH:
        errors.append(f"Note is too long (max {MAX_NOTE_LENGTH} characters)")

    if len(_text(fields.get("payment_method"))) > MAX_PAYMENT_METHOD_LENGTH:
        errors.append("Payment method name is too long")

    if fields.get("paid_at") is None:
        if require_date:
            errors.append("Date is required")
    else:
        paid_at = _coerce_date(fields["paid_at"])
        if paid_at is None:
            errors.append("Invalid date format")
        else:
            if paid_at > today:
                errors.append("Date cannot be in the future")
            if paid_at < _years_before(today, MAX_EXPENSE_AGE_YEARS):
                errors.append(
                    f"Date cannot be older than {MAX_EXPENSE_AGE_YEARS} years"
                )

    return errors
