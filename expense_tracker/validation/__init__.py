"""Sanitization and validation package."""

from expense_tracker.validation.sanitize import (
    parse_amount_to_cents,
    sanitize_amount,
    sanitize_category,
    sanitize_text,
)
from expense_tracker.validation.validator import (
    InvalidRecordError,
    validate_budget_data,
    validate_expense,
    validate_expense_data,
    validate_preferences_data,
    validate_settings_data,
)

__all__ = [
    "InvalidRecordError",
    "parse_amount_to_cents",
    "sanitize_amount",
    "sanitize_category",
    "sanitize_text",
    "validate_budget_data",
    "validate_expense",
    "validate_expense_data",
    "validate_preferences_data",
    "validate_settings_data",
]
