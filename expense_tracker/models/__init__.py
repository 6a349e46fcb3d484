"""
Data Models Package

This package contains all Pydantic models used by the expense tracker.
Every record written to local storage must conform to these schemas.
"""

from expense_tracker.models.preferences import (
    CATEGORY_PALETTE,
    DEFAULT_CATEGORY_NAMES,
    PREFERENCES_VERSION,
    Category,
    LegacySettings,
    PreferencesEnvelope,
    Theme,
    UserPreferences,
    default_categories,
    default_preferences,
    palette_color,
)
from expense_tracker.models.expense import (
    MAX_AMOUNT_CENTS,
    Budget,
    CategoryTotal,
    Expense,
    ExpenseDraft,
    ExpenseUpdate,
    ImportResult,
)
from expense_tracker.models.money import FxRates, fallback_rates
from expense_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Preference models
    "CATEGORY_PALETTE",
    "DEFAULT_CATEGORY_NAMES",
    "PREFERENCES_VERSION",
    "Category",
    "LegacySettings",
    "PreferencesEnvelope",
    "Theme",
    "UserPreferences",
    "default_categories",
    "default_preferences",
    "palette_color",
    # Expense models
    "MAX_AMOUNT_CENTS",
    "Budget",
    "CategoryTotal",
    "Expense",
    "ExpenseDraft",
    "ExpenseUpdate",
    "ImportResult",
    # Money models
    "FxRates",
    "fallback_rates",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
