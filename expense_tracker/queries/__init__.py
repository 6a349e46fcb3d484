"""Derived views over expense and budget collections."""

from expense_tracker.queries.views import (
    budget_progress,
    calculate_category_totals,
    current_month,
    find_budget,
    get_expenses_for_month,
    get_month_range,
    monthly_total,
)

__all__ = [
    "budget_progress",
    "calculate_category_totals",
    "current_month",
    "find_budget",
    "get_expenses_for_month",
    "get_month_range",
    "monthly_total",
]
