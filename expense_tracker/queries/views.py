"""
Derived Views

DESIGN DECISION: Every view is a PURE function of the collections passed
in. Nothing here reads storage, so dashboards and tests can feed any
expense list and get the same answer every time.
"""

import calendar
import re
from collections.abc import Iterable, Sequence
from datetime import date
from typing import Optional

from expense_tracker.models.expense import Budget, CategoryTotal, Expense


_YEAR_MONTH = re.compile(r"^(\d{4})-(0[1-9]|1[0-2])$")


def current_month(today: Optional[date] = None) -> str:
    """Month key (YYYY-MM) for `today`."""
    today = today or date.today()
    return f"{today.year:04d}-{today.month:02d}"


def get_month_range(year_month: str) -> tuple[date, date]:
    """
    First and last calendar day of a month.

    Raises:
        ValueError: If `year_month` is not a YYYY-MM key
    """
    match = _YEAR_MONTH.match(year_month)
    if match is None:
        raise ValueError(f"Invalid month key: {year_month!r}")
    year, month = int(match.group(1)), int(match.group(2))
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def get_expenses_for_month(expenses: Iterable[Expense], year_month: str) -> list[Expense]:
    """Expenses paid within the month, both ends inclusive, in input order."""
    start, end = get_month_range(year_month)
    return [expense for expense in expenses if start <= expense.paid_at <= end]


def calculate_category_totals(expenses: Iterable[Expense]) -> list[CategoryTotal]:
    """
    Sum and count expenses per category string.

    Ordered by total, largest first. Equal totals keep the order in which
    their category was first seen.
    """
    totals: dict[str, list[int]] = {}
    for expense in expenses:
        entry = totals.setdefault(expense.category, [0, 0])
        entry[0] += expense.amount_cents
        entry[1] += 1

    ordered = sorted(totals.items(), key=lambda item: item[1][0], reverse=True)
    return [
        CategoryTotal(category=category, total_cents=total, expense_count=count)
        for category, (total, count) in ordered
    ]


def monthly_total(expenses: Iterable[Expense]) -> int:
    return sum(expense.amount_cents for expense in expenses)


def find_budget(
    budgets: Iterable[Budget],
    year_month: str,
    category: Optional[str] = None,
) -> Optional[Budget]:
    for budget in budgets:
        if budget.year_month == year_month and budget.category == category:
            return budget
    return None


def budget_progress(
    expenses: Sequence[Expense],
    budgets: Iterable[Budget],
    year_month: str,
    category: Optional[str] = None,
) -> Optional[float]:
    """
    Percentage of a month's budget already spent.

    With `category=None` this is the overall budget against all spending
    in the month; otherwise only that category's spending counts.

    Returns:
        Percentage (may exceed 100), or None when there is no budget or
        its limit is zero
    """
    budget = find_budget(budgets, year_month, category)
    if budget is None or budget.limit_cents == 0:
        return None

    spent = get_expenses_for_month(expenses, year_month)
    if category is not None:
        spent = [expense for expense in spent if expense.category == category]
    return monthly_total(spent) * 100 / budget.limit_cents
