"""
Input Sanitization

Every function here is pure and total: it never raises, it degrades its
input to a safe value. The one exception is `parse_amount_to_cents`,
which is the user-facing amount parser and reports out-of-range input.
"""

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from expense_tracker.models.expense import MAX_AMOUNT_CENTS, MAX_CATEGORY_LENGTH


_UNSAFE_TEXT_CHARS = re.compile(r"[<>\"'&]")
_NOT_CATEGORY_CHARS = re.compile(r"[^a-zA-Z0-9\s\-_]")
_NOT_AMOUNT_CHARS = re.compile(r"[^\d.,]")
_WHITESPACE_RUN = re.compile(r"\s+")

MAX_AMOUNT_INPUT_LENGTH = 20

_CENT = Decimal("0.01")


def _collapse(value: str, max_length: int) -> str:
    # Truncation can expose a trailing space, so trim on both sides of it
    value = _WHITESPACE_RUN.sub(" ", value).strip()
    return value[:max(max_length, 0)].strip()


def sanitize_text(value: Any, max_length: int = 500) -> str:
    """
    Clean free text for storage and rendering.

    Drops `< > " ' &`, collapses whitespace runs, trims and truncates.
    """
    if not isinstance(value, str):
        return ""
    return _collapse(_UNSAFE_TEXT_CHARS.sub("", value), max_length)


def sanitize_category(value: Any) -> str:
    """Keep only ASCII letters, digits, spaces, hyphens and underscores."""
    if not isinstance(value, str):
        return ""
    return _collapse(_NOT_CATEGORY_CHARS.sub("", value), MAX_CATEGORY_LENGTH)


def sanitize_amount(value: Any) -> str:
    """Keep only digits, `.` and `,`; cap the length."""
    if not isinstance(value, str):
        return ""
    return _NOT_AMOUNT_CHARS.sub("", value)[:MAX_AMOUNT_INPUT_LENGTH]


def parse_amount_to_cents(value: str) -> int:
    """
    Parse a user-typed amount into minor units.

    `,` is accepted as a decimal separator. Unparsable input reads as 0.

    Raises:
        ValueError: If the amount is above 1,000,000.00
    """
    normalized = sanitize_amount(value).replace(",", ".", 1)
    try:
        amount = Decimal(normalized)
    except InvalidOperation:
        amount = Decimal(0)
    if not amount.is_finite():
        amount = Decimal(0)

    cents = int((amount / _CENT).quantize(Decimal(1), rounding=ROUND_HALF_UP))
    if cents < 0 or cents > MAX_AMOUNT_CENTS:
        raise ValueError("Amount must be between 0 and 1,000,000")
    return cents
