"""Currency conversion services."""

from expense_tracker.services.currency.formatter import MoneyFormatter
from expense_tracker.services.currency.rates import (
    ExchangeRateError,
    ExchangeRateService,
)

__all__ = [
    "ExchangeRateError",
    "ExchangeRateService",
    "MoneyFormatter",
]
