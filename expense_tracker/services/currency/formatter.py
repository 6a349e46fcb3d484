"""
Display Formatting

Converts base-currency cents into the user's display currency and
renders them with locale-aware currency formatting. Read-time only.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

import structlog
from babel.dates import format_date
from babel.numbers import format_currency

from expense_tracker.services.currency.rates import ExchangeRateService
from expense_tracker.services.store import RecordStore


logger = structlog.get_logger(__name__)

_CENT = Decimal("0.01")


def _major_units(cents: int) -> Decimal:
    return (Decimal(cents) / 100).quantize(_CENT)


class MoneyFormatter:
    """Formats stored amounts for display in the preferred currency."""

    def __init__(
        self,
        rates: ExchangeRateService,
        store: RecordStore,
        locale: str = "en_US",
    ):
        self.rates = rates
        self.store = store
        self.locale = locale
        self.base_currency = rates.base_currency
        self.display_currency = store.get_preferences().currency

    def _rate(self) -> Optional[Decimal]:
        if self.display_currency == self.base_currency:
            return Decimal(1)
        rate = self.rates.current().rate_for(self.display_currency)
        return Decimal(str(rate)) if rate is not None else None

    def format(self, amount_cents: int) -> str:
        """
        Render base-currency cents in the display currency.

        Without a rate for the display currency the unconverted amount is
        shown with the display code as a prefix.
        """
        rate = self._rate()
        if rate is None:
            logger.warning("no_exchange_rate", currency=self.display_currency)
            return f"{self.display_currency} {_major_units(amount_cents)}"
        return format_currency(
            _major_units(amount_cents) * rate,
            self.display_currency,
            locale=self.locale,
        )

    def to_display(self, amount_cents: int) -> int:
        """Base-currency cents converted to display-currency cents."""
        rate = self._rate()
        if rate is None:
            return amount_cents
        return int((Decimal(amount_cents) * rate).quantize(Decimal(1), rounding=ROUND_HALF_UP))

    def conversion_info(self) -> Optional[str]:
        """Note shown under converted totals; None when no conversion applies."""
        if self.display_currency == self.base_currency:
            return None
        updated = format_date(self.rates.current().updated_at.date(), locale=self.locale)
        return f"Converted from {self.base_currency} using rates updated on {updated}"

    async def set_display_currency(self, code: str, persist: bool = True) -> str:
        """
        Switch the display currency and (by default) persist it in preferences.

        If no rate exists for `code` even after a refresh, display falls
        back to the base currency and preferences are left unchanged.

        Returns:
            The display currency now in effect
        """
        code = code.upper()
        if code == self.display_currency:
            return code

        if self.rates.current().rate_for(code) is None:
            await self.rates.refresh()
            if self.rates.current().rate_for(code) is None:
                logger.warning(
                    "no_exchange_rate_falling_back",
                    currency=code,
                    base=self.base_currency,
                )
                self.display_currency = self.base_currency
                return self.display_currency

        self.display_currency = code
        if persist:
            self.store.update_preferences(currency=code)
        return code
