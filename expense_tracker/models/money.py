"""Exchange-rate models."""

from datetime import datetime, timedelta, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


# EUR-based offline table
_FALLBACK_EUR_RATES = {
    "EUR": 1.0,
    "USD": 1.08,
    "GBP": 0.86,
    "JPY": 158.0,
    "CAD": 1.46,
    "AUD": 1.65,
    "CHF": 0.94,
    "CNY": 7.80,
}


class FxRates(BaseModel):
    """
    Exchange rates relative to `base`.

    A rate of 1.09 for USD means 1 unit of `base` buys 1.09 USD.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    base: str = Field(..., pattern=r"^[A-Z]{3}$")
    rates: dict[str, float] = Field(default_factory=dict)
    updated_at: datetime

    @field_validator("rates")
    @classmethod
    def validate_positive_rates(cls, v: dict[str, float]) -> dict[str, float]:
        for code, rate in v.items():
            if rate <= 0:
                raise ValueError(f"Rate for {code} must be positive")
        return v

    def rate_for(self, code: str) -> Optional[float]:
        if code == self.base:
            return 1.0
        return self.rates.get(code)

    def age_hours(self, now: datetime) -> float:
        return (now - self.updated_at).total_seconds() / 3600


def fallback_rates(base: str = "EUR", now: Optional[datetime] = None) -> FxRates:
    """
    Fixed offline table, rebased onto `base` when it is in the table.

    Stamped a week old so that it always reads as stale and the next
    refresh check tries the network again.
    """
    now = now or datetime.now(timezone.utc)
    base_rate = _FALLBACK_EUR_RATES.get(base)
    if base_rate is None:
        rates = {base: 1.0}
    else:
        rates = {
            code: rate / base_rate
            for code, rate in _FALLBACK_EUR_RATES.items()
        }
    return FxRates(
        base=base,
        rates=rates,
        updated_at=now - timedelta(days=7),
    )
