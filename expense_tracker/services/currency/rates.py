"""
Exchange-Rate Service

Best-effort rates for DISPLAY conversion only. Stored amounts are always
in the base currency and are never rewritten by this module.

Flow:
1. current() serves the in-memory rates, else the cached blob, else the
   fixed fallback table
2. refresh_if_needed() refreshes once the rates are older than the
   staleness threshold (24 h by default)
3. refresh() fetches in a worker thread with retries; on failure the
   fallback table is used and the next check tries again

IMPORTANT: The formatting path never waits on the network. Only the
refresh coroutines do.
"""

import asyncio
import json
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Optional

import requests
import structlog
from pydantic import ValidationError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from expense_tracker.audit import AuditLogger
from expense_tracker.config import CurrencySettings, StoreSettings, get_settings
from expense_tracker.models.money import FxRates, fallback_rates
from expense_tracker.services.storage import KeyValueStorage


logger = structlog.get_logger(__name__)


class ExchangeRateError(Exception):
    """The rate source answered with something unusable."""
    pass


RatesFetcher = Callable[[str], FxRates]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ExchangeRateService:
    """
    Cache and refresh exchange rates for one base currency.

    `fetcher` is a blocking callable taking the base code; it defaults to
    an HTTP fetch against `rates_url`. With no fetcher and no URL the
    service runs offline on the fallback table.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        settings: Optional[CurrencySettings] = None,
        fetcher: Optional[RatesFetcher] = None,
        clock: Callable[[], datetime] = _utc_now,
        audit_logger: Optional[AuditLogger] = None,
        store_settings: Optional[StoreSettings] = None,
    ):
        self._storage = storage
        self._settings = settings or get_settings().currency
        self._cache_key = (store_settings or get_settings().store).fx_rates_key
        self._clock = clock
        self._audit = audit_logger or AuditLogger()
        self._rates: Optional[FxRates] = None

        if fetcher is not None:
            self._fetcher: Optional[RatesFetcher] = fetcher
        elif self._settings.rates_url:
            self._fetcher = self._fetch_remote
        else:
            self._fetcher = None

    @property
    def base_currency(self) -> str:
        return self._settings.base_currency

    @property
    def is_offline(self) -> bool:
        return self._fetcher is None

    # =========================================================================
    # READ PATH
    # =========================================================================

    def _load_cached(self) -> Optional[FxRates]:
        raw = self._storage.get(self._cache_key)
        if raw is None:
            return None
        try:
            cached = FxRates.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError):
            logger.warning("cached_fx_rates_unreadable")
            return None
        if cached.base != self.base_currency:
            logger.info("cached_fx_rates_base_mismatch", cached_base=cached.base)
            return None
        return cached

    def current(self) -> FxRates:
        """Rates to format with right now. Never touches the network."""
        if self._rates is None:
            self._rates = self._load_cached() or fallback_rates(
                self.base_currency, self._clock()
            )
        return self._rates

    def is_stale(self) -> bool:
        age = self.current().age_hours(self._clock())
        return age > self._settings.staleness_hours

    # =========================================================================
    # REFRESH PATH
    # =========================================================================

    def _fetch_remote(self, base: str) -> FxRates:
        """
        One HTTP round trip to the rate source.

        Expects a payload of the form {"base": "EUR", "rates": {"USD": 1.09, ...}}.
        """
        response = requests.get(
            self._settings.rates_url,
            params={"from": base},
            timeout=self._settings.request_timeout_seconds,
        )
        response.raise_for_status()

        try:
            payload = response.json()
        except ValueError as e:
            raise ExchangeRateError("Rate source returned invalid JSON") from e
        if not isinstance(payload, dict) or not isinstance(payload.get("rates"), dict):
            raise ExchangeRateError("Rate source returned no rates")

        try:
            return FxRates(
                base=payload.get("base", base),
                rates={**payload["rates"], base: 1.0},
                updated_at=self._clock(),
            )
        except ValidationError as e:
            raise ExchangeRateError(f"Rate source returned invalid rates: {e}") from e

    def _fetch_with_retry(self) -> FxRates:
        wait = self._settings.retry_wait_seconds
        fetch = retry(
            stop=stop_after_attempt(self._settings.fetch_attempts),
            wait=wait_exponential(multiplier=wait, min=wait, max=wait * 5),
            retry=retry_if_exception_type((requests.RequestException, ExchangeRateError)),
            reraise=True,
        )(self._fetcher)
        return fetch(self.base_currency)

    def _store_cache(self, rates: FxRates) -> None:
        payload = json.dumps(rates.model_dump(mode="json", by_alias=True))
        if not self._storage.set(self._cache_key, payload):
            logger.warning("fx_rates_cache_write_failed")

    async def refresh(self) -> FxRates:
        """
        Fetch fresh rates, falling back to the fixed table on failure.

        Never raises for network or payload problems.
        """
        if self._fetcher is None:
            logger.info("fx_rates_offline_using_fallback")
            self._rates = fallback_rates(self.base_currency, self._clock())
            return self._rates

        try:
            rates = await asyncio.to_thread(self._fetch_with_retry)
        except (requests.RequestException, ExchangeRateError) as e:
            logger.warning("fx_rates_refresh_failed", error=str(e))
            self._audit.log_rates_fallback(str(e))
            self._rates = fallback_rates(self.base_currency, self._clock())
            return self._rates

        if rates.base != self.base_currency:
            logger.warning("fx_rates_wrong_base", base=rates.base)
            self._audit.log_rates_fallback(f"unexpected base {rates.base}")
            self._rates = fallback_rates(self.base_currency, self._clock())
            return self._rates

        self._rates = rates
        self._store_cache(rates)
        self._audit.log_rates_refreshed(rates.base, len(rates.rates))
        return rates

    async def refresh_if_needed(self) -> FxRates:
        if self.is_stale():
            return await self.refresh()
        return self.current()
