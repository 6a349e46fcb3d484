"""Tests for exchange rates and display formatting."""

import asyncio
import json
import pytest
from datetime import timedelta

import requests

from expense_tracker.config import CurrencySettings, StoreSettings
from expense_tracker.models.audit import AuditEventType
from expense_tracker.models.money import FxRates
from expense_tracker.services.currency import (
    ExchangeRateError,
    ExchangeRateService,
    MoneyFormatter,
)


OFFLINE = CurrencySettings(rates_url="", fetch_attempts=2, retry_wait_seconds=0)
ONLINE = CurrencySettings(
    rates_url="https://rates.example/latest",
    fetch_attempts=2,
    retry_wait_seconds=0,
)


class FakeFetcher:
    """Counts calls and returns (or raises) a canned result."""

    def __init__(self, result):
        self.result = result
        self.calls = 0

    def __call__(self, base: str) -> FxRates:
        self.calls += 1
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


class FakeResponse:
    def __init__(self, payload):
        self._payload = payload

    def raise_for_status(self):
        pass

    def json(self):
        return self._payload


@pytest.fixture
def make_service(storage, audit_logger, fixed_now):
    def _make(fetcher=None, settings=OFFLINE, now=fixed_now):
        return ExchangeRateService(
            storage,
            settings=settings,
            fetcher=fetcher,
            clock=lambda: now,
            audit_logger=audit_logger,
            store_settings=StoreSettings(),
        )
    return _make


class TestExchangeRateService:
    """Tests for ExchangeRateService."""

    def test_offline_uses_fallback_table(self, make_service, fixed_now):
        """Test that with no source the fixed table is served and stale."""
        service = make_service()
        assert service.is_offline
        rates = service.current()
        assert rates.base == "EUR"
        assert rates.rate_for("USD") == pytest.approx(1.08)
        assert rates.updated_at == fixed_now - timedelta(days=7)
        assert service.is_stale()

    def test_offline_refresh_keeps_fallback(self, make_service):
        """Test that refreshing offline never fails."""
        rates = asyncio.run(make_service().refresh())
        assert rates.rate_for("GBP") == pytest.approx(0.86)

    def test_refresh_caches_rates(self, make_service, storage, fixed_now, audit_logger):
        """Test that fetched rates are served and persisted."""
        fetched = FxRates(base="EUR", rates={"USD": 1.2}, updated_at=fixed_now)
        service = make_service(fetcher=FakeFetcher(fetched))

        asyncio.run(service.refresh())

        assert service.current().rate_for("USD") == 1.2
        assert not service.is_stale()
        assert json.loads(storage.get("fx_rates"))["base"] == "EUR"
        assert audit_logger.recent_events[-1].event_type == AuditEventType.RATES_REFRESHED

        reloaded = make_service()
        assert reloaded.current().rate_for("USD") == 1.2

    def test_cache_with_other_base_is_ignored(self, make_service, storage, fixed_now):
        """Test that rates for a different base are not used."""
        cached = FxRates(base="USD", rates={"EUR": 0.9}, updated_at=fixed_now)
        storage.set("fx_rates", json.dumps(cached.model_dump(mode="json", by_alias=True)))
        assert make_service().current().base == "EUR"

    def test_unreadable_cache_is_ignored(self, make_service, storage):
        """Test that a corrupt cache falls back quietly."""
        storage.set("fx_rates", "{broken")
        assert make_service().current().rate_for("USD") == pytest.approx(1.08)

    def test_failed_fetch_retries_then_falls_back(self, make_service, audit_logger):
        """Test retry exhaustion and fallback."""
        fetcher = FakeFetcher(requests.ConnectionError("offline"))
        service = make_service(fetcher=fetcher)

        rates = asyncio.run(service.refresh())

        assert fetcher.calls == 2
        assert rates.rate_for("USD") == pytest.approx(1.08)
        assert audit_logger.recent_events[-1].event_type == AuditEventType.RATES_FALLBACK_USED

    def test_bad_payload_is_retried(self, make_service):
        """Test that payload errors are retried like network errors."""
        fetcher = FakeFetcher(ExchangeRateError("no rates"))
        asyncio.run(make_service(fetcher=fetcher).refresh())
        assert fetcher.calls == 2

    def test_wrong_base_falls_back(self, make_service, fixed_now, storage):
        """Test that a source answering for another base is not trusted."""
        fetched = FxRates(base="USD", rates={"EUR": 0.9}, updated_at=fixed_now)
        service = make_service(fetcher=FakeFetcher(fetched))
        assert asyncio.run(service.refresh()).base == "EUR"
        assert storage.get("fx_rates") is None

    def test_refresh_if_needed(self, make_service, fixed_now):
        """Test that fresh rates are not refetched."""
        fetched = FxRates(base="EUR", rates={"USD": 1.2}, updated_at=fixed_now)
        fetcher = FakeFetcher(fetched)
        service = make_service(fetcher=fetcher)

        asyncio.run(service.refresh_if_needed())
        asyncio.run(service.refresh_if_needed())

        assert fetcher.calls == 1

    def test_http_fetch(self, make_service, monkeypatch):
        """Test the default HTTP fetcher against a stubbed response."""
        seen = {}

        def fake_get(url, params, timeout):
            seen.update(url=url, params=params)
            return FakeResponse({"base": "EUR", "rates": {"USD": 1.1, "GBP": 0.85}})

        monkeypatch.setattr(requests, "get", fake_get)
        service = make_service(settings=ONLINE)

        rates = asyncio.run(service.refresh())

        assert seen == {"url": "https://rates.example/latest", "params": {"from": "EUR"}}
        assert rates.rate_for("USD") == 1.1
        assert rates.rates["EUR"] == 1.0

    def test_http_fetch_without_rates(self, make_service, monkeypatch):
        """Test that a payload without rates triggers the fallback."""
        monkeypatch.setattr(requests, "get", lambda url, params, timeout: FakeResponse({"error": "x"}))
        rates = asyncio.run(make_service(settings=ONLINE).refresh())
        assert rates.rate_for("USD") == pytest.approx(1.08)


class TestMoneyFormatter:
    """Tests for MoneyFormatter."""

    @pytest.fixture
    def formatter(self, make_service, store):
        return MoneyFormatter(make_service(), store, locale="en_US")

    def test_base_currency_format(self, formatter):
        """Test formatting without conversion."""
        assert formatter.format(1599) == "€15.99"
        assert formatter.to_display(1599) == 1599
        assert formatter.conversion_info() is None

    def test_switch_to_usd(self, formatter, store):
        """Test converted display and persisted preference."""
        assert asyncio.run(formatter.set_display_currency("usd")) == "USD"

        assert formatter.format(1000) == "$10.80"
        assert formatter.to_display(1000) == 1080
        assert formatter.conversion_info() == (
            "Converted from EUR using rates updated on Mar 13, 2024"
        )
        assert store.get_preferences().currency == "USD"

    def test_switch_without_persisting(self, formatter, store):
        """Test a display-only change."""
        asyncio.run(formatter.set_display_currency("GBP", persist=False))
        assert formatter.display_currency == "GBP"
        assert store.get_preferences().currency == "EUR"

    def test_unknown_currency_falls_back_to_base(self, formatter, store):
        """Test the fallback when no rate exists even after refreshing."""
        assert asyncio.run(formatter.set_display_currency("SEK")) == "EUR"
        assert formatter.display_currency == "EUR"
        assert store.get_preferences().currency == "EUR"

    def test_missing_rate_prefixes_code(self, formatter):
        """Test the unconverted rendering."""
        formatter.display_currency = "SEK"
        assert formatter.format(1000) == "SEK 10.00"
        assert formatter.to_display(1000) == 1000

    def test_display_currency_read_from_preferences(self, make_service, store):
        """Test that a new formatter starts from the stored preference."""
        store.update_preferences(currency="GBP")
        assert MoneyFormatter(make_service(), store).display_currency == "GBP"
