"""
Main Orchestrator for the Expense Tracker

This module ties together all the components and defines the
end-to-end flows the UI layer calls:
1. Settings save (validate → delay → persist → apply display currency)
2. Import/export (CSV text ↔ expense collection)

DESIGN DECISION: The orchestrator owns no state of its own.
- Every persisted change goes through the RecordStore
- Every flow is constructed with its collaborators injected
- Every step that changes data is audited by the store

The UI never reads or writes persisted blobs directly.
"""

import asyncio
from dataclasses import dataclass
from typing import Optional, Union

import structlog

from expense_tracker.audit import AuditLogger, configure_logging
from expense_tracker.codec import (
    export_to_csv,
    import_csv,
    parse_csv,
)
from expense_tracker.config import CurrencySettings, get_settings
from expense_tracker.models.expense import ImportResult
from expense_tracker.models.preferences import UserPreferences
from expense_tracker.services.currency import ExchangeRateService, MoneyFormatter
from expense_tracker.services.currency.rates import RatesFetcher
from expense_tracker.services.rate_limit import RateLimiter
from expense_tracker.services.storage import JsonFileStorage, KeyValueStorage
from expense_tracker.services.store import CategoryManager, RecordStore
from expense_tracker.validation import InvalidRecordError


logger = structlog.get_logger(__name__)


class SettingsSaveFlow:
    """
    Orchestrates saving the settings form.

    Flow:
    1. Validate → non-negative budget, supported display currency
    2. Wait → short artificial delay so the save feels deliberate
    3. Persist → one preferences write
    4. Apply → switch the display currency (falls back to base if no rate)

    Nothing is persisted if validation fails. The delay can only be
    cancelled by cancelling the awaiting task.
    """

    def __init__(
        self,
        store: RecordStore,
        formatter: MoneyFormatter,
        currency_settings: Optional[CurrencySettings] = None,
        save_delay_seconds: Optional[float] = None,
    ):
        self._store = store
        self._formatter = formatter
        self._currency_settings = currency_settings or get_settings().currency
        if save_delay_seconds is None:
            save_delay_seconds = get_settings().app.settings_save_delay_seconds
        self._delay = save_delay_seconds

    def validate(self, preferences: UserPreferences) -> list[str]:
        errors = []
        if preferences.monthly_budget_cents < 0:
            errors.append("Monthly budget cannot be negative")
        if preferences.currency not in self._currency_settings.supported_list:
            errors.append("Unsupported currency selected")
        return errors

    async def save(self, preferences: UserPreferences) -> UserPreferences:
        """
        Validate, persist and apply a settings form.

        Returns:
            The preferences as stored

        Raises:
            InvalidRecordError: If the form fails validation
            RateLimitExceededError: Too many settings saves in the window
            StorageCapacityError: If the write fails
        """
        errors = self.validate(preferences)
        if errors:
            raise InvalidRecordError(errors[0], errors)

        self._store.check_rate_limit("save_preferences")
        await asyncio.sleep(self._delay)

        saved = self._store.save_preferences(preferences)
        applied = await self._formatter.set_display_currency(saved.currency, persist=False)
        logger.info(
            "settings_saved",
            currency=saved.currency,
            display_currency=applied,
            theme=saved.theme.value,
        )
        return saved


class ImportExportFlow:
    """
    Orchestrates CSV import and export.

    Import is two-step in the UI: `preview` (dry run, no writes), then
    `import_file` (one expense write plus at most one preferences write
    for back-filled categories).
    """

    def __init__(
        self,
        store: RecordStore,
        categories: Optional[CategoryManager] = None,
    ):
        self._store = store
        self._categories = categories or CategoryManager(store)

    def export(self) -> str:
        """
        CSV text for every stored expense.

        Raises:
            EmptyExportError: If there is nothing to export
        """
        expenses = self._store.get_expenses()
        content = export_to_csv(expenses)
        self._store.audit.log_csv_exported(len(expenses))
        return content

    def preview(self, content: Union[str, bytes]) -> ImportResult:
        return parse_csv(content)

    def import_file(
        self,
        content: Union[str, bytes],
        allow_duplicates: bool = False,
    ) -> ImportResult:
        return import_csv(
            content,
            self._store,
            allow_duplicates=allow_duplicates,
            categories=self._categories,
        )


@dataclass
class AppComponents:
    """Everything the UI layer needs, wired to one storage backend."""

    store: RecordStore
    categories: CategoryManager
    rates: ExchangeRateService
    formatter: MoneyFormatter
    settings_flow: SettingsSaveFlow
    import_export_flow: ImportExportFlow


def create_app_components(
    storage: Optional[KeyValueStorage] = None,
    fetcher: Optional[RatesFetcher] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        storage: Persistence backend. Defaults to JSON files in the
                 configured data directory.
        fetcher: Exchange-rate fetcher. Defaults to HTTP against the
                 configured rates URL (offline if none).

    Returns:
        AppComponents sharing one store, rate limiter and audit logger
    """
    settings = get_settings()
    configure_logging(settings.app.log_level)

    if storage is None:
        store_settings = settings.store
        storage = JsonFileStorage(
            store_settings.data_dir,
            capacity_bytes=store_settings.capacity_bytes,
        )

    audit_logger = AuditLogger()
    rate_limiter = RateLimiter(
        max_ops=settings.rate_limit.max_ops,
        window_seconds=settings.rate_limit.window_seconds,
    )
    store = RecordStore(
        storage,
        rate_limiter=rate_limiter,
        audit_logger=audit_logger,
    )
    categories = CategoryManager(store)
    rates = ExchangeRateService(
        storage,
        fetcher=fetcher,
        audit_logger=audit_logger,
    )
    formatter = MoneyFormatter(rates, store, locale=settings.currency.locale)

    return AppComponents(
        store=store,
        categories=categories,
        rates=rates,
        formatter=formatter,
        settings_flow=SettingsSaveFlow(store, formatter),
        import_export_flow=ImportExportFlow(store, categories),
    )
