"""
Audit Logger

DESIGN DECISION: Every mutation of the local store is logged.
This provides:
1. Traceability of changes to the user's financial history
2. A visible trail when corrupt data is discarded on read
3. Debugging capability for imports and migrations

The audit logger:
- Is synchronous, like the store it observes
- Never raises into the caller (logging must not break a save)
"""

import logging
from typing import Optional
from uuid import UUID

import structlog

from expense_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


_PROCESSORS = [
    structlog.stdlib.filter_by_level,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.stdlib.PositionalArgumentsFormatter(),
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
    structlog.processors.UnicodeDecoder(),
    structlog.processors.JSONRenderer(),
]

# Configure structlog for local logging
structlog.configure(
    processors=_PROCESSORS,
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(log_level: str = "INFO") -> None:
    """
    Route structured logs to stderr at `log_level`.

    structlog filters through the stdlib level, so the stdlib root logger
    has to be configured for anything below WARNING to show.
    """
    logging.basicConfig(format="%(message)s", level=log_level.upper())
    logging.getLogger().setLevel(log_level.upper())


class AuditLogger:
    """
    Central audit logging service.

    Logs events to the structured local log. Events are also kept in a
    bounded in-memory trail so callers (and tests) can inspect what the
    store just did.
    """

    def __init__(self, trail_size: int = 200):
        self._logger = structlog.get_logger("expense_tracker.audit")
        self._trail: list[AuditEvent] = []
        self._trail_size = trail_size

    @property
    def recent_events(self) -> list[AuditEvent]:
        """Most recent events, oldest first."""
        return list(self._trail)

    def log(self, event: AuditEvent) -> None:
        """Log an audit event."""
        self._trail.append(event)
        if len(self._trail) > self._trail_size:
            del self._trail[0]

        log_dict = event.to_log_dict()
        try:
            if event.severity == AuditSeverity.ERROR:
                self._logger.error("audit_event", **log_dict)
            elif event.severity == AuditSeverity.WARNING:
                self._logger.warning("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception as e:
            # Log failure but don't raise
            logging.getLogger(__name__).error("audit logging failed: %s", e)

    def log_expense_added(self, expense_id: UUID, category: str, amount_cents: int) -> None:
        self.log(AuditEventBuilder.expense_added(expense_id, category, amount_cents))

    def log_expense_updated(self, expense_id: UUID, fields: list[str]) -> None:
        self.log(AuditEventBuilder.expense_updated(expense_id, fields))

    def log_expense_deleted(self, expense_id: UUID) -> None:
        self.log(AuditEventBuilder.expense_deleted(expense_id))

    def log_budget_set(
        self,
        budget_id: UUID,
        year_month: str,
        category: Optional[str],
        limit_cents: int,
        replaced: bool,
    ) -> None:
        self.log(AuditEventBuilder.budget_set(
            budget_id=budget_id,
            year_month=year_month,
            category=category,
            limit_cents=limit_cents,
            replaced=replaced,
        ))

    def log_budget_deleted(self, budget_id: UUID) -> None:
        self.log(AuditEventBuilder.budget_deleted(budget_id))

    def log_expenses_saved(self, count: int) -> None:
        self.log(AuditEventBuilder.expenses_saved(count))

    def log_preferences_saved(self, currency: str, category_count: int) -> None:
        self.log(AuditEventBuilder.preferences_saved(currency, category_count))

    def log_category_event(
        self,
        event_type: AuditEventType,
        category_id: str,
        name: str,
        details: Optional[dict] = None,
    ) -> None:
        self.log(AuditEventBuilder.category_changed(event_type, category_id, name, details))

    def log_preferences_migrated(self, from_version: int, to_version: int) -> None:
        self.log(AuditEventBuilder.preferences_migrated(from_version, to_version))

    def log_corrupt_data(self, collection: str) -> None:
        self.log(AuditEventBuilder.corrupt_data_discarded(collection))

    def log_save_failed(self, collection: str, reason: str) -> None:
        self.log(AuditEventBuilder.save_failed(collection, reason))

    def log_rate_limited(self, operation: str, max_ops: int) -> None:
        self.log(AuditEventBuilder.rate_limited(operation, max_ops))

    def log_csv_imported(self, imported: int, skipped: int, created_categories: int) -> None:
        self.log(AuditEventBuilder.csv_imported(imported, skipped, created_categories))

    def log_csv_exported(self, count: int) -> None:
        self.log(AuditEventBuilder.csv_exported(count))

    def log_rates_refreshed(self, base: str, currencies: int) -> None:
        self.log(AuditEventBuilder.rates_refreshed(base, currencies))

    def log_rates_fallback(self, error_message: str) -> None:
        self.log(AuditEventBuilder.rates_fallback_used(error_message))
