"""
Audit Models for the Expense Tracker

Every state-changing action on the local store is logged for audit
purposes. This provides:
1. Traceability of every mutation of the user's financial history
2. Debugging information when stored data turns out to be corrupt
3. A record of migrations and dropped data

DESIGN DECISION: Audit events are emitted, never edited. They carry only
ids, counts and category names - never full notes.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Expenses
    EXPENSE_ADDED = "expense_added"
    EXPENSE_UPDATED = "expense_updated"
    EXPENSE_DELETED = "expense_deleted"
    EXPENSES_SAVED = "expenses_saved"

    # Budgets
    BUDGET_SET = "budget_set"
    BUDGET_DELETED = "budget_deleted"

    # Preferences and categories
    PREFERENCES_SAVED = "preferences_saved"
    PREFERENCES_MIGRATED = "preferences_migrated"
    CATEGORY_ADDED = "category_added"
    CATEGORY_RENAMED = "category_renamed"
    CATEGORY_DELETED = "category_deleted"
    CATEGORY_MERGED = "category_merged"

    # Integrity
    CORRUPT_DATA_DISCARDED = "corrupt_data_discarded"
    SAVE_FAILED = "save_failed"
    RATE_LIMITED = "rate_limited"

    # Interchange
    CSV_EXPORTED = "csv_exported"
    CSV_IMPORTED = "csv_imported"

    # Exchange rates
    RATES_REFRESHED = "rates_refreshed"
    RATES_FALLBACK_USED = "rates_fallback_used"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AuditEvent(BaseModel):
    """A single audit event."""

    event_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # What entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'expense', 'budget', 'category')"
    )
    entity_id: Optional[str] = None

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.expense_added(expense_id, category, amount_cents)
        event = AuditEventBuilder.corrupt_data_discarded("expenses")
    """

    @staticmethod
    def expense_added(
        expense_id: UUID,
        category: str,
        amount_cents: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_ADDED,
            entity_type="expense",
            entity_id=str(expense_id),
            description=f"Expense added in {category}",
            details={
                "category": category,
                "amount_cents": amount_cents,
            },
        )

    @staticmethod
    def expense_updated(expense_id: UUID, fields: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_UPDATED,
            entity_type="expense",
            entity_id=str(expense_id),
            description=f"Expense updated: {', '.join(fields) or 'no fields'}",
            details={"fields": fields},
        )

    @staticmethod
    def expense_deleted(expense_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_DELETED,
            entity_type="expense",
            entity_id=str(expense_id),
            description="Expense deleted",
        )

    @staticmethod
    def budget_set(
        budget_id: UUID,
        year_month: str,
        category: Optional[str],
        limit_cents: int,
        replaced: bool,
    ) -> AuditEvent:
        scope = category or "overall"
        return AuditEvent(
            event_type=AuditEventType.BUDGET_SET,
            entity_type="budget",
            entity_id=str(budget_id),
            description=f"Budget {'replaced' if replaced else 'created'} for {year_month} ({scope})",
            details={
                "year_month": year_month,
                "category": category,
                "limit_cents": limit_cents,
                "replaced": replaced,
            },
        )

    @staticmethod
    def budget_deleted(budget_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_DELETED,
            entity_type="budget",
            entity_id=str(budget_id),
            description="Budget deleted",
        )

    @staticmethod
    def expenses_saved(count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSES_SAVED,
            entity_type="expenses",
            description=f"Expense collection replaced ({count} records)",
            details={"count": count},
        )

    @staticmethod
    def preferences_saved(currency: str, category_count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PREFERENCES_SAVED,
            entity_type="preferences",
            description="Preferences saved",
            details={
                "currency": currency,
                "category_count": category_count,
            },
        )

    @staticmethod
    def category_changed(
        event_type: AuditEventType,
        category_id: str,
        name: str,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            entity_type="category",
            entity_id=category_id,
            description=f"Category {event_type.value.split('_', 1)[1]}: {name}",
            details=details or {},
        )

    @staticmethod
    def preferences_migrated(from_version: int, to_version: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PREFERENCES_MIGRATED,
            entity_type="preferences",
            description=f"Preferences migrated from v{from_version} to v{to_version}",
            details={
                "from_version": from_version,
                "to_version": to_version,
            },
        )

    @staticmethod
    def corrupt_data_discarded(collection: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CORRUPT_DATA_DISCARDED,
            severity=AuditSeverity.WARNING,
            entity_type=collection,
            description=f"Invalid {collection} data detected, using defaults",
        )

    @staticmethod
    def save_failed(collection: str, reason: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type=collection,
            description=f"Failed to save {collection}",
            error_message=reason,
        )

    @staticmethod
    def rate_limited(operation: str, max_ops: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RATE_LIMITED,
            severity=AuditSeverity.WARNING,
            description=f"Rate limit hit for {operation}",
            details={
                "operation": operation,
                "max_ops": max_ops,
            },
        )

    @staticmethod
    def csv_imported(imported: int, skipped: int, created_categories: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CSV_IMPORTED,
            entity_type="expenses",
            description=f"CSV import: {imported} imported, {skipped} skipped",
            details={
                "imported": imported,
                "skipped": skipped,
                "created_categories": created_categories,
            },
        )

    @staticmethod
    def csv_exported(count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CSV_EXPORTED,
            entity_type="expenses",
            description=f"CSV export of {count} expenses",
            details={"count": count},
        )

    @staticmethod
    def rates_refreshed(base: str, currencies: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RATES_REFRESHED,
            entity_type="fx_rates",
            description=f"Exchange rates refreshed for base {base}",
            details={"currencies": currencies},
        )

    @staticmethod
    def rates_fallback_used(error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RATES_FALLBACK_USED,
            severity=AuditSeverity.WARNING,
            entity_type="fx_rates",
            description="Failed to fetch exchange rates, using fallback table",
            error_message=error_message,
        )
