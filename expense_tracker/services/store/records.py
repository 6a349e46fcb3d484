"""
Record Store

CRUD over three independent collections - expenses, budgets and
preferences - each persisted as ONE JSON blob under its own key.

GUARANTEES:
- Every read validates the whole blob. Invalid data degrades to the
  empty/default value (with a warning), never to a partial subset.
- Every write re-validates the whole candidate collection and is
  refused if any member is invalid. Nothing is partially applied.
- Every successful mutation results in exactly one full-collection write.
- Mutating convenience operations consult the rate limiter first.

TRADEOFFS:
- Read-modify-write with no locking; a single writer is assumed and a
  second concurrent writer can lose updates.
"""

import json
from collections.abc import Callable, Mapping, Sequence
from datetime import datetime, timezone
from typing import Any, Optional, Union
from uuid import UUID, uuid4

import structlog
from pydantic import TypeAdapter, ValidationError

from expense_tracker.audit import AuditLogger
from expense_tracker.config import RateLimitSettings, StoreSettings, get_settings
from expense_tracker.models.expense import (
    Budget,
    Expense,
    ExpenseDraft,
    ExpenseUpdate,
    MAX_NOTE_LENGTH,
    MAX_PAYMENT_METHOD_LENGTH,
)
from expense_tracker.models.preferences import (
    PREFERENCES_VERSION,
    PreferencesEnvelope,
    UserPreferences,
    default_preferences,
)
from expense_tracker.services.rate_limit import RateLimiter, RateLimitExceededError
from expense_tracker.services.storage import KeyValueStorage, StorageCapacityError
from expense_tracker.services.store.preferences import (
    MigrationError,
    detect_version,
    upgrade_preferences,
)
from expense_tracker.validation import (
    InvalidRecordError,
    sanitize_category,
    sanitize_text,
    validate_budget_data,
    validate_expense,
    validate_expense_data,
    validate_preferences_data,
)


logger = structlog.get_logger(__name__)

_EXPENSE_LIST = TypeAdapter(list[Expense])
_BUDGET_LIST = TypeAdapter(list[Budget])

# Marker for a blob that exists but is not JSON
_UNREADABLE = object()

# Fields an update may not clear
_REQUIRED_FIELDS = ("amount_cents", "category", "paid_at", "currency")

IdLike = Union[UUID, str]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_uuid(value: IdLike) -> Optional[UUID]:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return None


def _sanitized(fields: dict[str, Any]) -> dict[str, Any]:
    """Clean the free-text fields present in `fields`. Empty optional text becomes None."""
    cleaned = dict(fields)
    if "category" in cleaned:
        cleaned["category"] = sanitize_category(cleaned["category"])
        if not cleaned["category"]:
            raise InvalidRecordError("Category is required")
    if "note" in cleaned:
        cleaned["note"] = sanitize_text(cleaned["note"], MAX_NOTE_LENGTH) or None
    if "payment_method" in cleaned:
        cleaned["payment_method"] = (
            sanitize_text(cleaned["payment_method"], MAX_PAYMENT_METHOD_LENGTH) or None
        )
    return cleaned


def _validation_messages(error: ValidationError) -> list[str]:
    return [
        f"{'.'.join(str(part) for part in item['loc'])}: {item['msg']}"
        for item in error.errors()
    ]


class RecordStore:
    """
    The only entry point for reading and writing persisted state.

    Collaborators are injected so tests can control time, ids and the
    rate-limit window.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        rate_limiter: Optional[RateLimiter] = None,
        audit_logger: Optional[AuditLogger] = None,
        clock: Callable[[], datetime] = _utc_now,
        id_factory: Callable[[], UUID] = uuid4,
        base_currency: Optional[str] = None,
        store_settings: Optional[StoreSettings] = None,
        rate_limit_settings: Optional[RateLimitSettings] = None,
    ):
        settings = get_settings()
        self._storage = storage
        self._keys = store_settings or settings.store
        limits = rate_limit_settings or settings.rate_limit
        self._rate_limiter = rate_limiter or RateLimiter(
            max_ops=limits.max_ops,
            window_seconds=limits.window_seconds,
        )
        self._save_max_ops = limits.save_max_ops
        self._audit = audit_logger or AuditLogger()
        self._clock = clock
        self._id_factory = id_factory
        self.base_currency = base_currency or settings.currency.base_currency

    # -------------------------------------------------------------------------
    # Shared helpers
    # -------------------------------------------------------------------------

    @property
    def audit(self) -> AuditLogger:
        return self._audit

    def now(self) -> datetime:
        return self._clock()

    def new_id(self) -> UUID:
        return self._id_factory()

    def check_rate_limit(self, operation: str, max_ops: Optional[int] = None) -> None:
        """
        Count one call of a mutating operation.

        Raises:
            RateLimitExceededError: If the operation is over its limit
        """
        if not self._rate_limiter.check(operation, max_ops=max_ops):
            self._audit.log_rate_limited(
                operation,
                max_ops if max_ops is not None else self._rate_limiter.default_max_ops,
            )
            raise RateLimitExceededError(operation)

    def _read_json(self, key: str) -> Any:
        raw = self._storage.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("stored_blob_unreadable", key=key)
            return _UNREADABLE

    def _write_json(self, key: str, collection: str, data: Any) -> None:
        payload = json.dumps(data, ensure_ascii=False, separators=(",", ":"))
        if not self._storage.set(key, payload):
            self._audit.log_save_failed(collection, "storage write refused")
            raise StorageCapacityError(
                f"Failed to save {collection} - storage may be full"
            )

    # -------------------------------------------------------------------------
    # Expenses
    # -------------------------------------------------------------------------

    def get_expenses(self) -> list[Expense]:
        """All stored expenses, or [] if none are stored or the blob is invalid."""
        data = self._read_json(self._keys.expenses_key)
        if data is None:
            return []
        if data is _UNREADABLE or not validate_expense_data(data):
            logger.warning("invalid_expense_data_returning_empty")
            self._audit.log_corrupt_data("expenses")
            return []
        return _EXPENSE_LIST.validate_python(data)

    def get_expense(self, expense_id: IdLike) -> Optional[Expense]:
        wanted = _as_uuid(expense_id)
        for expense in self.get_expenses():
            if expense.id == wanted:
                return expense
        return None

    def save_expenses(self, expenses: Sequence[Expense]) -> None:
        """
        Replace the whole expense collection.

        Raises:
            RateLimitExceededError: Too many direct saves in the current window
            InvalidRecordError: If any member fails validation
            StorageCapacityError: If the write fails
        """
        self.check_rate_limit("save_expenses", max_ops=self._save_max_ops)
        self.persist_expenses(expenses)
        self._audit.log_expenses_saved(len(expenses))

    def persist_expenses(self, expenses: Sequence[Expense]) -> None:
        """
        Validate and write the expense collection without counting a save.

        For mutations that were already rate-limited under their own
        operation name.
        """
        data = [
            expense.to_storage() if isinstance(expense, Expense) else expense
            for expense in expenses
        ]
        if not validate_expense_data(data):
            raise InvalidRecordError("Invalid expense data cannot be saved")
        self._write_json(self._keys.expenses_key, "expenses", data)

    def add_expense(self, draft: Union[ExpenseDraft, Mapping[str, Any]]) -> Expense:
        """
        Validate, sanitize and append a new expense.

        Raises:
            RateLimitExceededError: Too many adds in the current window
            InvalidRecordError: Input fails user-facing validation; the
                itemized messages are on `.messages`
            StorageCapacityError: If the write fails
        """
        self.check_rate_limit("add_expense")
        now = self.now()

        # Raw input first so that wrong types are itemized with everything else
        raw = draft.model_dump() if isinstance(draft, ExpenseDraft) else dict(draft)
        errors = validate_expense(raw, today=now.date(), require_date=True)
        if errors:
            raise InvalidRecordError(errors[0], errors)

        if not isinstance(draft, ExpenseDraft):
            try:
                draft = ExpenseDraft.model_validate(raw)
            except ValidationError as e:
                messages = _validation_messages(e)
                raise InvalidRecordError(messages[0], messages) from e

        fields = _sanitized(draft.model_dump(exclude={"currency"}))
        try:
            expense = Expense(
                id=self.new_id(),
                currency=draft.currency or self.base_currency,
                created_at=now,
                updated_at=now,
                **fields,
            )
        except ValidationError as e:
            messages = _validation_messages(e)
            raise InvalidRecordError(messages[0], messages) from e

        expenses = self.get_expenses()
        expenses.append(expense)
        self.persist_expenses(expenses)

        self._audit.log_expense_added(expense.id, expense.category, expense.amount_cents)
        return expense

    def update_expense(
        self,
        expense_id: IdLike,
        changes: Union[ExpenseUpdate, Mapping[str, Any]],
    ) -> Optional[Expense]:
        """
        Merge the supplied fields over an existing expense.

        Fields left out of `changes` keep their stored value. Required
        fields explicitly set to None are ignored; optional text fields
        set to None are cleared.

        Returns:
            The updated expense, or None if no expense has this id
        """
        self.check_rate_limit("update_expense")
        if isinstance(changes, ExpenseUpdate):
            raw = changes.model_dump(exclude_unset=True)
        else:
            raw = dict(changes)
        updates = {
            field: value
            for field, value in raw.items()
            if not (field in _REQUIRED_FIELDS and value is None)
        }

        wanted = _as_uuid(expense_id)
        expenses = self.get_expenses()
        index = next(
            (i for i, expense in enumerate(expenses) if expense.id == wanted),
            None,
        )
        if index is None:
            return None

        now = self.now()
        stored = expenses[index].model_dump()

        # Stored history keeps its date unless the edit changes it
        checked = {**stored, **updates}
        if "paid_at" not in updates:
            checked.pop("paid_at")
        errors = validate_expense(checked, today=now.date())
        if errors:
            raise InvalidRecordError(errors[0], errors)

        try:
            updates = ExpenseUpdate.model_validate(updates).model_dump(exclude_unset=True)
        except ValidationError as e:
            messages = _validation_messages(e)
            raise InvalidRecordError(messages[0], messages) from e

        merged = {**stored, **_sanitized(updates), "updated_at": now}
        try:
            updated = Expense.model_validate(merged)
        except ValidationError as e:
            messages = _validation_messages(e)
            raise InvalidRecordError(messages[0], messages) from e

        expenses[index] = updated
        self.persist_expenses(expenses)

        self._audit.log_expense_updated(updated.id, sorted(updates))
        return updated

    def delete_expense(self, expense_id: IdLike) -> bool:
        """Remove an expense. Returns False (and writes nothing) if it is absent."""
        self.check_rate_limit("delete_expense")
        wanted = _as_uuid(expense_id)
        expenses = self.get_expenses()
        remaining = [expense for expense in expenses if expense.id != wanted]

        if len(remaining) == len(expenses):
            return False

        self.persist_expenses(remaining)
        self._audit.log_expense_deleted(wanted)
        return True

    # -------------------------------------------------------------------------
    # Budgets
    # -------------------------------------------------------------------------

    def get_budgets(self) -> list[Budget]:
        data = self._read_json(self._keys.budgets_key)
        if data is None:
            return []
        if data is _UNREADABLE or not validate_budget_data(data):
            logger.warning("invalid_budget_data_returning_empty")
            self._audit.log_corrupt_data("budgets")
            return []
        return _BUDGET_LIST.validate_python(data)

    def get_budget(self, year_month: str, category: Optional[str] = None) -> Optional[Budget]:
        for budget in self.get_budgets():
            if budget.key == (year_month, category):
                return budget
        return None

    def save_budgets(self, budgets: Sequence[Budget]) -> None:
        """
        Replace the whole budget collection.

        Raises:
            InvalidRecordError: If any member is invalid or a
                (year_month, category) pair repeats
            StorageCapacityError: If the write fails
        """
        data = [
            budget.to_storage() if isinstance(budget, Budget) else budget
            for budget in budgets
        ]
        if not validate_budget_data(data):
            raise InvalidRecordError("Invalid budget data cannot be saved")
        self._write_json(self._keys.budgets_key, "budgets", data)

    def set_budget(
        self,
        year_month: str,
        limit_cents: int,
        category: Optional[str] = None,
    ) -> Budget:
        """
        Create or replace the budget for (year_month, category).

        Replacing keeps the existing budget's id.
        """
        self.check_rate_limit("set_budget")
        if category is not None:
            category = sanitize_category(category)
            # An empty name would address the overall budget instead
            if not category:
                raise InvalidRecordError("Category is required")

        budgets = self.get_budgets()
        index = next(
            (i for i, budget in enumerate(budgets) if budget.key == (year_month, category)),
            None,
        )
        budget_id = budgets[index].id if index is not None else self.new_id()

        try:
            budget = Budget(
                id=budget_id,
                year_month=year_month,
                category=category,
                limit_cents=limit_cents,
            )
        except ValidationError as e:
            raise InvalidRecordError("Invalid budget input", [str(e)]) from e

        if index is not None:
            budgets[index] = budget
        else:
            budgets.append(budget)
        self.save_budgets(budgets)

        self._audit.log_budget_set(
            budget_id=budget.id,
            year_month=year_month,
            category=category,
            limit_cents=limit_cents,
            replaced=index is not None,
        )
        return budget

    def delete_budget(self, budget_id: IdLike) -> bool:
        self.check_rate_limit("delete_budget")
        wanted = _as_uuid(budget_id)
        budgets = self.get_budgets()
        remaining = [budget for budget in budgets if budget.id != wanted]

        if len(remaining) == len(budgets):
            return False

        self.save_budgets(remaining)
        self._audit.log_budget_deleted(wanted)
        return True

    # -------------------------------------------------------------------------
    # Preferences
    # -------------------------------------------------------------------------

    def get_preferences(self) -> UserPreferences:
        """
        Current preferences.

        Unversioned (legacy) blobs are migrated and persisted on first
        read. Missing or invalid data yields the defaults.
        """
        now = self.now()
        data = self._read_json(self._keys.settings_key)
        if data is None:
            return default_preferences(now)
        if data is _UNREADABLE or not isinstance(data, dict):
            return self._corrupt_preferences(now)

        migrated_from = None
        if detect_version(data) != PREFERENCES_VERSION:
            try:
                data, migrated_from = upgrade_preferences(data, now)
            except MigrationError as e:
                logger.warning("preferences_migration_failed", error=str(e))
                return self._corrupt_preferences(now)

        if not validate_preferences_data(data):
            return self._corrupt_preferences(now)

        preferences = PreferencesEnvelope.model_validate(data).preferences
        if migrated_from is not None:
            self._audit.log_preferences_migrated(migrated_from, PREFERENCES_VERSION)
            try:
                self._write_json(self._keys.settings_key, "preferences", data)
            except StorageCapacityError as e:
                logger.error("migrated_preferences_not_persisted", error=str(e))
        return preferences

    def _corrupt_preferences(self, now: datetime) -> UserPreferences:
        logger.warning("invalid_settings_data_using_defaults")
        self._audit.log_corrupt_data("preferences")
        return default_preferences(now)

    def save_preferences(self, preferences: UserPreferences) -> UserPreferences:
        """
        Persist preferences, stamping `last_updated`.

        Raises:
            InvalidRecordError: If the preferences fail validation
            StorageCapacityError: If the write fails
        """
        stamped = preferences.model_copy(update={"last_updated": self.now()})
        data = PreferencesEnvelope(preferences=stamped).model_dump(
            mode="json",
            by_alias=True,
            exclude_none=True,
        )
        if not validate_preferences_data(data):
            raise InvalidRecordError("Invalid settings data cannot be saved")
        self._write_json(self._keys.settings_key, "preferences", data)
        self._audit.log_preferences_saved(stamped.currency, len(stamped.categories))
        return PreferencesEnvelope.model_validate(data).preferences

    def update_preferences(self, **changes: Any) -> UserPreferences:
        """Apply field changes (snake_case names) to the stored preferences."""
        self.check_rate_limit("update_preferences")
        current = self.get_preferences()
        try:
            updated = UserPreferences.model_validate({**current.model_dump(), **changes})
        except ValidationError as e:
            raise InvalidRecordError("Invalid settings input", [str(e)]) from e
        return self.save_preferences(updated)
