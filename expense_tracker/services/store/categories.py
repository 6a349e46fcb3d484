"""
Category Bookkeeping

Categories live inside the preferences blob as an ordered list. Expenses
refer to them by NAME, not id - a soft reference:

- Rename and reorder touch preferences only; historical expenses keep
  the name they were recorded with.
- Delete is refused while any expense still carries the name.
- Merge is the one cascading operation: it rewrites every referencing
  expense to the target name, then drops the source category.
"""

from typing import Optional

import structlog

from expense_tracker.models.audit import AuditEventType
from expense_tracker.models.preferences import Category, UserPreferences, palette_color
from expense_tracker.services.storage import (
    CategoryInUseError,
    DuplicateError,
    NotFoundError,
)
from expense_tracker.services.store.records import RecordStore
from expense_tracker.validation import InvalidRecordError, sanitize_category


logger = structlog.get_logger(__name__)


def _clean_name(name: str) -> str:
    cleaned = sanitize_category(name)
    if not cleaned:
        raise InvalidRecordError("Category is required")
    return cleaned


class CategoryManager:
    """Category operations on top of a RecordStore."""

    def __init__(self, store: RecordStore):
        self.store = store

    def _find(self, preferences: UserPreferences, category_id: str) -> Category:
        category = preferences.find_category(category_id)
        if category is None:
            raise NotFoundError(f"Category not found: {category_id}")
        return category

    def _new_category(self, preferences: UserPreferences, name: str) -> Category:
        return Category(
            id=str(self.store.new_id()),
            name=name,
            color=palette_color(len(preferences.categories)),
        )

    def list_categories(self) -> list[Category]:
        return self.store.get_preferences().categories

    def count_category_expenses(self, name: str) -> int:
        """Number of expenses whose category string equals `name`."""
        return sum(1 for expense in self.store.get_expenses() if expense.category == name)

    def add_category(self, name: str, color: Optional[str] = None) -> Category:
        """
        Append a category to the ordered list.

        Raises:
            InvalidRecordError: If the name is empty after sanitization
            DuplicateError: If the name exists (case-insensitively)
        """
        self.store.check_rate_limit("add_category")
        name = _clean_name(name)

        preferences = self.store.get_preferences()
        if preferences.has_category_name(name):
            raise DuplicateError(f"Category already exists: {name}")

        category = self._new_category(preferences, name)
        if color:
            category.color = color
        preferences.categories.append(category)
        self.store.save_preferences(preferences)

        self.store.audit.log_category_event(
            AuditEventType.CATEGORY_ADDED, category.id, category.name
        )
        return category

    def rename_category(self, category_id: str, name: str) -> Optional[Category]:
        """
        Rename a category in place. Expenses are not rewritten.

        Returns:
            The renamed category, or None if the id is unknown
        """
        self.store.check_rate_limit("rename_category")
        name = _clean_name(name)

        preferences = self.store.get_preferences()
        category = preferences.find_category(category_id)
        if category is None:
            return None

        clash = any(
            other.name.lower() == name.lower() and other.id != category_id
            for other in preferences.categories
        )
        if clash:
            raise DuplicateError(f"Category already exists: {name}")

        old_name = category.name
        category.name = name
        self.store.save_preferences(preferences)

        self.store.audit.log_category_event(
            AuditEventType.CATEGORY_RENAMED,
            category.id,
            name,
            {"old_name": old_name},
        )
        return category

    def move_category(self, category_id: str, index: int) -> bool:
        """
        Move a category to position `index` (clamped to the list bounds).

        Returns:
            False if the id is unknown
        """
        self.store.check_rate_limit("move_category")
        preferences = self.store.get_preferences()
        category = preferences.find_category(category_id)
        if category is None:
            return False

        categories = [cat for cat in preferences.categories if cat.id != category_id]
        index = max(0, min(index, len(categories)))
        categories.insert(index, category)
        preferences.categories = categories
        self.store.save_preferences(preferences)
        return True

    def delete_category(self, category_id: str) -> bool:
        """
        Remove an unreferenced category.

        Returns:
            False if the id is unknown

        Raises:
            CategoryInUseError: If any expense still uses the category name
        """
        self.store.check_rate_limit("delete_category")
        preferences = self.store.get_preferences()
        category = preferences.find_category(category_id)
        if category is None:
            return False

        in_use = self.count_category_expenses(category.name)
        if in_use:
            raise CategoryInUseError(category.name, in_use)

        preferences.categories = [
            cat for cat in preferences.categories if cat.id != category_id
        ]
        self.store.save_preferences(preferences)

        self.store.audit.log_category_event(
            AuditEventType.CATEGORY_DELETED, category.id, category.name
        )
        return True

    def merge_category(self, from_id: str, into_id: str) -> int:
        """
        Rewrite every expense in `from_id` to `into_id`, then delete `from_id`.

        Returns:
            Number of expenses rewritten

        Raises:
            NotFoundError: If either id is unknown
            InvalidRecordError: If both ids are the same category
        """
        self.store.check_rate_limit("merge_category")
        if from_id == into_id:
            raise InvalidRecordError("Cannot merge a category into itself")

        preferences = self.store.get_preferences()
        source = self._find(preferences, from_id)
        target = self._find(preferences, into_id)

        now = self.store.now()
        expenses = self.store.get_expenses()
        rewritten = 0
        for index, expense in enumerate(expenses):
            if expense.category == source.name:
                expenses[index] = expense.model_copy(
                    update={"category": target.name, "updated_at": now}
                )
                rewritten += 1

        # Expenses first: a failed write must leave the source category in place
        if rewritten:
            self.store.persist_expenses(expenses)

        preferences.categories = [
            cat for cat in preferences.categories if cat.id != from_id
        ]
        self.store.save_preferences(preferences)

        logger.info(
            "category_merged",
            source=source.name,
            target=target.name,
            rewritten=rewritten,
        )
        self.store.audit.log_category_event(
            AuditEventType.CATEGORY_MERGED,
            source.id,
            source.name,
            {"into": target.name, "rewritten_expenses": rewritten},
        )
        return rewritten

    def ensure_categories(self, names: list[str]) -> list[Category]:
        """
        Append any of `names` not already present (case-insensitively).

        Used by CSV import to back-fill categories. Writes preferences at
        most once and returns the categories created, in order.
        """
        preferences = self.store.get_preferences()
        created = []
        for name in names:
            if not name or preferences.has_category_name(name):
                continue
            category = self._new_category(preferences, name)
            preferences.categories.append(category)
            created.append(category)

        if created:
            self.store.save_preferences(preferences)
            for category in created:
                self.store.audit.log_category_event(
                    AuditEventType.CATEGORY_ADDED, category.id, category.name
                )
        return created
