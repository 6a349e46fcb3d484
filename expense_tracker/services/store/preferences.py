"""
Preferences Envelope and Migrations

Preferences are persisted as `{"version": N, "preferences": {...}}`.
Blobs without a version field predate the envelope and are version 1.

Each version step has exactly one migration function registered in
MIGRATIONS. `upgrade_preferences` applies them in order until the blob
reaches PREFERENCES_VERSION; the store then persists the result so the
old reader path is never exercised again.
"""

from collections.abc import Callable
from datetime import datetime
from typing import Any

import structlog
from pydantic import ValidationError

from expense_tracker.models.preferences import (
    PREFERENCES_VERSION,
    Category,
    LegacySettings,
    PreferencesEnvelope,
    Theme,
    UserPreferences,
    default_legacy_settings,
    palette_color,
)
from expense_tracker.validation.validator import validate_settings_data


logger = structlog.get_logger(__name__)


class MigrationError(Exception):
    """A stored preferences blob could not be brought to the current version."""
    pass


def detect_version(data: dict) -> int:
    version = data.get("version")
    if isinstance(version, int) and not isinstance(version, bool):
        return version
    return 1


def _envelope(preferences: UserPreferences) -> dict:
    return PreferencesEnvelope(preferences=preferences).model_dump(
        mode="json",
        by_alias=True,
        exclude_none=True,
    )


def _legacy_to_preferences(data: dict, now: datetime) -> UserPreferences:
    merged = {**default_legacy_settings(), **data}
    if not validate_settings_data(merged):
        logger.warning("legacy_settings_invalid_using_defaults")
        merged = default_legacy_settings()
    legacy = LegacySettings.model_validate(merged)

    categories = []
    seen = set()
    for name in legacy.categories:
        if name.lower() in seen:
            continue
        seen.add(name.lower())
        index = len(categories)
        categories.append(
            Category(id=str(index + 1), name=name, color=palette_color(index))
        )

    return UserPreferences(
        currency=legacy.currency,
        theme=legacy.theme or Theme.SYSTEM,
        monthly_budget_cents=legacy.monthly_budget or 0,
        categories=categories,
        last_updated=now,
    )


def migrate_v1_to_v2(data: dict, now: datetime) -> dict:
    """
    Wrap an unversioned blob in the v2 envelope.

    Two unversioned shapes were written historically: the flat legacy
    settings (category names only) and an early unwrapped preferences
    object (Category entries plus `monthlyBudgetCents`).
    """
    categories = data.get("categories")
    is_unwrapped_preferences = (
        "monthlyBudgetCents" in data
        and isinstance(categories, list)
        and all(isinstance(cat, dict) for cat in categories)
    )
    if is_unwrapped_preferences:
        try:
            preferences = UserPreferences.model_validate(
                {**data, "lastUpdated": data.get("lastUpdated") or now}
            )
            return _envelope(preferences)
        except ValidationError as e:
            raise MigrationError(f"Unreadable preferences object: {e}") from e

    return _envelope(_legacy_to_preferences(data, now))


MIGRATIONS: dict[int, Callable[[dict, datetime], dict]] = {
    1: migrate_v1_to_v2,
}


def upgrade_preferences(data: dict[str, Any], now: datetime) -> tuple[dict, int]:
    """
    Apply migrations until `data` is at PREFERENCES_VERSION.

    Returns:
        (upgraded_blob, original_version)

    Raises:
        MigrationError: If the version is unknown or a step fails
    """
    original = version = detect_version(data)
    if version > PREFERENCES_VERSION:
        raise MigrationError(f"Preferences version {version} is newer than supported")

    while version < PREFERENCES_VERSION:
        migrate = MIGRATIONS.get(version)
        if migrate is None:
            raise MigrationError(f"No migration from preferences version {version}")
        data = migrate(data, now)
        next_version = detect_version(data)
        if next_version <= version:
            raise MigrationError(f"Migration from version {version} did not advance")
        version = next_version

    return data, original
