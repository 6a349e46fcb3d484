"""
Preference Models

Two historical storage shapes exist for user settings:
- LegacySettings: flat object with category names only
- UserPreferences: richer object with ordered Category entries

DESIGN DECISION: The current shape is always persisted inside a
versioned envelope. Shape detection happens once, through the
`version` field, instead of sniffing object structure on every read.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


PREFERENCES_VERSION = 2

# Fixed palette used when a category is created without an explicit color
CATEGORY_PALETTE = (
    "#ef4444",
    "#f97316",
    "#eab308",
    "#22c55e",
    "#3b82f6",
    "#8b5cf6",
    "#ec4899",
    "#6b7280",
)

DEFAULT_CATEGORY_NAMES = (
    "Food",
    "Groceries",
    "Transport",
    "Bills",
    "Entertainment",
    "Health",
    "Shopping",
    "Other",
)

DEFAULT_CURRENCY = "EUR"


class Theme(str, Enum):
    """Display theme preference."""
    SYSTEM = "system"
    LIGHT = "light"
    DARK = "dark"


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class Category(_CamelModel):
    """A user-defined spending bucket. Order in the preferences list matters."""

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=50)
    color: Optional[str] = Field(default=None, max_length=50)


def palette_color(index: int) -> str:
    """Color for the category at `index` in the ordered list."""
    return CATEGORY_PALETTE[index % len(CATEGORY_PALETTE)]


class UserPreferences(_CamelModel):
    """
    Current settings shape.

    `currency` is the display currency; the storage currency is fixed by
    configuration and never stored here.
    """

    currency: str = Field(
        default=DEFAULT_CURRENCY,
        pattern=r"^[A-Z]{3}$",
    )
    theme: Theme = Theme.SYSTEM
    monthly_budget_cents: int = Field(
        default=0,
        ge=0,
        le=100_000_000,
        strict=True,
    )
    categories: list[Category] = Field(default_factory=list)
    last_updated: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @model_validator(mode="after")
    def validate_unique_categories(self) -> "UserPreferences":
        """Category names and ids must be unique (names case-insensitively)."""
        names = [cat.name.lower() for cat in self.categories]
        if len(names) != len(set(names)):
            raise ValueError("Category names must be unique")
        ids = [cat.id for cat in self.categories]
        if len(ids) != len(set(ids)):
            raise ValueError("Category ids must be unique")
        return self

    def find_category(self, category_id: str) -> Optional[Category]:
        for cat in self.categories:
            if cat.id == category_id:
                return cat
        return None

    def has_category_name(self, name: str) -> bool:
        wanted = name.lower()
        return any(cat.name.lower() == wanted for cat in self.categories)


class LegacySettings(_CamelModel):
    """
    Historical flat settings shape.

    Only read during migration; never written.
    """

    currency: str = Field(..., pattern=r"^[A-Z]{3}$")
    categories: list[str] = Field(..., max_length=20)
    monthly_budget: Optional[int] = Field(
        default=None,
        ge=0,
        le=100_000_000,
        strict=True,
    )
    theme: Optional[Theme] = None

    @model_validator(mode="after")
    def validate_category_names(self) -> "LegacySettings":
        for name in self.categories:
            if not 1 <= len(name) <= 50:
                raise ValueError("Category names must be 1-50 characters")
        return self


class PreferencesEnvelope(BaseModel):
    """Versioned wrapper persisted under the settings key."""

    version: Literal[2] = PREFERENCES_VERSION
    preferences: UserPreferences


def default_categories() -> list[Category]:
    return [
        Category(id=str(index + 1), name=name, color=palette_color(index))
        for index, name in enumerate(DEFAULT_CATEGORY_NAMES)
    ]


def default_legacy_settings() -> dict:
    """Defaults merged under a partially stored legacy object."""
    return {
        "currency": DEFAULT_CURRENCY,
        "categories": list(DEFAULT_CATEGORY_NAMES),
        "theme": Theme.SYSTEM.value,
    }


def default_preferences(now: Optional[datetime] = None) -> UserPreferences:
    return UserPreferences(
        currency=DEFAULT_CURRENCY,
        theme=Theme.SYSTEM,
        monthly_budget_cents=0,
        categories=default_categories(),
        last_updated=now or datetime.now(timezone.utc),
    )
