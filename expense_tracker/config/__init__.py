"""Configuration package."""

from expense_tracker.config.settings import (
    AppSettings,
    CurrencySettings,
    RateLimitSettings,
    Settings,
    StoreSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "CurrencySettings",
    "RateLimitSettings",
    "Settings",
    "StoreSettings",
    "get_settings",
    "validate_all_settings",
]
