"""
Configuration Management for the Expense Tracker

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Storage keys, rate limits and currency behaviour are all tunable
without touching the store itself, and are validated at startup.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StoreSettings(BaseSettings):
    """Local persistence configuration."""

    model_config = SettingsConfigDict(
        env_prefix="EXPENSE_STORE_",
        extra="ignore"
    )

    data_dir: Path = Field(
        default=Path.home() / ".expense-tracker",
        description="Directory holding one JSON blob per storage key"
    )
    capacity_bytes: Optional[int] = Field(
        default=5 * 1024 * 1024,
        ge=1,
        description="Total size allowed for all blobs (None = unlimited)"
    )

    # Storage keys
    expenses_key: str = Field(default="expenses")
    budgets_key: str = Field(default="budgets")
    settings_key: str = Field(default="settings")
    fx_rates_key: str = Field(default="fx_rates")


class RateLimitSettings(BaseSettings):
    """Backpressure for mutating store operations."""

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        extra="ignore"
    )

    max_ops: int = Field(
        default=100,
        ge=1,
        description="Allowed mutations per operation kind per window"
    )
    save_max_ops: int = Field(
        default=50,
        ge=1,
        description="Allowed direct full-collection saves per window"
    )
    window_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Length of the counting window"
    )


class CurrencySettings(BaseSettings):
    """Currency conversion and display formatting configuration."""

    model_config = SettingsConfigDict(
        env_prefix="CURRENCY_",
        extra="ignore"
    )

    base_currency: str = Field(
        default="EUR",
        pattern=r"^[A-Z]{3}$",
        description="Fixed storage currency"
    )
    supported_currencies: str = Field(
        default="EUR,USD,GBP,JPY,CAD,AUD,CHF,CNY",
        description="Comma-separated list of selectable display currencies"
    )
    rates_url: Optional[str] = Field(
        default="https://api.frankfurter.app/latest",
        description="Exchange-rate endpoint; empty means offline mode"
    )
    staleness_hours: float = Field(
        default=24.0,
        gt=0,
        description="Cached rates older than this are refreshed"
    )
    request_timeout_seconds: float = Field(default=10.0, gt=0)
    fetch_attempts: int = Field(default=3, ge=1, le=10)
    retry_wait_seconds: float = Field(
        default=2.0,
        ge=0,
        description="Base wait for exponential backoff between attempts"
    )
    locale: str = Field(
        default="en_US",
        description="Locale used for currency formatting"
    )

    @field_validator("rates_url")
    @classmethod
    def empty_url_is_offline(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        return v

    @property
    def supported_list(self) -> list[str]:
        return [
            code.strip().upper()
            for code in self.supported_currencies.split(",")
            if code.strip()
        ]


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(default=False)
    log_level: str = Field(
        default="INFO",
        description="Minimum level for structured logs"
    )

    settings_save_delay_seconds: float = Field(
        default=0.4,
        ge=0,
        description="Artificial delay of the settings-save flow"
    )
    max_import_bytes: int = Field(
        default=5 * 1024 * 1024,
        ge=1,
        description="Largest CSV accepted for import"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def store(self) -> StoreSettings:
        return StoreSettings()

    @property
    def rate_limit(self) -> RateLimitSettings:
        return RateLimitSettings()

    @property
    def currency(self) -> CurrencySettings:
        return CurrencySettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings sections load.

    Returns a dict of {section_name: is_valid}, plus `<section>_error`
    entries for the sections that failed. Useful for startup checks.
    """
    results = {}
    settings = get_settings()

    for section in ("store", "rate_limit", "currency", "app"):
        try:
            getattr(settings, section)
            results[section] = True
        except ValueError as e:
            results[section] = False
            results[f"{section}_error"] = str(e)

    return results
