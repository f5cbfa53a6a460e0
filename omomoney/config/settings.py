"""
Configuration Management for OMOMoney

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Cache TTLs, validation limits and the storage backend are all read once
at startup and then passed to the components that need them.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


AVAILABLE_CURRENCIES = (
    "USD", "EUR", "GBP", "JPY", "CAD", "AUD",
    "CHF", "CNY", "MXN", "BRL", "INR", "KRW",
)


class CacheSettings(BaseSettings):
    """Expiry windows for the three cache categories."""

    model_config = SettingsConfigDict(
        env_prefix="CACHE_",
        extra="ignore"
    )

    data_ttl_seconds: float = Field(
        default=300.0,
        gt=0,
        description="TTL for cached query results (5 minutes)"
    )
    validation_ttl_seconds: float = Field(
        default=60.0,
        gt=0,
        description="TTL for cached validation outcomes (1 minute)"
    )
    calculation_ttl_seconds: float = Field(
        default=600.0,
        gt=0,
        description="TTL for cached derived calculations (10 minutes)"
    )
    sweep_interval_seconds: float = Field(
        default=120.0,
        gt=0,
        description="How often the background sweeper evicts expired entries"
    )


class ValidationSettings(BaseSettings):
    """Input validation limits."""

    model_config = SettingsConfigDict(
        env_prefix="VALIDATION_",
        extra="ignore"
    )

    min_name_length: int = Field(default=2, ge=1)
    max_name_length: int = Field(default=50, ge=1)
    min_email_length: int = Field(default=5, ge=1)
    max_email_length: int = Field(default=100, ge=1)


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )

    # Worksheet holding the audit log; records get one worksheet per kind
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the sheet for audit logs"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


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

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # Storage backend
    storage_backend: str = Field(
        default="memory",
        pattern="^(memory|google_sheets)$",
        description="Record store implementation to use"
    )

    # Defaults applied when the caller leaves a field out
    default_currency: str = Field(
        default="USD",
        description="Currency for new groups"
    )
    default_category_color: str = Field(
        default="#007AFF",
        description="Color for new categories"
    )

    @field_validator('default_currency')
    @classmethod
    def validate_default_currency(cls, v: str) -> str:
        if v not in AVAILABLE_CURRENCIES:
            raise ValueError(f"Unsupported currency: {v}")
        return v


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

    # Note: These are loaded lazily to allow partial configuration

    @property
    def cache(self) -> CacheSettings:
        return CacheSettings()

    @property
    def validation(self) -> ValidationSettings:
        return ValidationSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("cache", "validation", "google_sheets", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
