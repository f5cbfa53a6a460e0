"""Configuration package."""

from omomoney.config.settings import (
    AVAILABLE_CURRENCIES,
    AppSettings,
    CacheSettings,
    GoogleSheetsSettings,
    Settings,
    ValidationSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AVAILABLE_CURRENCIES",
    "AppSettings",
    "CacheSettings",
    "GoogleSheetsSettings",
    "Settings",
    "ValidationSettings",
    "get_settings",
    "validate_all_settings",
]
