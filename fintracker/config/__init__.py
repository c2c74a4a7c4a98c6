"""Configuration package."""

from fintracker.config.settings import (
    AuthSettings,
    GoogleSheetsSettings,
    ReportSettings,
    ServerSettings,
    Settings,
    StorageSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AuthSettings",
    "GoogleSheetsSettings",
    "ReportSettings",
    "ServerSettings",
    "Settings",
    "StorageSettings",
    "get_settings",
    "validate_all_settings",
]
