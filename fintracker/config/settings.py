"""
Configuration Management for FinTracker

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what external dependencies exist and
ensures all required configuration is validated at startup.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ServerSettings(BaseSettings):
    """HTTP service configuration."""

    model_config = SettingsConfigDict(
        env_prefix="FINTRACKER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    host: str = Field(
        default="0.0.0.0",
        description="Interface the API server binds to"
    )
    port: int = Field(
        default=5000,
        ge=1,
        le=65535,
        description="Port the API server listens on"
    )
    allowed_origins: str = Field(
        default="http://localhost:3000",
        description="Comma-separated list of origins allowed by CORS"
    )
    log_level: str = Field(
        default="INFO",
        description="Root log level"
    )

    @property
    def allowed_origins_list(self) -> list[str]:
        """Get allowed origins as a list."""
        return [
            origin.strip()
            for origin in self.allowed_origins.split(",")
            if origin.strip()
        ]


class AuthSettings(BaseSettings):
    """Token signing configuration."""

    model_config = SettingsConfigDict(
        env_prefix="AUTH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    jwt_secret: str = Field(
        default="fintracker_secret",
        min_length=8,
        description="Secret used to sign login tokens"
    )
    jwt_algorithm: str = Field(
        default="HS256",
        description="JWT signing algorithm"
    )
    token_ttl_minutes: int = Field(
        default=24 * 60,
        ge=1,
        description="How long an issued token stays valid"
    )
    users_file: Optional[str] = Field(
        default=None,
        description="JSON file with a list of {username, password, name}; replaces the demo users"
    )


class StorageSettings(BaseSettings):
    """Which expense store backs the service."""

    model_config = SettingsConfigDict(
        env_prefix="STORAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    backend: Literal["memory", "google_sheets"] = Field(
        default="memory",
        description="Storage backend: 'memory' or 'google_sheets'"
    )


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        env_file=".env",
        env_file_encoding="utf-8",
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

    # Sheet names within the spreadsheet
    expenses_sheet_name: str = Field(
        default="Expenses",
        description="Name of the sheet for expenses"
    )
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


class ReportSettings(BaseSettings):
    """Dashboard and validation thresholds."""

    model_config = SettingsConfigDict(
        env_prefix="REPORTS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    trailing_months: int = Field(
        default=6,
        ge=1,
        le=36,
        description="Number of months in the dashboard trend"
    )
    recent_count: int = Field(
        default=5,
        ge=1,
        le=100,
        description="Number of recent expenses on the dashboard"
    )
    future_date_tolerance_days: int = Field(
        default=7,
        ge=0,
        description="How many days in the future an expense date can be before we warn"
    )
    max_expense_amount: float = Field(
        default=1000000.0,
        gt=0,
        description="Amounts above this are accepted but flagged"
    )


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
    # (Google Sheets settings are only required for that backend)

    @property
    def server(self) -> ServerSettings:
        return ServerSettings()

    @property
    def auth(self) -> AuthSettings:
        return AuthSettings()

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def reports(self) -> ReportSettings:
        return ReportSettings()


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

    for name in ("server", "auth", "storage", "google_sheets", "reports"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
