"""Tests for configuration loading."""

import pytest
from pydantic import ValidationError

from fintracker.config import (
    AuthSettings,
    ReportSettings,
    ServerSettings,
    StorageSettings,
    get_settings,
    validate_all_settings,
)


@pytest.fixture(autouse=True)
def fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestSettings:

    def test_defaults(self):
        assert ServerSettings().port == 5000
        assert AuthSettings().token_ttl_minutes == 1440
        assert StorageSettings().backend == "memory"
        reports = ReportSettings()
        assert reports.trailing_months == 6
        assert reports.recent_count == 5

    def test_env_prefixes(self, monkeypatch):
        monkeypatch.setenv("FINTRACKER_PORT", "8080")
        monkeypatch.setenv("AUTH_TOKEN_TTL_MINUTES", "15")
        monkeypatch.setenv("REPORTS_TRAILING_MONTHS", "12")
        monkeypatch.setenv("STORAGE_BACKEND", "google_sheets")

        settings = get_settings()
        assert settings.server.port == 8080
        assert settings.auth.token_ttl_minutes == 15
        assert settings.reports.trailing_months == 12
        assert settings.storage.backend == "google_sheets"

    def test_unknown_backend_rejected(self, monkeypatch):
        monkeypatch.setenv("STORAGE_BACKEND", "mongo")
        with pytest.raises(ValidationError):
            StorageSettings()

    def test_short_secret_rejected(self):
        with pytest.raises(ValidationError):
            AuthSettings(jwt_secret="short")

    def test_allowed_origins_list(self):
        server = ServerSettings(allowed_origins="http://a.test, http://b.test,,")
        assert server.allowed_origins_list == ["http://a.test", "http://b.test"]

    def test_validate_all_settings_reports_missing_sheets_config(self, monkeypatch):
        monkeypatch.delenv("GOOGLE_SHEETS_CREDENTIALS_PATH", raising=False)
        monkeypatch.delenv("GOOGLE_SHEETS_SPREADSHEET_ID", raising=False)

        results = validate_all_settings()
        assert results["server"] is True
        assert results["reports"] is True
        assert results["google_sheets"] is False
        assert "google_sheets_error" in results
