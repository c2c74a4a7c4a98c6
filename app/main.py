"""
FinTracker HTTP server

Entry point for running the API:

    python app/main.py
    uvicorn app.main:app --port 5000

Configuration comes from the environment / .env (see fintracker.config).
STORAGE_BACKEND=google_sheets switches from the in-memory store to
Google Sheets.
"""

import structlog
import uvicorn

from fintracker.api import create_app
from fintracker.audit import configure_logging
from fintracker.config import get_settings, validate_all_settings


settings = get_settings()
configure_logging(settings.server.log_level)
logger = structlog.get_logger("fintracker.main")

app = create_app(settings)


def check_settings() -> bool:
    """
    Report configuration problems before serving.

    Google Sheets settings only matter when that backend is selected.
    """
    results = validate_all_settings()
    required = ["server", "auth", "storage", "reports"]
    if results.get("storage") and settings.storage.backend == "google_sheets":
        required.append("google_sheets")

    ok = True
    for name in required:
        if not results.get(name):
            logger.error("invalid_settings", section=name, error=results.get(f"{name}_error"))
            ok = False
    return ok


def main():
    """Run the API server."""
    if not check_settings():
        raise SystemExit(1)

    server = settings.server
    uvicorn.run(
        app,
        host=server.host,
        port=server.port,
        log_level=server.log_level.lower(),
    )


if __name__ == "__main__":
    main()
