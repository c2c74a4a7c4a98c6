"""
FastAPI application factory.

The storage backend and the other components are created once, when the
application starts, and shared by every request through app.state.
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from fintracker import __version__
from fintracker.api.errors import register_error_handlers
from fintracker.api.routes import router
from fintracker.config import Settings, get_settings
from fintracker.orchestrator import AppComponents, create_app_components


logger = structlog.get_logger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    components: Optional[AppComponents] = None,
) -> FastAPI:
    """
    Build the API.

    Args:
        settings: Configuration; defaults to get_settings()
        components: Prebuilt components (tests). When omitted they are
                    created from settings at startup.
    """
    settings = settings or get_settings()
    server_settings = settings.server

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.components is None:
            app.state.components = create_app_components(settings)
        logger.info(
            "fintracker_started",
            storage=app.state.components.expense_storage.backend_name,
            port=server_settings.port,
        )
        yield
        logger.info("fintracker_stopped")

    app = FastAPI(
        title="FinTracker API",
        description="Personal expense tracking: login, expenses and dashboard summaries.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.components = components

    app.add_middleware(
        CORSMiddleware,
        allow_origins=server_settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)
    app.include_router(router)

    return app
