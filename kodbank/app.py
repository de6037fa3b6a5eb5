"""Application factory for the long-running server."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from kodbank import __version__
from kodbank.api import router as api_router
from kodbank.core.config import Settings, get_settings
from kodbank.core.database import Database
from kodbank.core.errors import register_exception_handlers
from kodbank.core.logging import setup_logging

logger = logging.getLogger(__name__)


def configure_app(app: FastAPI, settings: Settings, database: Database) -> None:
    """Wiring shared by the server app and the per-route functions."""
    app.state.settings = settings
    app.state.database = database
    register_exception_handlers(app)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type"],
    )


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings: Settings = app.state.settings
    database: Database = app.state.database
    if settings.DB_CREATE_TABLES:
        database.create_tables()
    logger.info("Kodbank API ready (environment=%s)", settings.APP_ENV)
    try:
        yield
    finally:
        database.dispose()
        logger.info("Database pool released")


def create_app(settings: Settings | None = None, database: Database | None = None) -> FastAPI:
    """
    Build the API. Settings are read from the environment when not given and
    construction fails if JWT_SECRET, DATABASE_URL or CORS_ORIGINS is missing.
    """
    settings = settings or get_settings()
    setup_logging(settings.LOG_LEVEL)
    database = database or Database.from_settings(settings)

    app = FastAPI(
        title="Kodbank API",
        version=__version__,
        docs_url="/docs" if settings.APP_ENV == "dev" else None,
        redoc_url=None,
        lifespan=_lifespan,
    )
    configure_app(app, settings, database)
    app.include_router(api_router, prefix=settings.API_PREFIX)

    @app.get("/", include_in_schema=False)
    def root() -> dict[str, str]:
        """Root route; minimal payload for discovery."""
        return {"message": "Kodbank API"}

    return app
