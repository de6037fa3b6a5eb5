"""
Function-per-route deployment. Each file under api/ builds a one-route app:

  from kodbank.serverless import create_function_app
  app = create_function_app("login")

The route, service, cookie contract and error handling are the ones the
long-running server uses; only the pool is smaller and tables may be created
on cold start (DB_CREATE_TABLES).
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI
from fastapi.routing import APIRoute

from kodbank import __version__
from kodbank.api import auth as auth_api
from kodbank.app import configure_app
from kodbank.core.config import Settings, get_settings
from kodbank.core.database import Database
from kodbank.core.logging import setup_logging

logger = logging.getLogger(__name__)

FUNCTION_ROUTES = ("register", "login", "balance", "me", "logout")


class UnknownRouteError(LookupError):
    """No shared route is registered under the requested name."""


def _find_route(name: str) -> APIRoute:
    # Searched on the leaf router; routers added with include_router may not expose their APIRoutes.
    for route in auth_api.router.routes:
        if isinstance(route, APIRoute) and route.name == name:
            return route
    raise UnknownRouteError(f"No route named {name!r}; expected one of {', '.join(FUNCTION_ROUTES)}")


def _single_route_router(name: str) -> APIRouter:
    route = _find_route(name)
    router = APIRouter()
    router.add_api_route(
        route.path,
        route.endpoint,
        methods=sorted(route.methods),
        name=route.name,
        status_code=route.status_code,
        response_model=route.response_model,
        responses=route.responses,
        summary=route.summary,
    )
    return router


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings: Settings = app.state.settings
    if settings.DB_CREATE_TABLES:
        app.state.database.create_tables()
    try:
        yield
    finally:
        app.state.database.dispose()


def create_function_app(
    route_name: str,
    settings: Settings | None = None,
    database: Database | None = None,
) -> FastAPI:
    """Build an ASGI app serving exactly one of the shared routes."""
    settings = settings or get_settings()
    setup_logging(settings.LOG_LEVEL)
    router = _single_route_router(route_name)
    database = database or Database.from_settings(
        settings,
        pool_size=settings.SERVERLESS_POOL_SIZE,
        max_overflow=0,
    )

    app = FastAPI(
        title=f"Kodbank {route_name}",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=_lifespan,
    )
    configure_app(app, settings, database)
    app.include_router(router, prefix=settings.API_PREFIX)
    logger.debug("Function app built for route %s", route_name)
    return app
