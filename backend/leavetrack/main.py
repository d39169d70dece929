from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI

from leavetrack.api.health import router as health_router
from leavetrack.api.router import api_router
from leavetrack.config import get_settings
from leavetrack.db import dispose_engine
from leavetrack.exceptions import setup_exception_handlers
from leavetrack.middleware import setup_middleware

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)

OPENAPI_TAGS = [
    {"name": "leave-requests", "description": "Submit, decide, cancel and edit leave requests."},
    {"name": "balances", "description": "Per-category balances, allocations and the ledger."},
    {"name": "reports", "description": "Team leave calendar and the leave summary dashboard."},
    {"name": "health", "description": "Service and database liveness."},
]


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    logger.info("Starting %s v%s [%s]", settings.app_name, settings.app_version, settings.environment)
    logger.info(
        "Leave rules: timezone=%s max_span_days=%d elevated_roles=%s",
        settings.timezone,
        settings.max_span_days,
        ",".join(settings.elevated_roles),
    )
    yield
    await dispose_engine()
    logger.info("Shutting down %s", settings.app_name)


def create_app() -> FastAPI:
    """Build the leave service: logging, middleware, error handlers and routers."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    application = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan,
        openapi_tags=OPENAPI_TAGS,
        docs_url="/docs" if settings.environment != "production" else None,
        redoc_url="/redoc" if settings.environment != "production" else None,
    )

    setup_middleware(application, settings)
    setup_exception_handlers(application)

    application.include_router(health_router)
    application.include_router(api_router)

    return application


app = create_app()
