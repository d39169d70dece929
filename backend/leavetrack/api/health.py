import logging
from typing import Literal

from fastapi import APIRouter
from pydantic import BaseModel
from sqlalchemy import text

from leavetrack.config import get_settings
from leavetrack.db import SessionDep
from leavetrack.services.clock import get_clock

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Liveness of the service and reachability of the leave database."""

    status: Literal["ok", "degraded"]
    database: Literal["ok", "unreachable"]
    version: str
    environment: str
    today: str


@router.get("/health", response_model=HealthResponse)
async def health(session: SessionDep) -> HealthResponse:
    """Report service health; ``today`` is the date the leave rules currently use."""
    settings = get_settings()
    database: Literal["ok", "unreachable"] = "ok"

    try:
        await session.execute(text("SELECT 1"))
    except Exception:
        logger.exception("Health check: database connectivity failed")
        database = "unreachable"

    return HealthResponse(
        status="ok" if database == "ok" else "degraded",
        database=database,
        version=settings.app_version,
        environment=settings.environment,
        today=get_clock().today().isoformat(),
    )
