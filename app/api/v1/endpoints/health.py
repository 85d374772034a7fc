"""Health check endpoints. Used for liveness and readiness probes."""

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from app.core.config import get_settings
from app.infrastructure.persistence.database import get_session_factory
from app.schemas.health import (
    HealthResponse,
    ReadinessErrorResponse,
    ReadinessResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=HealthResponse)
def health_check() -> HealthResponse:
    """Return simple ok status for liveness."""
    return HealthResponse()


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    responses={503: {"description": "Database unreachable", "model": ReadinessErrorResponse}},
)
async def readiness_check(request: Request) -> ReadinessResponse | JSONResponse:
    """Return 200 when the database answers; 503 otherwise.

    Redis is reported but never fails readiness: tenant lookups fall back
    to the database when it is down.
    """
    checks: dict[str, str] = {}
    try:
        async with get_session_factory()() as session:
            await session.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as exc:
        logger.warning("Readiness: database check failed: %s", exc)
        checks["database"] = "error"
        return JSONResponse(
            status_code=503,
            content=ReadinessErrorResponse(
                message="Database unreachable", checks=checks
            ).model_dump(),
        )

    if get_settings().redis_enabled:
        cache = getattr(request.app.state, "cache", None)
        checks["redis"] = "ok" if cache is not None and cache.is_available() else "degraded"
    return ReadinessResponse(checks=checks)
