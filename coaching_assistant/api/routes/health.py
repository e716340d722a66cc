"""
Health check endpoints.

Health checks are essential for:
- Load balancers to know if the service is alive
- Deployment systems to verify rollouts

We provide two endpoints:
- /health: Basic liveness check (is the process running?)
- /health/ready: Readiness check (can we serve traffic?)

The distinction matters in orchestration systems like Kubernetes
where liveness and readiness have different behaviors.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Response, status
from pydantic import BaseModel

from ... import __version__
from ...infrastructure.snowflake.client import get_snowflake_connection
from ..dependencies import SettingsDep, snowflake_config

logger = logging.getLogger(__name__)

router = APIRouter()


class HealthResponse(BaseModel):
    """
    Health check response.

    Standardized format makes it easy for monitoring tools to parse.
    """
    status: str
    version: str
    details: dict[str, Any] = {}


class ReadinessCheck(BaseModel):
    """Individual readiness check result."""
    name: str
    status: str  # "ok" or "error"
    error: Optional[str] = None


class ReadinessResponse(BaseModel):
    """Readiness check response with details."""
    status: str  # "ready" or "not_ready"
    version: str
    checks: list[ReadinessCheck]


@router.get(
    "",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Basic health check",
    description="Returns 200 if the service is running. Does not check dependencies.",
)
async def health_check(settings: SettingsDep) -> HealthResponse:
    """
    Liveness check - is the process alive?

    This endpoint should be very fast and not check external dependencies.
    """
    return HealthResponse(
        status="ok",
        version=__version__,
        details={"mock_mode": settings.snowflake_mock_mode},
    )


def _database_check(settings) -> ReadinessCheck:
    if settings.snowflake_mock_mode:
        return ReadinessCheck(name="database", status="ok", error="mock mode")

    try:
        with get_snowflake_connection(snowflake_config(settings)) as conn:
            cursor = conn.cursor()
            try:
                cursor.execute("SELECT 1")
                cursor.fetchone()
            finally:
                cursor.close()
    except Exception as e:
        logger.error("Database health check failed", extra={"error": str(e)})
        return ReadinessCheck(name="database", status="error", error=str(e))
    return ReadinessCheck(name="database", status="ok")


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    status_code=status.HTTP_200_OK,
    summary="Readiness check",
    description="Returns 200 if the service can handle traffic. Checks external dependencies.",
    responses={
        503: {
            "description": "Service not ready",
            "model": ReadinessResponse,
        }
    },
)
async def readiness_check(settings: SettingsDep, response: Response) -> ReadinessResponse:
    """
    Readiness check - can we serve traffic?

    Checks configuration, the database connection and the Claude API key.
    Returns 503 if any check fails, which tells load balancers not
    to route traffic here.
    """
    checks: list[ReadinessCheck] = []

    missing_fields = settings.validate_required_fields()
    if missing_fields:
        checks.append(ReadinessCheck(
            name="configuration",
            status="error",
            error=f"Missing required fields: {', '.join(missing_fields)}"
        ))
    else:
        checks.append(ReadinessCheck(name="configuration", status="ok"))

    checks.append(_database_check(settings))

    if not settings.anthropic_api_key:
        checks.append(ReadinessCheck(
            name="anthropic",
            status="error",
            error="API key not configured"
        ))
    else:
        checks.append(ReadinessCheck(name="anthropic", status="ok"))

    all_ok = all(c.status == "ok" for c in checks)
    if not all_ok:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        logger.warning(
            "Readiness check failed",
            extra={
                "checks": [
                    {"name": c.name, "status": c.status, "error": c.error}
                    for c in checks
                ]
            }
        )

    return ReadinessResponse(
        status="ready" if all_ok else "not_ready",
        version=__version__,
        checks=checks,
    )
