"""
Liveness and readiness probes.

`/health` answers as long as the process is up. `/health/ready` also
checks configuration and runs a one-row query against the recommendation
store, and answers 503 when either fails so load balancers stop sending
traffic. Neither requires an API key.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Response, status
from pydantic import BaseModel

from ... import __version__
from ...config.settings import Settings
from ...infrastructure.snowflake.client import create_snowflake_connection
from ...infrastructure.snowflake.repositories import SnowflakeRecommendationRepository
from ..dependencies import SettingsDep, get_mock_repository, snowflake_config_from_settings

logger = logging.getLogger(__name__)

router = APIRouter()


class HealthResponse(BaseModel):
    status: str
    version: str
    details: dict[str, Any] = {}


class ProbeResult(BaseModel):
    """Outcome of one readiness probe."""
    name: str
    ok: bool
    error: Optional[str] = None


class ReadinessResponse(BaseModel):
    status: str  # "ready" or "not_ready"
    version: str
    checks: list[ProbeResult]


@router.get(
    "",
    response_model=HealthResponse,
    summary="Liveness probe",
    description="200 whenever the process is running. Touches nothing else.",
)
async def health_check(settings: SettingsDep) -> HealthResponse:
    return HealthResponse(
        status="ok",
        version=__version__,
        details={"mock_mode": settings.snowflake_mock_mode},
    )


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    summary="Readiness probe",
    description="200 when configuration is complete and the store answers a query, else 503.",
    responses={503: {"description": "Not ready", "model": ReadinessResponse}},
)
async def readiness_check(
    response: Response,
    settings: SettingsDep,
) -> ReadinessResponse:
    checks = [_check_configuration(settings), _check_store(settings)]

    ready = all(c.ok for c in checks)
    if not ready:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        logger.warning(
            "Not ready",
            extra={"failed": [c.model_dump() for c in checks if not c.ok]}
        )

    return ReadinessResponse(
        status="ready" if ready else "not_ready",
        version=__version__,
        checks=checks,
    )


def _check_configuration(settings: Settings) -> ProbeResult:
    missing = settings.validate_required_fields()
    if missing:
        return ProbeResult(
            name="configuration",
            ok=False,
            error=f"Missing required fields: {', '.join(missing)}",
        )
    return ProbeResult(name="configuration", ok=True)


def _check_store(settings: Settings) -> ProbeResult:
    """Open the configured store and read one resource from it."""
    try:
        if settings.snowflake_mock_mode:
            get_mock_repository(settings).list_resources(limit=1)
        else:
            config = snowflake_config_from_settings(settings)
            with create_snowflake_connection(config=config) as conn:
                SnowflakeRecommendationRepository(conn).list_resources(limit=1)
    except Exception as e:
        logger.error("Store readiness query failed", extra={"error": str(e)})
        return ProbeResult(name="store", ok=False, error=str(e))
    return ProbeResult(name="store", ok=True)
