"""Health check endpoints.

Provides health status for container probes and monitoring.
"""

from fastapi import APIRouter

from spm_service import __version__
from spm_service.api.deps import Store
from spm_service.config import settings
from spm_service.infra.logging import get_logger
from spm_service.schemas.common import HealthResponse

router = APIRouter()
logger = get_logger(__name__)


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Basic health check.

    Returns 200 if service is running.
    """
    return HealthResponse(
        status="healthy",
        version=__version__,
        environment=settings.environment,
        checks={},
    )


@router.get("/health/ready", response_model=HealthResponse)
async def health_ready(store: Store) -> HealthResponse:
    """Readiness check.

    Verifies the document store answers a trivial query.
    """
    checks: dict[str, bool] = {}

    try:
        checks["store"] = await store.ping()
    except Exception as e:
        logger.warning("Store health check failed", error=str(e))
        checks["store"] = False

    all_healthy = all(checks.values()) if checks else True

    return HealthResponse(
        status="healthy" if all_healthy else "degraded",
        version=__version__,
        environment=settings.environment,
        checks=checks,
    )


@router.get("/health/live", response_model=HealthResponse)
async def health_live() -> HealthResponse:
    """Liveness check.

    Basic check that service is responding.
    """
    return HealthResponse(
        status="healthy",
        version=__version__,
        environment=settings.environment,
        checks={"alive": True},
    )
