"""
Health Check Routes
Service health monitoring endpoints
Source: https://microservices.io/patterns/observability/health-check-api.html
"""

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse, PlainTextResponse

from eligibility_service.api.config import Settings
from eligibility_service.api.deps import get_app_settings, get_dependency_status, get_metrics
from eligibility_service.services.metrics import MetricsCollector
from eligibility_service.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check(
    checks: dict[str, bool] = Depends(get_dependency_status),
    metrics: MetricsCollector = Depends(get_metrics),
    settings: Settings = Depends(get_app_settings),
) -> JSONResponse:
    """Liveness with dependency status; 503 when a dependency is down."""
    healthy = all(checks.values())
    if not healthy:
        logger.error(f"Health check failed: {checks}")

    return JSONResponse(
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "healthy" if healthy else "unhealthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "service": settings.SERVICE_NAME,
            "version": settings.SERVICE_VERSION,
            "checks": {name: "healthy" if ok else "unhealthy" for name, ok in checks.items()},
            "uptime_seconds": round(metrics.uptime_seconds, 3),
        },
    )


@router.get("/ready")
async def readiness_check(
    checks: dict[str, bool] = Depends(get_dependency_status),
) -> JSONResponse:
    """Readiness to serve traffic."""
    ready = all(checks.values())
    content: dict[str, Any] = {
        "ready": ready,
        "dependencies": {name: "ready" if ok else "not ready" for name, ok in checks.items()},
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    return JSONResponse(
        status_code=status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE,
        content=content,
    )


@router.get("/metrics", response_class=PlainTextResponse)
async def export_metrics(
    metrics: MetricsCollector = Depends(get_metrics),
    settings: Settings = Depends(get_app_settings),
) -> PlainTextResponse:
    """Prometheus text exposition of the in-process metrics."""
    if not settings.METRICS_ENABLED:
        return PlainTextResponse("metrics disabled\n", status_code=status.HTTP_404_NOT_FOUND)
    return PlainTextResponse(
        metrics.export_prometheus(),
        media_type="text/plain; version=0.0.4",
    )
