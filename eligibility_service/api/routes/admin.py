"""
Administration Endpoints.

Service statistics and cache management.
"""

from typing import Any, Optional

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from eligibility_service.api.config import Settings
from eligibility_service.api.deps import (
    get_app_settings,
    get_audit_emitter,
    get_cache_manager,
    get_client_ip,
    get_dependency_status,
    get_metrics,
    get_user_id,
    message_response,
)
from eligibility_service.schemas.eligibility import (
    CacheStatistics,
    RequestStatistics,
    ResponseMessage,
    ServiceStats,
)
from eligibility_service.services.audit import AuditEmitter, AuditEventType
from eligibility_service.services.cache import CacheManager
from eligibility_service.services.metrics import (
    CACHE_HITS,
    CACHE_MISSES,
    DATABASE_QUERIES,
    ELIGIBILITY_CHECKS,
    REQUEST_DURATION,
    SLA_BREACHES,
    MetricsCollector,
)

router = APIRouter(
    prefix="/api/v1/admin",
    tags=["admin"],
)


async def _cache_statistics(metrics: MetricsCollector, cache: CacheManager) -> CacheStatistics:
    hit_rate, miss_rate = metrics.cache_hit_rate()
    return CacheStatistics(
        hit_rate=hit_rate,
        miss_rate=miss_rate,
        total_hits=metrics.get_counter(CACHE_HITS),
        total_misses=metrics.get_counter(CACHE_MISSES),
        **await cache.info(),
    )


@router.get("/stats", response_model=ServiceStats)
async def get_service_stats(
    metrics: MetricsCollector = Depends(get_metrics),
    cache: CacheManager = Depends(get_cache_manager),
    dependencies: dict[str, bool] = Depends(get_dependency_status),
    settings: Settings = Depends(get_app_settings),
) -> ServiceStats:
    """Service performance and usage statistics."""
    durations = metrics.get_timer_stats(REQUEST_DURATION)
    return ServiceStats(
        service=settings.SERVICE_NAME,
        version=settings.SERVICE_VERSION,
        uptime_seconds=round(metrics.uptime_seconds, 3),
        request_stats=RequestStatistics(
            total_requests=metrics.get_counter(ELIGIBILITY_CHECKS),
            average_response_time_ms=durations.avg_ms,
            p95_response_time_ms=durations.p95_ms,
            p99_response_time_ms=durations.p99_ms,
            sla_breaches=metrics.get_counter(SLA_BREACHES),
        ),
        cache_stats=await _cache_statistics(metrics, cache),
        database_queries=metrics.get_labelled(DATABASE_QUERIES, "operation"),
        dependencies=dependencies,
    )


@router.post(
    "/cache/clear",
    responses={status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ResponseMessage}},
)
async def clear_cache(
    cache: CacheManager = Depends(get_cache_manager),
    audit: AuditEmitter = Depends(get_audit_emitter),
    client_ip: Optional[str] = Depends(get_client_ip),
    user_id: Optional[str] = Depends(get_user_id),
) -> Any:
    """Drop every cached eligibility, coverage and benefit projection."""
    if not await cache.flush():
        return message_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "CACHE_CLEAR_FAILED",
            "Failed to clear cache",
        )

    await audit.record(
        AuditEventType.CACHE_CLEAR,
        {"action": "clear_all"},
        user_id=user_id,
        client_ip=client_ip,
    )
    return JSONResponse({"message": "Cache cleared successfully", "status": "success"})


@router.get("/cache/stats", response_model=CacheStatistics)
async def get_cache_stats(
    metrics: MetricsCollector = Depends(get_metrics),
    cache: CacheManager = Depends(get_cache_manager),
) -> CacheStatistics:
    """Cache hit/miss statistics."""
    return await _cache_statistics(metrics, cache)
