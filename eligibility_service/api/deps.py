"""
FastAPI Dependencies
Dependency injection for the services built at startup
Source: https://fastapi.tiangolo.com/tutorial/dependencies/

Services live on ``app.state`` (see ``api.main.lifespan``); tests replace
them through ``app.dependency_overrides``.
"""

import asyncio
from collections.abc import Awaitable
from typing import Optional, TypeVar

from fastapi import Header, Request
from fastapi.responses import JSONResponse

from eligibility_service.api.config import Settings
from eligibility_service.core.enums import MessageType
from eligibility_service.db.connection import check_db_connection
from eligibility_service.schemas.eligibility import ResponseMessage
from eligibility_service.services.audit import AuditEmitter
from eligibility_service.services.cache import CacheManager
from eligibility_service.services.coverage_admin import CoverageAdminService
from eligibility_service.services.eligibility_engine import EligibilityEngine
from eligibility_service.services.metrics import MetricsCollector

T = TypeVar("T")


def get_app_settings(request: Request) -> Settings:
    """Settings the application was created with."""
    return request.app.state.settings


def get_eligibility_engine(request: Request) -> EligibilityEngine:
    return request.app.state.engine


def get_coverage_admin(request: Request) -> CoverageAdminService:
    return request.app.state.coverage_admin


def get_audit_emitter(request: Request) -> AuditEmitter:
    return request.app.state.audit


def get_cache_manager(request: Request) -> CacheManager:
    return request.app.state.cache


def get_metrics(request: Request) -> MetricsCollector:
    return request.app.state.metrics


async def get_dependency_status(request: Request) -> dict[str, bool]:
    """Reachability of the coverage store and the cache."""
    return {
        "database": await check_db_connection(request.app.state.db_engine),
        "redis": await request.app.state.cache.ping(),
    }


def get_client_ip(request: Request) -> Optional[str]:
    """Caller address, preferring the first X-Forwarded-For hop."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def get_user_id(x_user_id: Optional[str] = Header(None, alias="X-User-ID")) -> Optional[str]:
    """Caller identity forwarded by the gateway."""
    return x_user_id


def message_response(
    status_code: int,
    code: str,
    message: str,
    message_type: MessageType = MessageType.ERROR,
    details: Optional[str] = None,
) -> JSONResponse:
    """JSON response with a single ResponseMessage body."""
    body = ResponseMessage(type=message_type, code=code, message=message, details=details)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


async def enforce_response_budget(call: Awaitable[T], settings: Settings) -> T:
    """
    Await an engine call, bounded by the response time budget when enabled.

    Raises:
        asyncio.TimeoutError: The budget ran out (in-flight awaits are cancelled)
    """
    if not settings.HARD_TIMEOUT_ENABLED:
        return await call
    return await asyncio.wait_for(call, timeout=settings.MAX_RESPONSE_TIME_MS / 1000)
