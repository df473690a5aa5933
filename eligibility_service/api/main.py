"""
FastAPI Main Application
Entry point for the eligibility service
Source: https://fastapi.tiangolo.com/

All clients (database engine, Redis, Kafka) are created in the lifespan,
wired into the services and stored on ``app.state``.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from redis.asyncio import Redis

from eligibility_service.api.config import Settings, get_settings
from eligibility_service.api.deps import message_response
from eligibility_service.api.routes import admin, coverage, eligibility, health
from eligibility_service.db.connection import close_engine, create_engine, create_session_factory
from eligibility_service.services.audit import create_audit_emitter
from eligibility_service.services.cache import CacheManager
from eligibility_service.services.coverage_admin import CoverageAdminService
from eligibility_service.services.coverage_store import CoverageStore
from eligibility_service.services.eligibility_engine import EligibilityEngine
from eligibility_service.services.metrics import MetricsCollector
from eligibility_service.services.provider_network import ProviderNetworkDirectory
from eligibility_service.utils.errors import CoverageNotFoundError, StoreUnavailableError
from eligibility_service.utils.logging import get_logger, setup_logging

logger = get_logger(__name__)


def create_redis(settings: Settings) -> Redis:
    return Redis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        socket_timeout=settings.REDIS_SOCKET_TIMEOUT,
        socket_connect_timeout=settings.REDIS_SOCKET_TIMEOUT,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):  # type: ignore[no-untyped-def]
    """Build the service graph on startup and release clients on shutdown."""
    settings: Settings = app.state.settings
    logger.info(f"Starting {settings.SERVICE_NAME} in {settings.ENVIRONMENT} mode")

    db_engine = create_engine(settings)
    redis = create_redis(settings)
    metrics = MetricsCollector()
    cache = CacheManager(redis, default_ttl=settings.CACHE_TTL)
    store = CoverageStore(create_session_factory(db_engine), metrics)
    audit = create_audit_emitter(settings)
    directory = ProviderNetworkDirectory(settings.PROVIDER_NETWORKS)

    app.state.db_engine = db_engine
    app.state.cache = cache
    app.state.metrics = metrics
    app.state.audit = audit
    app.state.engine = EligibilityEngine(store, cache, audit, metrics, directory, settings)
    app.state.coverage_admin = CoverageAdminService(store, cache, audit)

    if not await cache.ping():
        logger.warning("Redis unreachable at startup; serving without cache")
    logger.info(f"Provider networks loaded: {len(directory)}")

    yield

    logger.info("Shutting down application")
    await audit.close()
    await redis.aclose()
    await close_engine(db_engine)


# =============================================================================
# Exception Handlers
# =============================================================================


async def store_unavailable_handler(request: Request, exc: StoreUnavailableError) -> JSONResponse:
    logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return message_response(
        status.HTTP_503_SERVICE_UNAVAILABLE,
        exc.code,
        "Coverage store unavailable, retry later",
        details=exc.operation,
    )


async def coverage_not_found_handler(request: Request, exc: CoverageNotFoundError) -> JSONResponse:
    return message_response(status.HTTP_404_NOT_FOUND, exc.code, exc.message)


async def timeout_handler(request: Request, exc: asyncio.TimeoutError) -> JSONResponse:
    logger.warning(f"{request.method} {request.url.path} exceeded the response time budget")
    return message_response(
        status.HTTP_504_GATEWAY_TIMEOUT,
        "ELIGIBILITY_TIMEOUT",
        "Request exceeded the maximum response time",
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()
    )
    return message_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "INVALID_REQUEST",
        "Invalid request format",
        details=details,
    )


# =============================================================================
# Application
# =============================================================================


def create_app(settings: Settings | None = None) -> FastAPI:
    """Application factory."""
    settings = settings or get_settings()

    app = FastAPI(
        title="Eligibility Service API",
        description="Real-time eligibility determination and coverage verification",
        version=settings.SERVICE_VERSION,
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
        openapi_url="/openapi.json" if not settings.is_production else None,
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=settings.CORS_CREDENTIALS,
        allow_methods=settings.CORS_METHODS,
        allow_headers=settings.CORS_HEADERS,
    )

    app.add_exception_handler(StoreUnavailableError, store_unavailable_handler)
    app.add_exception_handler(CoverageNotFoundError, coverage_not_found_handler)
    app.add_exception_handler(asyncio.TimeoutError, timeout_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    app.include_router(health.router)
    app.include_router(eligibility.router)
    app.include_router(coverage.router)
    app.include_router(admin.router)

    @app.get("/")
    async def root() -> dict[str, Any]:
        """Root endpoint with API information."""
        return {
            "name": settings.SERVICE_NAME,
            "version": settings.SERVICE_VERSION,
            "environment": settings.ENVIRONMENT,
            "docs": "/docs" if not settings.is_production else "disabled",
        }

    return app


_settings = get_settings()
setup_logging(
    level=_settings.LOG_LEVEL,
    json_logs=_settings.is_production,
    service=_settings.SERVICE_NAME,
)

app = create_app(_settings)


def run() -> None:
    """Console entry point: serve the API with uvicorn."""
    import uvicorn

    uvicorn.run(
        "eligibility_service.api.main:app",
        host=_settings.API_HOST,
        port=_settings.API_PORT,
        log_config=None,
    )
