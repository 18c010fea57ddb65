"""
FastAPI application factory.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from starlette.exceptions import HTTPException as StarletteHTTPException

from koban.config import settings
from koban.core.cache import cache_manager
from koban.core.database import db_manager
from koban.core.exceptions import KobanException, StoreError
from koban.core.logging_config import get_logger, setup_logging
from koban.core.middleware import RequestContextMiddleware
from koban.core.performance import track_http_metrics

# Setup logging first
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Application lifespan events."""
    logger.info(
        "application_starting",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
    )

    # Initialize services
    db_manager.init()
    if settings.database_url.startswith("sqlite"):
        await db_manager.create_all()

    if settings.login_rate_limit_backend == "redis":
        try:
            await cache_manager.init()
        except (RedisError, OSError) as e:
            # The Redis limiter fails open, so the API can still serve
            logger.error("redis_unavailable_at_startup", error=str(e))

    # Update Prometheus app info
    from koban.core.metrics import app_info
    app_info.info({
        "version": settings.app_version,
        "environment": settings.environment,
    })

    logger.info("application_ready")

    yield

    # Cleanup
    logger.info("application_shutting_down")
    await db_manager.close()
    await cache_manager.close()
    logger.info("application_shutdown_complete")


def error_body(detail, code: int, **extra) -> dict:
    return {"detail": detail, "code": code, **extra}


def create_application() -> FastAPI:
    """Application factory."""

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Time-limited access keys with an operator admin API",
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        lifespan=lifespan,
    )

    # Middleware (order matters - last added = outermost)

    # Performance monitoring
    @app.middleware("http")
    async def performance_middleware(request: Request, call_next):
        return await track_http_metrics(request, call_next)

    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(KobanException)
    async def koban_exception_handler(
        request: Request,
        exc: KobanException,
    ) -> JSONResponse:
        if isinstance(exc, StoreError):
            logger.error(
                "store_error",
                path=request.url.path,
                method=request.method,
                error=exc.message,
                details=exc.details,
                exc_info=exc,
            )
        else:
            logger.info(
                "request_rejected",
                path=request.url.path,
                status_code=exc.status_code,
                reason=exc.message,
            )

        extra = {}
        if exc.details and not (settings.is_production and isinstance(exc, StoreError)):
            extra["details"] = exc.details

        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(exc.message, exc.status_code, **extra),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request,
        exc: StarletteHTTPException,
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(exc.detail, exc.status_code),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request,
        exc: RequestValidationError
    ) -> JSONResponse:
        logger.info(
            "validation_error",
            path=request.url.path,
            errors=exc.errors(),
        )

        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=error_body(
                "Invalid request",
                status.HTTP_400_BAD_REQUEST,
                errors=jsonable_encoder(exc.errors()),
            ),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        request_id = getattr(request.state, "request_id", "unknown")

        logger.error(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=exc,
        )

        # Return clean error
        if settings.is_production:
            detail = "An internal error occurred. Please contact support."
        else:
            detail = f"{type(exc).__name__}: {exc}"

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_body(
                detail,
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                request_id=request_id,
            ),
        )

    # Register routers
    from koban.api.health_router import router as health_router
    from koban.api.metrics_router import router as metrics_router
    from koban.api.root_router import router as root_router
    from koban.api.router import admin_api_router, api_router

    # Health endpoints (no prefix)
    app.include_router(health_router)

    # Metrics endpoint
    if settings.metrics_enabled:
        app.include_router(metrics_router)

    app.include_router(root_router)
    app.include_router(api_router)
    app.include_router(admin_api_router)

    logger.info("application_configured")
    return app


app = create_application()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "koban.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload and settings.is_development,
        log_level=settings.log_level.lower(),
        access_log=False,  # We handle logging ourselves
    )
