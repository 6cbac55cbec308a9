"""
Horizon News Backend API.
Public news feed plus the admin content API (articles, tags, images).
"""

import logging
import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Callable

from fastapi import Depends, FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy.ext.asyncio import AsyncSession

from cache import QueryCache
from config import settings
from database import get_db, init_db, ping_db
from dependencies import get_news_cache, limiter
from exceptions import NewsroomError
from logging_config import get_request_logger, request_id_ctx, setup_logging
from routers import images, news, tags
from storage import create_storage

setup_logging(
    level=settings().log_level,
    format_type=settings().log_format,
    extra_fields={"app": settings().app_name, "env": settings().environment}
)
logger = logging.getLogger(__name__)
request_logger = get_request_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the schema on startup; drop cached queries on shutdown."""
    logger.info(f"{settings().app_name} {settings().app_version} starting ({settings().environment})")
    try:
        await init_db()
    except Exception as e:
        logger.critical(f"Database initialization failed: {e}")

    yield

    app.state.news_cache.clear()
    logger.info(f"{settings().app_name} stopped")


async def assign_request_id(request: Request, call_next: Callable) -> Response:
    """Tag the request with an id (the caller's X-Request-ID if sent) and log its outcome."""
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    token = request_id_ctx.set(request_id)
    started = time.perf_counter()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        response.headers["X-Request-ID"] = request_id
        return response
    finally:
        request_logger.log_request(
            method=request.method,
            path=request.url.path,
            status_code=status_code,
            duration_ms=(time.perf_counter() - started) * 1000,
            client_ip=request.client.host if request.client else None,
        )
        request_id_ctx.reset(token)


async def newsroom_error_handler(request: Request, exc: NewsroomError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{exc.__class__.__name__}: {exc.message}")
    else:
        logger.info(f"{exc.__class__.__name__}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "detail": exc.message,
            "error_type": exc.__class__.__name__,
            "error_code": exc.error_code,
            "details": exc.details,
            "request_id": request_id_ctx.get(),
        }
    )


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal Server Error", "request_id": request_id_ctx.get()}
    )


def create_application() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings().app_name,
        description="Bilingual news publishing: public feed and admin content management",
        version=settings().app_version,
        lifespan=lifespan
    )

    app.state.news_cache = QueryCache(ttl=settings().cache_ttl_news)
    app.state.storage = create_storage()

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(NewsroomError, newsroom_error_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)

    app.middleware("http")(assign_request_id)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings().cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )

    for module in (news, tags, images):
        app.include_router(module.router)

    return app


app = create_application()


@app.get("/health")
def health_check_simple() -> dict[str, str]:
    """Liveness probe."""
    return {"status": "healthy"}


@app.get("/")
def read_root() -> dict[str, Any]:
    return {
        "status": "healthy",
        "message": f"{settings().app_name} API is running",
        "version": settings().app_version
    }


@app.get("/health/detailed")
async def health_check_detailed(
    db: AsyncSession = Depends(get_db),
    cache: QueryCache = Depends(get_news_cache),
) -> dict[str, Any]:
    """Database reachability, storage configuration and news cache size."""
    report: dict[str, Any] = {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "services": {},
        "cache": cache.stats(),
    }

    try:
        await ping_db(db)
        report["services"]["database"] = "healthy"
    except Exception as e:
        report["services"]["database"] = f"unhealthy: {e}"
        report["status"] = "degraded"

    if settings().storage_service_key:
        report["services"]["storage"] = "configured"
    else:
        report["services"]["storage"] = "missing_key"
        report["status"] = "degraded"

    return report
