import time
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from taskhub.cache.layer import cache_layer
from taskhub.core.config import get_settings
from taskhub.core.errors import DomainError
from taskhub.core.logging import setup_logging
from taskhub.database import create_db_and_tables
from taskhub.routers import admin, auth, stats, tags, tasks

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    setup_logging(settings)
    if settings.db_auto_create:
        await create_db_and_tables()
    await cache_layer.init_cache()
    logger.info("Application started", environment=settings.environment)
    yield
    await cache_layer.close()


app = FastAPI(
    title="Task Management API",
    description="Multi-user task management API with soft delete and a two-tier cache",
    swagger_ui_parameters={"displayRequestDuration": True},
    version="1.0.0",
    lifespan=lifespan,
)


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception:
        logger.exception(
            "HTTP request failed",
            method=request.method,
            path=request.url.path,
            duration_ms=round((time.perf_counter() - start) * 1000, 1),
        )
        raise
    logger.info(
        "HTTP request",
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=round((time.perf_counter() - start) * 1000, 1),
        user_agent=request.headers.get("user-agent", ""),
    )
    return response


# Include routers
app.include_router(auth.router)
app.include_router(tasks.router)
app.include_router(tags.router)
app.include_router(stats.router)
app.include_router(admin.router)


@app.get("/")
async def root():
    return {
        "message": "Welcome to Task Management API",
        "docs": "/docs",
        "version": "1.0.0",
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy", "redis": cache_layer.redis_available}
