"""FastAPI application entry point."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from sqlalchemy import text
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api import join, webhooks
from app.api.v1.router import api_router
from app.config import settings
from app.core.exceptions import AppException
from app.core.firebase import initialize_firebase
from app.core.redis_client import close_redis_connection, get_redis_client
from app.core.result import Err
from app.database import engine
from app.dependencies import CacheManagerDep, DatabaseSession, UserServiceDep, get_identity_service
from app.middleware.auth import AuthMiddleware
from app.middleware.error_handler import (
    app_exception_handler,
    general_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from app.middleware.logging import LoggingMiddleware, configure_logging

# Configure logging
configure_logging()
logger = structlog.get_logger()

# Root page payload is cached until a user row is deleted
ROOT_PAGE_CACHE_TTL = 300


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Handles startup and shutdown events.
    """
    # Startup
    logger.info("application_startup", environment=settings.environment)

    # Initialize Firebase Admin SDK
    try:
        initialize_firebase(
            settings.firebase_credentials_path or None,
            settings.firebase_config_json or None,
        )
        logger.info("firebase_initialized")
    except Exception as e:
        logger.warning(
            "firebase_initialization_failed",
            error=str(e),
            note="Joining will report the authentication service as unavailable.",
        )

    if not settings.firebase_api_key:
        logger.warning("firebase_api_key_missing", note="Password sign-in is disabled.")

    # Test database connection
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info("database_connected")
    except Exception as e:
        logger.error("database_connection_failed", error=str(e))

    # Test Redis connection
    try:
        redis_client = get_redis_client()
        redis_client.ping()
        logger.info("redis_connected")
    except Exception as e:
        logger.error("redis_connection_failed", error=str(e))

    yield

    # Shutdown
    logger.info("application_shutdown")

    await engine.dispose()
    logger.info("database_connections_closed")

    close_redis_connection()
    logger.info("redis_connection_closed")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Temporary-account session joining for shared group views",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# Route protection (innermost, runs after logging and CORS)
app.add_middleware(AuthMiddleware, identity_factory=get_identity_service)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add logging middleware
app.add_middleware(LoggingMiddleware)

# Add exception handlers
app.add_exception_handler(AppException, app_exception_handler)  # type: ignore[arg-type]
app.add_exception_handler(StarletteHTTPException, http_exception_handler)  # type: ignore[arg-type]
app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
app.add_exception_handler(Exception, general_exception_handler)  # type: ignore[arg-type]

# Include routers
app.include_router(api_router, prefix=settings.api_v1_prefix)
app.include_router(join.router)
app.include_router(webhooks.router)

# Setup Prometheus instrumentation
Instrumentator(
    should_group_status_codes=True,
    should_ignore_untemplated=False,
    should_instrument_requests_inprogress=True,
    excluded_handlers=["/docs", "/redoc", "/openapi.json"],
    inprogress_name="http_requests_inprogress",
    inprogress_labels=True,
).instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)


@app.get("/", tags=["Root"])
async def root(
    cache_manager: CacheManagerDep,
    db: DatabaseSession,
    user_service: UserServiceDep,
) -> dict:
    """
    Root endpoint.

    Returns:
        Welcome message and the number of active participants
    """
    cache_key = cache_manager.page_key("/")
    cached = cache_manager.get_json(cache_key)
    if cached:
        return cached

    result = await user_service.get_active_users(db)
    payload = {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "docs": "/docs",
        "active_participants": len(result.unwrap_or([])),
    }

    if isinstance(result, Err):
        logger.warning("root_active_users_unavailable", error=result.reason)
    else:
        cache_manager.set_json(cache_key, payload, ttl=ROOT_PAGE_CACHE_TTL)
    return payload


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        log_level=settings.log_level.lower(),
    )
