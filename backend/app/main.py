"""
FastAPI Application Entry Point.

Wires the freight engine's collaborators (notification dispatcher, alert
sink), middleware, exception handlers and the v1 routes.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from backend.app.api.v1.router import router as api_v1_router
from backend.app.core.config import settings
from backend.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)
from backend.app.core.observability import ObservabilityMiddleware, configure_logging
from backend.app.core.redis_client import close_redis, ping_redis, redis_client
from backend.app.db.session import init_models
from backend.app.services.alerts import LoggingAlertSink
from backend.app.services.notification_dispatcher import build_notification_dispatcher

# Import models to ensure they are registered with Base
from backend.app.models.user import User
from backend.app.models.freight import Freight
from backend.app.models.freight_assignment import FreightAssignment
from backend.app.models.freight_proposal import FreightProposal
from backend.app.models.freight_status_history import FreightStatusHistory
from backend.app.models.tracking_consent import TrackingConsent
from backend.app.models.cancellation_request import CancellationRequest

configure_logging(settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup creates missing tables; shutdown flushes in-flight
    notifications before closing the broker connection.
    """
    await init_models()
    yield
    await app.state.notifications.drain()
    await close_redis()


app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Lifecycle, acceptance and pricing engine for a freight marketplace",
    lifespan=lifespan,
)

# Shared by every freight service built per request
app.state.alerts = LoggingAlertSink()
app.state.notifications = build_notification_dispatcher(redis_client, app.state.alerts)

app.add_middleware(ObservabilityMiddleware)

app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)

app.include_router(api_v1_router, prefix=f"/{settings.api_version}")


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Liveness probe.

    The service stays healthy while the broker is down; notifications are
    dropped until it returns.
    """
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.api_version,
        "redis": "up" if await ping_redis() else "down",
    }


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": "Welcome to the Freight Lifecycle Engine API",
        "docs": "/docs",
        "health": "/health",
    }
