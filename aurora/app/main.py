"""
FastAPI application entry point.

Run with:
    uvicorn aurora.app.main:app --reload --port 8000

On start-up the alert database is initialised and, when storage is usable,
pending alerts left over from a previous run are reconciled before the first
request is served.  A database that fails to initialise does not stop the
process: /health reports it and alert operations fail with 503.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# ── Core infrastructure ──
from aurora.app.core.config import settings
from aurora.app.core.database import Database
from aurora.app.core.errors import register_error_handlers
from aurora.app.core.health import HealthStatus, run_health_check
from aurora.app.core.logging_config import get_logger, setup_logging
from aurora.app.core.middleware import RequestLoggingMiddleware
from aurora.app.dependencies import SOSServices, build_services, get_services

# ── API routers ──
from aurora.app.api.v1.contacts import router as contacts_router
from aurora.app.api.v1.device import router as device_router
from aurora.app.api.v1.sos import router as sos_router

setup_logging()
logger = get_logger(__name__)


def create_app(database_url: Optional[str] = None, **service_overrides) -> FastAPI:
    """
    Build the application.

    ``service_overrides`` are passed to ``build_services`` (e.g.
    ``connectivity=``, ``gateway=``) so tests can run the real HTTP surface
    against fake channels.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "Starting %s v%s [%s]",
            settings.APP_NAME, settings.APP_VERSION, settings.ENVIRONMENT,
        )
        db = Database(database_url)
        if not await db.init():
            logger.error("Alert storage unavailable; SOS persistence is degraded")

        services = build_services(db, **service_overrides)
        app.state.services = services

        if settings.RECONCILE_ON_STARTUP and db.ready:
            report = await services.controller.reconcile_pending(services.reconciler)
            logger.info("Start-up reconciliation: %s", report.to_dict())

        yield

        logger.info("Shutting down %s", settings.APP_NAME)
        await services.controller.shutdown()
        await services.close()
        await db.close()

    app = FastAPI(
        title=settings.APP_NAME,
        description=(
            "Personal-safety SOS service. Captures location and emergency "
            "contacts, arms a cancellable countdown, delivers the alert to "
            "the network collector with SMS fallback, and retries "
            "undelivered alerts when connectivity returns."
        ),
        version=settings.APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # ── Middleware stack (outermost first) ──
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS if not settings.CORS_ALLOW_ALL else ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    register_error_handlers(app)

    app.include_router(sos_router)
    app.include_router(contacts_router)
    app.include_router(device_router)

    @app.get("/", tags=["root"])
    async def root():
        return {
            "service": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT,
            "modules": ["sos", "contacts", "device"],
            "docs": "/docs",
        }

    @app.get("/health", tags=["health"])
    async def health_check(services: SOSServices = Depends(get_services)):
        """Deep health probe — 503 when alerts cannot be persisted."""
        report = await run_health_check(services)
        if report.status is HealthStatus.UNHEALTHY:
            return JSONResponse(status_code=503, content=report.to_dict())
        return report.to_dict()

    @app.get("/health/live", tags=["health"])
    async def liveness():
        return {"status": "alive"}

    return app


app = create_app()
