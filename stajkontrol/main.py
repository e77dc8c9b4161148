"""Main FastAPI application."""

import logging
from contextlib import asynccontextmanager

import sentry_sdk
import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration

from stajkontrol.api.v1 import api_router
from stajkontrol.config import Settings, settings
from stajkontrol.core.cache import CacheManager
from stajkontrol.core.exceptions import register_exception_handlers
from stajkontrol.core.logging import setup_logging
from stajkontrol.core.scheduler import create_scheduler, start_scheduler, stop_scheduler
from stajkontrol.db.session import Database
from stajkontrol.services.file_storage import FileStorage

logger = structlog.get_logger(__name__)


def init_sentry(config: Settings) -> None:
    """Initialize Sentry for error tracking (only if DSN is properly configured)."""
    if not (config.SENTRY_DSN and config.SENTRY_DSN.startswith("https://")):
        logging.getLogger(__name__).info("Sentry DSN not configured - error tracking disabled")
        return

    sentry_sdk.init(
        dsn=config.SENTRY_DSN,
        environment=config.SENTRY_ENVIRONMENT,
        traces_sample_rate=config.SENTRY_TRACES_SAMPLE_RATE,
        integrations=[
            FastApiIntegration(),
            LoggingIntegration(
                level=None,  # Capture all logs
                event_level="ERROR",  # Only send ERROR and above as events
            ),
        ],
        release=config.APP_VERSION,
        attach_stacktrace=True,
        send_default_pii=False,  # Student records are personal data
    )


def create_app(config: Settings = settings) -> FastAPI:
    """Build the application; everything stateful is created in the lifespan."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        setup_logging()
        db = Database(config.DATABASE_URL, config)
        if config.DEBUG or config.DATABASE_URL.startswith("sqlite"):
            await db.create_all()

        cache_manager = CacheManager(config)
        cache_manager.connect()

        app.state.settings = config
        app.state.db = db
        app.state.storage = FileStorage(
            config.UPLOAD_DIR, config.MAX_UPLOAD_SIZE, config.ALLOWED_UPLOAD_MIME_TYPES
        )
        app.state.cache = cache_manager

        scheduler = None
        if config.SCHEDULER_ENABLED:
            scheduler = create_scheduler()
            start_scheduler(scheduler, db)

        logger.info("application_started", environment=config.ENVIRONMENT, version=config.APP_VERSION)
        yield

        # Shutdown
        if scheduler is not None:
            stop_scheduler(scheduler)
        cache_manager.disconnect()
        await db.dispose()
        logger.info("application_stopped")

    init_sentry(config)

    app = FastAPI(
        title=config.APP_NAME,
        version=config.APP_VERSION,
        description="University internship applications, logbooks and company approvals",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        swagger_ui_parameters={
            "persistAuthorization": True,  # Persist authorization after page refresh
        },
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[config.FRONTEND_URL],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    app.include_router(api_router, prefix="/api/v1")

    @app.get("/", tags=["Health"])
    async def root():
        """Root endpoint."""
        return {
            "message": config.APP_NAME,
            "version": config.APP_VERSION,
            "status": "operational",
        }

    @app.get("/health", tags=["Health"])
    async def health_check(request: Request):
        """Health check endpoint with cache status."""
        cache_manager = getattr(request.app.state, "cache", None)
        return {
            "status": "healthy",
            "environment": config.ENVIRONMENT,
            "cache": {
                "enabled": bool(cache_manager and cache_manager.enabled),
                "healthy": bool(cache_manager and cache_manager.is_healthy()),
            },
        }

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Global exception handler."""
        logger.exception("unhandled_exception", path=request.url.path)
        return JSONResponse(
            status_code=500,
            content={
                "detail": "Internal server error",
                "code": "internal_error",
                "message": str(exc) if config.DEBUG else "An error occurred",
            },
        )

    return app


app = create_app()
