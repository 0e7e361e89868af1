"""
FastAPI application entry point.
Version: 1.0.0
"""
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional
import asyncio
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api.routes import admin, escalation, health
from .config import RateLimitSettings, Settings, rate_limit_settings, settings
from .exceptions import SupportGateError, ValidationFailed
from .limiter import RateGate
from .services import AuthService, EscalationWorkflow, StatsAggregator, StatsService
from .store import SupportStore, create_support_store
from .utils.middleware import ErrorHandlingMiddleware, RequestIDMiddleware, TimingMiddleware
from .utils.telemetry import setup_telemetry, update_limiter_records

logging.basicConfig(
    level=logging.INFO if not settings.debug else logging.DEBUG,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


def build_store(config: Settings) -> SupportStore:
    """Support store for the configured backend."""
    if config.store_backend == "redis":
        return create_support_store(
            "redis",
            redis_url=config.redis_url,
            key_prefix=config.redis_key_prefix
        )
    return create_support_store("in_memory")


async def periodic_limiter_purge(app: FastAPI, shutdown_event: asyncio.Event) -> None:
    """
    Background task dropping stale limiter records.
    Limiter state lives in process memory; without a purge it only grows.
    """
    interval = app.state.settings.limiter_purge_interval_seconds
    logger.info(f"Starting limiter purge task (every {interval}s)")

    while not shutdown_event.is_set():
        try:
            await asyncio.wait_for(shutdown_event.wait(), timeout=interval)
            break
        except asyncio.TimeoutError:
            pass

        try:
            gate: RateGate = app.state.rate_gate
            purged = gate.purge_expired()
            if purged > 0:
                logger.info(f"Limiter purge: removed {purged} stale records")
            update_limiter_records(len(gate))
        except Exception as e:
            logger.error(f"Limiter purge failed: {e}", exc_info=True)

    logger.info("Limiter purge task stopped")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Build services on startup, release them on shutdown.
    """
    config: Settings = app.state.settings
    limits: RateLimitSettings = app.state.rate_limits

    logger.info("=" * 60)
    logger.info(f"Starting {config.app_name} v{config.app_version}")
    logger.info(f"Environment: {config.environment}")
    logger.info("=" * 60)

    store = app.state.store if app.state.store is not None else build_store(config)
    app.state.store = store
    logger.info(f"✓ Support store: {type(store).__name__}")

    try:
        if await store.ping():
            logger.info("✓ Support store reachable")
        else:
            logger.warning("✗ Support store did not answer ping")
    except Exception as e:
        logger.warning(f"✗ Support store ping failed: {e}")

    app.state.rate_gate = RateGate(limits.policy("chat_escalation"))
    app.state.auth_service = AuthService(
        secret_key=config.secret_key,
        algorithm=config.jwt_algorithm,
        expiration_hours=config.jwt_expiration_hours,
        admin_emails=config.admin_emails
    )
    app.state.escalation_workflow = EscalationWorkflow(
        store,
        timeout=config.store_timeout_seconds
    )
    app.state.stats_service = StatsService(
        StatsAggregator(
            store,
            timeout=config.store_timeout_seconds,
            tz_name=config.stats_timezone
        ),
        ttl_ms=config.stats_cache_ttl_ms,
        serve_stale_on_error=config.stats_serve_stale_on_error
    )

    shutdown_event = asyncio.Event()
    purge_task = asyncio.create_task(periodic_limiter_purge(app, shutdown_event))

    logger.info("✓ Application started successfully")

    yield

    logger.info("Shutting down application...")
    shutdown_event.set()

    try:
        await asyncio.wait_for(purge_task, timeout=5.0)
    except asyncio.TimeoutError:
        logger.warning("Limiter purge task did not stop in time, cancelling...")
        purge_task.cancel()
        try:
            await purge_task
        except asyncio.CancelledError:
            pass

    try:
        await store.close()
        logger.info("✓ Support store closed")
    except Exception as e:
        logger.error(f"Error closing support store: {e}")

    logger.info("✓ Application shutdown complete")


async def support_gate_error_handler(request: Request, exc: SupportGateError) -> JSONResponse:
    """Render service errors as {"error", "message"} JSON."""
    headers: Dict[str, str] = {}

    decision = getattr(request.state, "rate_decision", None)
    if decision is not None:
        headers.update(decision.headers())
    headers.update(exc.headers())

    if exc.status_code >= 500:
        logger.error(f"{exc.error_code} on {request.method} {request.url.path}: {exc.message}")

    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Request validation errors are plain 400s."""
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    return await support_gate_error_handler(request, ValidationFailed(message))


def create_app(
    config: Optional[Settings] = None,
    limits: Optional[RateLimitSettings] = None,
    store: Optional[SupportStore] = None
) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        config: Settings (module settings by default)
        limits: Rate-limit policies (module rate_limit_settings by default)
        store: Pre-built support store (built from config on startup otherwise)

    Returns:
        FastAPI application
    """
    config = config or settings

    app = FastAPI(
        title=config.app_name,
        version=config.app_version,
        description="Rate-limited chat escalation and support statistics",
        lifespan=lifespan,
        docs_url="/docs" if config.debug else None,
        redoc_url="/redoc" if config.debug else None,
        openapi_url="/openapi.json" if config.debug else None
    )

    app.state.settings = config
    app.state.rate_limits = limits or rate_limit_settings
    app.state.store = store

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[
            "X-Request-ID",
            "X-Process-Time",
            "X-Cache",
            "X-RateLimit-Limit",
            "X-RateLimit-Remaining",
            "X-RateLimit-Reset",
            "Retry-After",
        ]
    )

    # Applied in reverse order
    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(TimingMiddleware)

    app.add_exception_handler(SupportGateError, support_gate_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    app.include_router(health.router, prefix="/health", tags=["Health"])
    app.include_router(escalation.router, prefix="/api/chat", tags=["Chat"])
    app.include_router(admin.router, prefix="/api/admin", tags=["Admin"])

    @app.get("/", tags=["Root"])
    async def root() -> Dict[str, Any]:
        """API information."""
        return {
            "name": config.app_name,
            "version": config.app_version,
            "environment": config.environment,
            "status": "operational",
            "endpoints": {
                "docs": "/docs" if config.debug else "disabled",
                "health": "/health",
                "metrics": "/metrics" if config.enable_telemetry else "disabled",
            },
        }

    if config.enable_telemetry:
        setup_telemetry(app)
        logger.info("✓ Telemetry initialized")

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "support_gate.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level="debug" if settings.debug else "info"
    )
