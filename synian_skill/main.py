"""Main FastAPI application for the Synian skill service."""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import structlog
from fastapi import FastAPI
from pydantic import BaseModel

from synian_skill import __version__
from synian_skill.api.alexa import router as alexa_router
from synian_skill.clients.synian_core_client import close_core_client
from synian_skill.config import settings
from synian_skill.middleware import MetricsMiddleware, RequestLoggingMiddleware, get_metrics
from synian_skill.observability import add_trace_context, instrument_fastapi_app, setup_observability
from synian_skill.services.session_store import InMemorySessionStore, get_session_store


logging.basicConfig(format="%(message)s", level=settings.log_level.upper())

# Configure structured logging
structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        add_trace_context,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str
    timestamp: datetime
    version: str = __version__


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting Synian skill service",
                port=settings.port,
                host=settings.host,
                session_store=settings.session_store,
                lockout_policy=settings.lockout_policy)

    setup_observability(
        service_name="synian-skill",
        service_version=__version__,
        otlp_endpoint=settings.otlp_endpoint,
        enable_console_export=settings.enable_console_export
    )
    instrument_fastapi_app(app)

    sweeper = None
    store = get_session_store()
    if isinstance(store, InMemorySessionStore):
        sweeper = asyncio.create_task(store.run_sweeper(settings.sweep_interval_seconds))

    yield

    logger.info("Shutting down Synian skill service")
    if sweeper is not None:
        sweeper.cancel()
        try:
            await sweeper
        except asyncio.CancelledError:
            pass
    await close_core_client()


app = FastAPI(
    title="Synian Skill",
    description="Voice-assistant gateway that authenticates users and relays conversation to Synian Core",
    version=__version__,
    lifespan=lifespan
)

# Middleware order matters: last added is executed first
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(MetricsMiddleware)

app.include_router(alexa_router)


@app.get("/healthz", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc)
    )


@app.get("/metrics")
async def metrics_endpoint():
    """Application metrics endpoint."""
    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "metrics": get_metrics()
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "synian_skill.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        reload=False
    )
