"""ASGI app for the CMF quote service.

Usage:
    python -m src.main

Serves the quote submission endpoint and a health check.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI

from src.config import settings
from src.crm.hubspot import hubspot_client
from src.events import emit, start_event_system, stop_event_system
from src.events.audit import register_audit_logger, unregister_audit_logger
from src.quotes.router import router as quotes_router
from src.schemas.events import EventType, SystemEvent

# ── Logging setup ────────────────────────────────────────────────────

logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    stream=sys.stdout,
)
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer() if settings.is_production else structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
)

logger = logging.getLogger(__name__)

# ── FastAPI lifespan ─────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application startup and shutdown lifecycle."""
    logger.info("Starting quote service (env=%s)", settings.environment)

    await start_event_system()
    register_audit_logger()
    logger.info("Event system started, audit logging registered")

    if not settings.hubspot.is_configured:
        logger.warning("HUBSPOT_API_KEY not set; quotes will be backed up locally instead")

    await emit(SystemEvent(event_type=EventType.SYSTEM_STARTUP, source_module="main"))
    try:
        yield
    finally:
        logger.info("Shutting down quote service...")
        await emit(SystemEvent(event_type=EventType.SYSTEM_SHUTDOWN, source_module="main"))

        await hubspot_client.aclose()
        logger.info("HubSpot client closed")

        unregister_audit_logger()
        await stop_event_system()
        logger.info("Event system stopped")


# ── FastAPI app ──────────────────────────────────────────────────────

app = FastAPI(
    title="CMF Quote Service",
    description="Quote request intake for Canadian Metal Fabricators",
    version="0.1.0",
    lifespan=lifespan,
)
app.include_router(quotes_router)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {
        "status": "ok",
        "environment": settings.environment,
        "crm": "configured" if settings.hubspot.is_configured else "not configured",
    }


# ── Entry point ──────────────────────────────────────────────────────

if __name__ == "__main__":
    uvicorn.run(
        "src.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.environment == "development",
        log_level=settings.log_level.lower(),
    )
