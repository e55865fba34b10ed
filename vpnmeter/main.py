"""FastAPI application entry point for the VPN bandwidth meter."""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import FastAPI

from vpnmeter.accounting.scheduler import CollectionScheduler
from vpnmeter.accounting.service import BandwidthService
from vpnmeter.api.bandwidth import create_bandwidth_router
from vpnmeter.core.auth import build_token_verifier
from vpnmeter.core.config import Settings, get_settings
from vpnmeter.core.errors import PersistenceError, persistence_exception_handler, unhandled_exception_handler
from vpnmeter.core.logging import configure_logging, request_id_middleware
from vpnmeter.core.metrics import CycleMetrics

logger = logging.getLogger("vpnmeter.app")


def create_app(settings: Settings | None = None, service: BandwidthService | None = None) -> FastAPI:
    """Build the application around a single bandwidth service instance."""

    settings = settings or get_settings()
    settings.bandwidth_storage_path.mkdir(parents=True, exist_ok=True)
    service = service or BandwidthService.from_settings(settings)
    scheduler = CollectionScheduler(service.collect_once, CycleMetrics())

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        level = configure_logging(settings.log_level)
        logger.info(
            "Logging configured at %s level for %s environment",
            logging.getLevelName(level),
            settings.environment,
        )
        if settings.collector_enabled:
            scheduler.start(settings.collection_interval_seconds)
        else:
            logger.info("Background collection disabled")
        try:
            yield
        finally:
            scheduler.stop()
            service.close()

    app = FastAPI(title=settings.app_name, version="0.1.0", docs_url="/docs", lifespan=lifespan)
    app.state.settings = settings
    app.state.bandwidth_service = service
    app.state.scheduler = scheduler

    app.middleware("http")(request_id_middleware)
    app.add_exception_handler(PersistenceError, persistence_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.include_router(create_bandwidth_router(service, build_token_verifier(settings)))

    @app.get("/health", tags=["health"])
    async def health_check() -> dict[str, str]:
        """Return basic service status for monitoring."""

        return {"status": "ok"}

    @app.get("/ready", tags=["health"])
    async def readiness_probe() -> dict[str, Any]:
        """Readiness endpoint reporting storage access and collection loop state."""

        storage_dir = settings.bandwidth_storage_path
        storage_ok = storage_dir.is_dir() and os.access(storage_dir, os.W_OK)
        cycles = scheduler.metrics.snapshot()

        collector: dict[str, Any] = {
            "enabled": settings.collector_enabled,
            "running": scheduler.running,
            "cycles_total": cycles.cycles_total,
            "cycles_failed": cycles.cycles_failed,
            "last_duration_seconds": cycles.last_duration_seconds,
            "last_success_at": cycles.last_success_at.isoformat() if cycles.last_success_at else None,
        }
        if cycles.last_error:
            collector["last_error"] = cycles.last_error

        if not storage_ok:
            status = "fail"
        elif not cycles.healthy or (settings.collector_enabled and not scheduler.running):
            status = "degraded"
        else:
            status = "ok"

        return {
            "status": status,
            "environment": settings.environment,
            "components": {
                "storage": {"path": str(storage_dir), "ok": storage_ok},
                "collector": collector,
            },
        }

    return app
