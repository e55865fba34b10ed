"""API routes exposing accumulated bandwidth metrics."""

from __future__ import annotations

from typing import Any, Callable

from fastapi import APIRouter, Depends

from vpnmeter.accounting.service import BandwidthService

API_VERSION = 1


def create_bandwidth_router(service: BandwidthService, verify_token: Callable[..., Any]) -> APIRouter:
    router = APIRouter(prefix="/api/v1", tags=["bandwidth"], dependencies=[Depends(verify_token)])

    # Plain ``def`` handlers run in the threadpool; the service blocks on its lock and file I/O.

    @router.get("/bandwidth")
    def bandwidth_metrics() -> dict:
        """Accumulated totals since the last reset."""

        return {"data": service.get_metrics().to_dict()}

    @router.get("/bandwidth/live")
    def live_bandwidth_metrics() -> dict:
        """Current counters of active sessions and the IPsec container."""

        return {"data": service.live_metrics().to_dict()}

    @router.post("/bandwidth/reset")
    def reset_bandwidth() -> dict:
        reset_at = service.reset()
        return {"data": {"reset": True, "last_reset_at": reset_at.isoformat()}}

    @router.get("/version")
    def version() -> dict:
        return {"data": {"version": API_VERSION}}

    return router
