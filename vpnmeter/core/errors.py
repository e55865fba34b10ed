"""Exception types and HTTP exception handlers."""

from __future__ import annotations

import logging
from typing import Sequence

from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger("vpnmeter.errors")


class BandwidthError(Exception):
    """Base class for bandwidth accounting failures."""


class SourceUnavailableError(BandwidthError):
    """A data source exists but could not be read.

    A missing status file or a stopped container is not an error; both read
    as "no traffic".
    """


class StatsDecodeError(SourceUnavailableError):
    """The container stats payload could not be decoded."""


class PersistenceError(BandwidthError):
    """Loading or saving the accumulator document failed."""


class LockContentionError(PersistenceError):
    """The advisory lock could not be acquired within the retry budget."""


class CollectionError(BandwidthError):
    """A collection cycle completed with one or more failed steps."""

    def __init__(self, errors: Sequence[Exception]) -> None:
        self.errors = list(errors)
        summary = "; ".join(f"{type(exc).__name__}: {exc}" for exc in self.errors)
        super().__init__(f"collection cycle failed: {summary}")


async def persistence_exception_handler(request: Request, exc: PersistenceError) -> JSONResponse:
    """Map storage failures to 503 so callers can retry."""

    logger.error("Storage unavailable on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=503,
        content={
            "error": "storage_unavailable",
            "message": "Bandwidth storage is temporarily unavailable. Please retry.",
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:  # noqa: D401
    """Return a generic JSON error response while logging the exception."""

    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_error",
            "message": "the server encountered a problem and could not process your request",
        },
    )
