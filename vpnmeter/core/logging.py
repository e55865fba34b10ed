"""Logging utilities for the service."""

from __future__ import annotations

import logging
import sys
import time
import uuid
from typing import Callable

from fastapi import Request

logger = logging.getLogger("vpnmeter.request")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


class UTCFormatter(logging.Formatter):
    """Render record timestamps as ISO-8601 UTC."""

    converter = time.gmtime

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:  # noqa: N802
        return time.strftime("%Y-%m-%dT%H:%M:%SZ", self.converter(record.created))


def configure_logging(level: str = "INFO") -> int:
    """Attach a UTC-stamped stdout handler to the root logger and return the level used.

    An already configured root logger keeps its handlers; only the level changes.
    """

    resolved = getattr(logging, str(level).upper(), None)
    if not isinstance(resolved, int):
        resolved = logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(UTCFormatter(LOG_FORMAT))
    logging.basicConfig(level=resolved, handlers=[handler])
    logging.getLogger().setLevel(resolved)

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    return resolved


async def request_id_middleware(request: Request, call_next: Callable):
    request_id = request.headers.get("x-request-id", str(uuid.uuid4()))
    request.state.request_id = request_id

    logger.info("%s %s [rid=%s]", request.method, request.url.path, request_id)

    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response
