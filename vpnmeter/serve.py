"""Launch script that starts the bandwidth meter under Uvicorn."""

from __future__ import annotations

import uvicorn

from vpnmeter.core.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "vpnmeter.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
