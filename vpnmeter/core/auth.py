"""Bearer-token authentication for the management API."""

from __future__ import annotations

import hmac
import logging

from fastapi import Header, HTTPException

from .config import Settings

logger = logging.getLogger("vpnmeter.auth")


def build_token_verifier(settings: Settings):
    """Return a FastAPI dependency enforcing ``Authorization: Bearer <token>``.

    When no token is configured the dependency lets every request through.
    """

    expected = settings.auth_token

    async def verify_token(authorization: str | None = Header(default=None, alias="Authorization")) -> None:
        if not expected:
            return

        if not authorization:
            raise HTTPException(status_code=401, detail="auth token is not provided")

        scheme, _, token = authorization.partition(" ")
        token = token.strip()
        if scheme != "Bearer" or not token:
            logger.warning("Invalid authorization header format")
            raise HTTPException(status_code=401, detail="token is not valid")

        if not hmac.compare_digest(token.encode("utf-8"), expected.encode("utf-8")):
            logger.warning("Rejected request with invalid token")
            raise HTTPException(status_code=403, detail="provided token is not valid")

    return verify_token
