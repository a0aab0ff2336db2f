"""Shared-secret access guard"""

import hmac
from typing import Optional

from fastapi import Request
import structlog

from ..errors import ProxyError

logger = structlog.get_logger(__name__)

SECRET_HEADER = "x-proxy-secret"


class AccessGuard:
    """Admits callers presenting the configured shared secret.

    An empty secret admits everyone; that mode is reported once by
    ``warn_if_open`` at startup.
    """

    def __init__(self, secret: str):
        self._secret = (secret or "").strip()

    @property
    def enabled(self) -> bool:
        return bool(self._secret)

    def is_allowed(self, supplied: Optional[str]) -> bool:
        if not self._secret:
            return True
        got = (supplied or "").strip()
        return hmac.compare_digest(got.encode("utf-8"), self._secret.encode("utf-8"))

    def check(self, supplied: Optional[str]) -> None:
        if not self.is_allowed(supplied):
            raise ProxyError(401, "bad_secret")

    def warn_if_open(self) -> None:
        if not self.enabled:
            logger.warning("ELEVEN_PROXY_SECRET is not set, endpoint is public")


async def require_secret(request: Request) -> None:
    """FastAPI dependency guarding the synthesis route"""
    guard: AccessGuard = request.app.state.guard
    guard.check(request.headers.get(SECRET_HEADER))
