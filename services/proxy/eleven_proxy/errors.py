"""Structured error responses"""

from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import structlog

logger = structlog.get_logger(__name__)


class ProxyError(Exception):
    """Failure that maps to a JSON body ``{ok: false, error: <kind>, ...}``"""

    def __init__(self, status_code: int, error: str, **context: Any):
        super().__init__(error)
        self.status_code = status_code
        self.error = error
        self.context = context

    def to_dict(self) -> Dict[str, Any]:
        return {"ok": False, "error": self.error, **self.context}


async def proxy_error_handler(request: Request, exc: ProxyError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def unhandled_exception_handler(request: Request, exc: Exception):
    """Last-resort handler; only reachable before a response has started"""
    logger.error(
        "Unhandled proxy failure",
        path=request.url.path,
        error=str(exc),
        error_type=type(exc).__name__,
    )
    return JSONResponse(
        status_code=500,
        content={"ok": False, "error": "proxy_error", "message": str(exc) or type(exc).__name__},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ProxyError, proxy_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
