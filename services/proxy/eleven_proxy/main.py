"""
ElevenLabs Proxy
Accepts text + voice parameters, calls ElevenLabs and streams MP3 back to the caller
"""

from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI
import structlog

from .config import Settings, get_settings
from .errors import register_exception_handlers
from .middleware.guard import AccessGuard
from .middleware.metrics import MetricsMiddleware, metrics_endpoint
from .relay import RelayPipeline
from .routes import health, tts
from .utils.http_client import ElevenLabsClient
from .utils.logging import setup_logging

logger = structlog.get_logger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """Build the proxy app around one immutable settings value"""
    settings = settings or get_settings()
    client = ElevenLabsClient(settings, transport=transport)
    guard = AccessGuard(settings.eleven_proxy_secret)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager"""
        logger.info("🚀 Starting ElevenLabs proxy", port=settings.port, base_url=settings.eleven_base_url)

        if not settings.has_upstream_key:
            logger.warning("ELEVEN_API_KEY is required")
        guard.warn_if_open()

        await client.initialize()

        yield

        logger.info("🛑 Shutting down ElevenLabs proxy")
        await client.close()

    app = FastAPI(
        title="ElevenLabs Proxy",
        description="Validated streaming relay for ElevenLabs text-to-speech",
        version="1.0.0",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.guard = guard
    app.state.upstream = client
    app.state.relay = RelayPipeline(settings, client)

    if settings.metrics_enabled:
        app.add_middleware(MetricsMiddleware)
        app.add_api_route("/metrics", metrics_endpoint, methods=["GET"], include_in_schema=False)

    register_exception_handlers(app)

    app.include_router(health.router, tags=["health"])
    app.include_router(tts.router, tags=["tts"])

    return app


def run():
    """Console entry point"""
    import uvicorn

    settings = get_settings()
    setup_logging(settings.log_level, settings.debug)
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_config=None,
    )


if __name__ == "__main__":
    run()
