"""
Relay pipeline: validate a synthesis request, call ElevenLabs and stream the
audio back once the upstream response has passed every gate.
"""

from typing import AsyncIterator

import httpx
from fastapi.responses import StreamingResponse
import structlog

from .config import Settings
from .errors import ProxyError
from .middleware.metrics import record_outcome, record_streamed_bytes
from .models import (
    ContentTypeRejected,
    RedirectBlocked,
    Success,
    SynthesisRequest,
    UpstreamError,
)
from .utils.http_client import ElevenLabsClient

logger = structlog.get_logger(__name__)

AUDIO_MEDIA_TYPE = "audio/mpeg"


class RelayPipeline:
    """Turns a SynthesisRequest into a gated audio stream or a ProxyError"""

    def __init__(self, settings: Settings, client: ElevenLabsClient):
        self.settings = settings
        self.client = client

    def validate(self, request: SynthesisRequest) -> None:
        if not request.text:
            raise ProxyError(400, "empty_text")
        if not request.voice_id:
            raise ProxyError(400, "no_voiceId")
        if not self.settings.has_upstream_key:
            raise ProxyError(500, "no_eleven_key")

    async def relay(self, request: SynthesisRequest) -> StreamingResponse:
        self.validate(request)

        try:
            outcome = await self.client.synthesize(request)
        except httpx.HTTPError as e:
            logger.error("Upstream call failed", error=str(e), error_type=type(e).__name__)
            record_outcome("proxy_error")
            raise ProxyError(500, "proxy_error", message=str(e) or type(e).__name__)

        if isinstance(outcome, RedirectBlocked):
            record_outcome("eleven_redirect")
            raise ProxyError(502, "eleven_redirect", status=outcome.status, location=outcome.location)

        if isinstance(outcome, UpstreamError):
            record_outcome("eleven_failed")
            raise ProxyError(502, "eleven_failed", status=outcome.status, body=outcome.body)

        if isinstance(outcome, ContentTypeRejected):
            record_outcome("bad_content_type")
            raise ProxyError(502, "bad_content_type", contentType=outcome.content_type, body=outcome.body)

        if isinstance(outcome, Success):
            record_outcome("ok")
            return StreamingResponse(
                stream_body(outcome.response),
                status_code=200,
                media_type=AUDIO_MEDIA_TYPE,
                headers={"Cache-Control": "no-store"},
            )

        raise TypeError(f"unknown upstream outcome: {outcome!r}")


async def stream_body(response: httpx.Response) -> AsyncIterator[bytes]:
    """Yield the upstream body chunk by chunk, closing it however we exit.

    Headers are already committed by the time this runs, so failures are
    logged and re-raised for the server to abort the connection.
    """
    total = 0
    try:
        if response.is_stream_consumed:
            body = response.content
            total = len(body)
            if body:
                yield body
        else:
            async for chunk in response.aiter_bytes():
                if chunk:
                    total += len(chunk)
                    yield chunk
        logger.info("Upstream request ok", bytes=total)
    except httpx.HTTPError as e:
        logger.error("Upstream stream aborted", bytes=total, error=str(e) or type(e).__name__)
        raise
    finally:
        record_streamed_bytes(total)
        await response.aclose()
