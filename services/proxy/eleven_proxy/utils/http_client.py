"""
ElevenLabs HTTP client with connection pooling and response gating
"""

import time
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx
import structlog

from ..config import Settings
from ..models import (
    ContentTypeRejected,
    RedirectBlocked,
    Success,
    SynthesisRequest,
    UpstreamError,
    UpstreamOutcome,
)
from ..middleware.metrics import UPSTREAM_LATENCY

logger = structlog.get_logger(__name__)

# Worst case UTF-8 width; bounds how many bytes a text prefix may need.
_MAX_BYTES_PER_CHAR = 4


class ElevenLabsClient:
    """Pooled async client for the ElevenLabs streaming TTS endpoint"""

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._settings = settings
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def initialize(self):
        """Initialize the HTTP client; redirects are never followed"""
        if self._client is None:
            limits = httpx.Limits(
                max_keepalive_connections=self._settings.upstream_max_keepalive,
                max_connections=self._settings.upstream_max_connections,
                keepalive_expiry=30.0,
            )

            timeout = httpx.Timeout(
                connect=self._settings.upstream_connect_timeout,
                read=self._settings.upstream_read_timeout,
                write=self._settings.upstream_write_timeout,
                pool=self._settings.upstream_pool_timeout,
            )

            self._client = httpx.AsyncClient(
                limits=limits,
                timeout=timeout,
                transport=self._transport,
                follow_redirects=False,
            )

            logger.info("Upstream client initialized",
                        base_url=self._settings.eleven_base_url,
                        max_connections=self._settings.upstream_max_connections)

    async def get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            await self.initialize()
        return self._client

    async def close(self):
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("Upstream client closed")

    def build_url(self, voice_id: str) -> str:
        return (
            f"{self._settings.eleven_base_url}/v1/text-to-speech/{quote(voice_id, safe='')}/stream"
            f"?output_format={self._settings.eleven_output_format}"
        )

    def build_payload(self, request: SynthesisRequest) -> Dict[str, Any]:
        """Upstream JSON body, with omitted tunables taken from settings"""
        s = self._settings

        def pick(value, default):
            return default if value is None else value

        return {
            "text": request.text,
            "model_id": pick(request.model_id, s.default_model_id),
            "language_code": pick(request.language_code, s.default_language_code),
            "voice_settings": {
                "stability": float(pick(request.stability, s.default_stability)),
                "similarity_boost": float(pick(request.similarity_boost, s.default_similarity_boost)),
                "style": float(pick(request.style, s.default_style)),
                "use_speaker_boost": bool(pick(request.use_speaker_boost, s.default_use_speaker_boost)),
            },
        }

    def build_headers(self) -> Dict[str, str]:
        return {
            "xi-api-key": self._settings.eleven_api_key,
            "Content-Type": "application/json",
            "Accept": "audio/mpeg",
            "User-Agent": self._settings.user_agent,
        }

    async def synthesize(self, request: SynthesisRequest) -> UpstreamOutcome:
        """Send the synthesis call and gate the response.

        Only a ``Success`` outcome carries an open response; every other
        outcome has already closed it. A timeout before headers arrive maps
        to ``UpstreamError`` with no status. Other transport errors propagate.
        """
        client = await self.get_client()
        payload = self.build_payload(request)

        logger.info("Upstream request out",
                    voice_id=request.voice_id,
                    model_id=payload["model_id"],
                    text_len=len(request.text))

        upstream_request = client.build_request(
            "POST",
            self.build_url(request.voice_id),
            headers=self.build_headers(),
            json=payload,
        )

        start_time = time.time()
        try:
            response = await client.send(upstream_request, stream=True)
        except httpx.TimeoutException as e:
            logger.error("Upstream timeout before headers", error=str(e) or type(e).__name__)
            return UpstreamError(status=None, body="upstream_timeout")
        UPSTREAM_LATENCY.observe(time.time() - start_time)

        return await self.gate(response)

    async def gate(self, response: httpx.Response) -> UpstreamOutcome:
        """Classify an upstream response: redirect, status, then content type"""
        status = response.status_code

        if 300 <= status < 400:
            location = response.headers.get("location")
            await response.aclose()
            logger.warning("Upstream redirect blocked", status=status, location=location)
            return RedirectBlocked(status=status, location=location)

        if not 200 <= status < 300:
            body = await read_prefix(response, self._settings.error_body_limit)
            logger.warning("Upstream request failed", status=status, body=body)
            return UpstreamError(status=status, body=body)

        content_type = response.headers.get("content-type", "").lower()
        if "audio/" not in content_type:
            body = await read_prefix(response, self._settings.content_type_body_limit)
            logger.warning("Upstream returned non-audio content", content_type=content_type, sample=body)
            return ContentTypeRejected(content_type=content_type, body=body)

        return Success(response=response, content_type=content_type)


async def read_prefix(response: httpx.Response, limit: int) -> str:
    """Read at most enough of the body for ``limit`` characters, then close.

    Read failures yield an empty string.
    """
    max_bytes = limit * _MAX_BYTES_PER_CHAR
    buffer = bytearray()
    try:
        async for chunk in response.aiter_bytes():
            buffer.extend(chunk)
            if len(buffer) >= max_bytes:
                break
    except httpx.HTTPError as e:
        logger.debug("Diagnostic body read failed", error=str(e))
        return ""
    finally:
        await response.aclose()

    encoding = response.encoding or "utf-8"
    try:
        text = buffer[:max_bytes].decode(encoding, errors="replace")
    except LookupError:
        text = buffer[:max_bytes].decode("utf-8", errors="replace")
    return text[:limit]
