"""Synthesis relay endpoint"""

import json
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError
import structlog

from ..errors import ProxyError
from ..middleware.guard import require_secret
from ..models import SynthesisRequest

logger = structlog.get_logger(__name__)
router = APIRouter()


async def read_payload(request: Request) -> Dict[str, Any]:
    """Parse the JSON body; an empty body or a non-object counts as ``{}``"""
    limit = request.app.state.settings.max_request_bytes

    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > limit:
        raise ProxyError(413, "payload_too_large", limit=limit)

    buffer = bytearray()
    async for chunk in request.stream():
        buffer.extend(chunk)
        if len(buffer) > limit:
            raise ProxyError(413, "payload_too_large", limit=limit)

    raw = bytes(buffer)
    if not raw.strip():
        return {}
    try:
        data = json.loads(raw)
    except ValueError:
        raise ProxyError(400, "bad_json")
    return data if isinstance(data, dict) else {}


@router.post("/eleven/tts", dependencies=[Depends(require_secret)])
async def synthesize(request: Request):
    """Relay a synthesis request to ElevenLabs and stream back MP3 audio"""
    payload = await read_payload(request)
    try:
        synthesis = SynthesisRequest.model_validate(payload)
    except ValidationError as e:
        fields = [".".join(str(part) for part in err["loc"]) for err in e.errors()]
        raise ProxyError(400, "invalid_request", fields=fields)

    return await request.app.state.relay.relay(synthesis)
