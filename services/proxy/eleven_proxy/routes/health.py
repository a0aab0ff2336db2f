"""Health check endpoint"""

from fastapi import APIRouter, Request

router = APIRouter()

SERVICE_NAME = "eleven-proxy"


@router.get("/health")
async def health_check(request: Request):
    """Configuration echo; never requires the shared secret"""
    settings = request.app.state.settings
    return {
        "ok": True,
        "service": SERVICE_NAME,
        "hasUpstreamKey": settings.has_upstream_key,
        "hasElevenKey": settings.has_upstream_key,
        "baseUrl": settings.eleven_base_url,
        "secretRequired": settings.secret_required,
    }
