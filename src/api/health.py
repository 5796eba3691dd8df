"""Health check endpoints."""

from typing import Any, Dict

from fastapi import APIRouter, Request, Response, status

from src.config import get_settings

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(request: Request, response: Response) -> Dict[str, Any]:
    """Report whether the validation pipeline is ready."""
    settings = get_settings()
    ready = getattr(request.app.state, "pipeline", None) is not None
    if not ready:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return {
        "status": "ready" if ready else "starting",
        "service": settings.app_name,
        "version": settings.app_version,
    }
