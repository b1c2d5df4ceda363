"""
Routes API pour le health check.
"""
from datetime import datetime, timezone

from fastapi import APIRouter, Request

from ...core.constants import SERVICE_NAME

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Health check avec l'état du bridge MCP (sans authentification)."""
    session = getattr(request.app.state, "session", None)

    return {
        "status": "healthy",
        "service": SERVICE_NAME,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "bridge": session.state.value if session is not None else "not_started",
    }
