"""
Health check endpoint.
"""
from datetime import datetime, timezone
from fastapi import APIRouter

from mailassist.config import APP_VERSION, get_settings

router = APIRouter()


@router.get("/health")
async def health_check():
    """Health check endpoint for monitoring."""
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": APP_VERSION,
        "ai_routing": "model" if get_settings().has_model_credential else "heuristic",
    }
