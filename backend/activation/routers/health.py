"""Health check endpoint for the reference activation service."""

from datetime import datetime, timezone

from fastapi import APIRouter

from activation.config import settings

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Lightweight liveness check (no dependency checks)."""
    return {
        "status": "ok",
        "service": "activation",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": settings.environment,
    }
