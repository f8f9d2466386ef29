"""Health check endpoint."""

import platform
import sys
from datetime import datetime, timezone

from fastapi import APIRouter

router = APIRouter()

# Set by main.py during lifespan
_controller = None


def set_controller(controller):
    global _controller
    _controller = controller


@router.get("/health")
async def health_check():
    """Service health and background job activity."""
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "active_jobs": _controller.active_count() if _controller is not None else None,
        "python_version": sys.version,
        "platform": platform.platform(),
    }
