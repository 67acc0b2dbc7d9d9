"""
Health check endpoints.

Provides:
- /health - Liveness check plus a count of live rooms
- /ready  - Readiness check (is a playable card catalog loaded?)
"""

import json
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Response

from room import RoomManager

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

# Set during app initialization
_room_manager: Optional[RoomManager] = None


def set_health_dependencies(room_manager: Optional[RoomManager] = None) -> None:
    """Set dependencies for health checks."""
    global _room_manager
    _room_manager = room_manager


@router.get("/health")
async def health_check():
    """
    Basic liveness check - is the app running?

    This endpoint should always return 200 if the process is alive.
    """
    return {
        "status": "ok",
        "service": "pears-multiplayer",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "rooms": _room_manager.room_count() if _room_manager is not None else 0,
    }


@router.get("/ready")
async def readiness_check():
    """
    Readiness check - can a new game actually be started?

    Returns 503 until the room manager is wired up with a catalog holding
    both red and green cards.
    """
    if _room_manager is None:
        checks = {"catalog": {"status": "not_configured"}}
        ready = False
    else:
        catalog = _room_manager.catalog
        ready = bool(catalog.red) and bool(catalog.green)
        checks = {
            "catalog": {
                "status": "ok" if ready else "empty",
                "red": len(catalog.red),
                "green": len(catalog.green),
            },
        }
        if not ready:
            logger.warning("Readiness check failed: card catalog is empty")

    return Response(
        content=json.dumps({
            "status": "ok" if ready else "degraded",
            "checks": checks,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }),
        status_code=200 if ready else 503,
        media_type="application/json",
    )
