"""
Health check endpoints.

Provides:
- / - Plain liveness banner
- /health - Basic liveness check (is the app running?)
- /metrics - Room and player counts for monitoring
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter

from game import RoundPhase

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

# Set during app initialization
_room_manager = None


def set_health_dependencies(room_manager=None):
    """Set dependencies for health checks."""
    global _room_manager
    _room_manager = room_manager


@router.get("/")
async def root():
    """Liveness banner for humans hitting the server in a browser."""
    return {"service": "close-rummy", "status": "running"}


@router.get("/health")
async def health_check():
    """
    Basic liveness check - is the app running?

    This endpoint should always return 200 if the process is alive.
    """
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/metrics")
async def metrics():
    """Expose room/player counts for dashboards and alerting."""
    metrics_data = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    if _room_manager is not None:
        rooms = _room_manager.rooms
        metrics_data.update({
            "active_rooms": len(rooms),
            "total_players": sum(len(r.players) for r in rooms.values()),
            "connected_players": sum(
                1 for r in rooms.values() for p in r.game.players if p.connected
            ),
            "rounds_in_progress": sum(
                1 for r in rooms.values() if r.game.phase == RoundPhase.IN_ROUND
            ),
        })

    return metrics_data
