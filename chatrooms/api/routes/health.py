# chatrooms/api/routes/health.py
from datetime import datetime, timezone

from fastapi import APIRouter

from chatrooms.core import state

router = APIRouter()

@router.get("/health")
async def health():
    """
    Health check endpoint.

    Returns current status, WebSocket connection count and the channels that
    currently have subscribers.

    Returns:
        dict: Status, uptime, connection count, channel info
    """
    uptime_seconds = (datetime.now(timezone.utc) - state.app_start_time).total_seconds()
    return {
        "status": "healthy",
        "uptime_seconds": round(uptime_seconds, 1),
        "transport": type(state.notifier.transport).__name__,
        "connections": len(state.connection_manager.connections),
        "channels": state.connection_manager.get_channels_info(),
    }
