# chatrooms/api/routes/root.py

from fastapi import APIRouter

from chatrooms import __version__
from chatrooms.core.config import settings

router = APIRouter()


@router.get("/")
async def root():
    """
    Root endpoint - API information.

    Returns basic info about the API and its features.
    """
    return {
        "message": "Chatrooms API",
        "version": __version__,
        "pub_sub_service": settings.PUB_SUB_SERVICE,
        "features": ["chatrooms", "membership", "attachments", "realtime_fanout"],
        "endpoints": {
            "websocket": "/ws",
            "auth": ["/register", "/login", "/logout", "/user"],
            "chatrooms": "/chatrooms",
            "messages": "/messages",
            "health": "/health",
        },
    }
