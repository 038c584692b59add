# chatrooms/api/websocket.py

from __future__ import annotations

import json
import logging
from typing import Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from chatrooms.core import state
from chatrooms.core.database import SessionLocal
from chatrooms.core.security import resolve_user
from chatrooms.services.channel_auth import authorize_channel

logger = logging.getLogger(__name__)

router = APIRouter()

# ============================================================================
# WEBSOCKET ENDPOINT
# ============================================================================

@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, token: Optional[str] = None):
    """
    WebSocket endpoint for real-time chatroom events.

    Protocol:
    =========

    Connect:
        /ws?token=<bearer token>
        Unauthenticated connections are closed with 1008 (policy violation).
        Response: {"type": "connected", "socket_id": "1234.5678"}
        Send the socket_id as X-Socket-ID on POST /messages to skip your own
        connection when the message is fanned out.

    Client -> Server Actions:
    -------------------------
    Subscribe:
        {"action": "subscribe", "channel": "chatroom.1"}
        Response: {"type": "subscription_succeeded", "channel": "chatroom.1", "members": [...]}
              or: {"type": "subscription_error", "channel": "chatroom.1", "status": 403}

    Unsubscribe:
        {"action": "unsubscribe", "channel": "chatroom.1"}
        Response: {"type": "unsubscribed", "channel": "chatroom.1"}

    Ping:
        {"action": "ping"}
        Response: {"type": "pong"}

    Server -> Client Messages:
    -------------------------
    New message:
        {"type": "event", "event": "MessageSent", "channel": "chatroom.1",
         "data": {"message": "Hello!", "user": "alice", "created_at": "2025-01-01 10:00:00"}}

    Presence:
        {"type": "member_added", "channel": "chatroom.1", "member": {"id": 2, "name": "bob"}}
        {"type": "member_removed", "channel": "chatroom.1", "member": {"id": 2, "name": "bob"}}

    Error:
        {"type": "error", "message": "..."}

    Lifecycle:
    ==========
    1. Client connects with its bearer token
    2. Connection accepted, socket id assigned
    3. Client subscribes to the chatroom channels it wants
    4. Client receives events from subscribed channels only
    5. On disconnect, automatically removed from all channels
    """
    with SessionLocal() as db:
        user = resolve_user(db, token)

    if user is None:
        logger.info("WebSocket refused: not authenticated")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    manager = state.connection_manager
    socket_id = await manager.connect(websocket, {"id": user.id, "name": user.name})

    try:
        while True:
            data = await websocket.receive_text()

            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                await websocket.send_json({"type": "error", "message": "Invalid JSON"})
                continue

            if not isinstance(message, dict):
                await websocket.send_json({"type": "error", "message": "Invalid JSON"})
                continue

            action = message.get("action")
            logger.info("Websocket input from %s: action=%s", socket_id, action)

            if action == "subscribe":
                channel = message.get("channel") or ""
                with SessionLocal() as db:
                    allowed = authorize_channel(db, user, channel)
                if allowed:
                    await manager.subscribe(socket_id, channel)
                else:
                    await websocket.send_json(
                        {"type": "subscription_error", "channel": channel, "status": 403}
                    )

            elif action == "unsubscribe":
                channel = message.get("channel")
                if channel:
                    await manager.unsubscribe(socket_id, channel)

            elif action == "ping":
                await websocket.send_json({"type": "pong"})

            else:
                await websocket.send_json(
                    {
                        "type": "error",
                        "message": f"Unknown action: {action}",
                    }
                )

    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error("WebSocket error: %s", e)
    finally:
        await manager.disconnect(socket_id)
