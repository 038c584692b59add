# chatrooms/services/connection_manager.py

from __future__ import annotations

import logging
import secrets
from typing import Dict, List, Optional, Set

from fastapi import WebSocket

logger = logging.getLogger(__name__)

# ============================================================================
# WEBSOCKET CONNECTION MANAGER
# ============================================================================

class ConnectionManager:
    """
    Manages WebSocket connections and their channel subscriptions.

    Every accepted connection gets a socket id. Clients send it back as the
    X-Socket-ID header on HTTP calls so that events they trigger can be
    delivered "to others" only.

    Channels are presence channels: subscribers see who else is on the
    channel, and get member_added / member_removed updates when a user's
    first connection arrives or last connection leaves.

    Data Structures:
        connections: socket_id -> WebSocket
        connection_users: socket_id -> {"id": user_id, "name": display name}
        channels: channel -> Set of socket_ids subscribed to it
                  Example: {"chatroom.1": {"4821.90211", "1193.55012"}}
        connection_channels: socket_id -> Set of channels it subscribed to

    Scaling:
        State is per process. Multi-instance deployments publish through
        Redis or Google Pub/Sub so every instance delivers to its own sockets.
    """

    def __init__(self) -> None:
        """Initialize connection manager with empty data structures."""
        self.connections: Dict[str, WebSocket] = {}
        self.connection_users: Dict[str, dict] = {}
        self.channels: Dict[str, Set[str]] = {}
        self.connection_channels: Dict[str, Set[str]] = {}

    @staticmethod
    def new_socket_id() -> str:
        return f"{secrets.randbelow(10**9)}.{secrets.randbelow(10**9)}"

    async def connect(self, websocket: WebSocket, user: dict) -> str:
        """
        Accept a new WebSocket connection.

        Args:
            websocket: The WebSocket connection object
            user: {"id": ..., "name": ...} of the authenticated user

        Returns:
            The socket id assigned to this connection

        Note:
            The connection is not subscribed to any channel. Clients send
            explicit "subscribe" actions.
        """
        await websocket.accept()

        socket_id = self.new_socket_id()
        while socket_id in self.connections:
            socket_id = self.new_socket_id()

        self.connections[socket_id] = websocket
        self.connection_users[socket_id] = user
        self.connection_channels[socket_id] = set()

        logger.info("✓ User %s connected as %s. Total: %d", user.get("id"), socket_id, len(self.connections))

        await websocket.send_json({"type": "connected", "socket_id": socket_id})
        return socket_id

    async def disconnect(self, socket_id: str) -> None:
        """
        Handle WebSocket disconnection and cleanup.

        Cleanup:
            1. Remove from tracking dictionaries and every channel
            2. Tell the remaining subscribers of channels the user left

        All bookkeeping happens before the first await, so a cancelled
        handler still leaves no stale connection behind.
        """
        if socket_id not in self.connections:
            return

        user = self.connection_users.pop(socket_id, {})
        channels = self.connection_channels.pop(socket_id, set())
        self.connections.pop(socket_id, None)

        departed = []
        for channel in channels:
            subscribers = self.channels.get(channel)
            if subscribers is None:
                continue
            subscribers.discard(socket_id)
            if not subscribers:
                del self.channels[channel]
            elif not self._user_present(channel, user.get("id")):
                departed.append(channel)

        logger.info("✗ User %s disconnected (%s). Total: %d", user.get("id"), socket_id, len(self.connections))

        for channel in departed:
            await self.broadcast_to_channel(
                channel, {"type": "member_removed", "channel": channel, "member": user}
            )

    def owner_of(self, socket_id: str):
        """User id of a local connection, or None if the socket is not on this instance."""
        user = self.connection_users.get(socket_id)
        return user["id"] if user is not None else None

    def members(self, channel: str) -> List[dict]:
        """Distinct users currently present on a channel."""
        seen: Dict[object, dict] = {}
        for socket_id in self.channels.get(channel, ()):
            user = self.connection_users.get(socket_id)
            if user is not None and user["id"] not in seen:
                seen[user["id"]] = user
        return list(seen.values())

    def _user_present(self, channel: str, user_id, ignore: Optional[str] = None) -> bool:
        return any(
            sid != ignore and self.connection_users.get(sid, {}).get("id") == user_id
            for sid in self.channels.get(channel, ())
        )

    async def subscribe(self, socket_id: str, channel: str) -> None:
        """
        Subscribe a connection to a channel.

        Authorization happens before this is called.

        Process:
            1. Add socket to the channel's subscriber set
            2. Send subscription_succeeded with the member list
            3. Announce member_added to the others if this is the user's
               first connection on the channel
        """
        if socket_id not in self.connections:
            return  # Connection already closed

        user = self.connection_users[socket_id]
        first_for_user = not self._user_present(channel, user["id"])

        self.channels.setdefault(channel, set()).add(socket_id)
        self.connection_channels[socket_id].add(channel)

        logger.info("→ User %s subscribed to %s (%d connections)", user["id"], channel, len(self.channels[channel]))

        await self._send(
            socket_id,
            {"type": "subscription_succeeded", "channel": channel, "members": self.members(channel)},
        )

        if first_for_user:
            await self.broadcast_to_channel(
                channel,
                {"type": "member_added", "channel": channel, "member": user},
                except_user=user["id"],
            )

    async def unsubscribe(self, socket_id: str, channel: str) -> None:
        """Unsubscribe a connection from a channel."""
        if socket_id not in self.connections:
            return  # Connection already closed

        if channel in self.connection_channels[socket_id]:
            await self._remove_from_channel(socket_id, channel)
        await self._send(socket_id, {"type": "unsubscribed", "channel": channel})

    async def _remove_from_channel(self, socket_id: str, channel: str) -> None:
        self.connection_channels.get(socket_id, set()).discard(channel)
        subscribers = self.channels.get(channel)
        if subscribers is None:
            return

        subscribers.discard(socket_id)
        if not subscribers:
            del self.channels[channel]
            return

        user = self.connection_users.get(socket_id)
        if user is not None and not self._user_present(channel, user["id"]):
            await self.broadcast_to_channel(
                channel, {"type": "member_removed", "channel": channel, "member": user}
            )

    async def _send(self, socket_id: str, message: dict) -> bool:
        websocket = self.connections.get(socket_id)
        if websocket is None:
            return False
        try:
            await websocket.send_json(message)
            return True
        except Exception as e:
            logger.error("Send error on %s: %s", socket_id, e)
            return False

    async def broadcast_to_channel(
        self,
        channel: str,
        message: dict,
        except_socket: Optional[str] = None,
        except_user=None,
    ) -> int:
        """
        Deliver a message to every connection subscribed to a channel.

        Args:
            channel: Channel name, e.g. "chatroom.1"
            message: Message dict to send (will be JSON serialized)
            except_socket: Socket id that must not receive the message
            except_user: User id whose connections must not receive it

        Returns:
            Number of connections the message was delivered to

        Error Handling:
            If a send fails, the connection is treated as gone and cleaned up.
        """
        if channel not in self.channels:
            logger.info("[routing] Skipped broadcast: %s has 0 subscribers", channel)
            return 0

        disconnected = set()
        delivered = 0
        targets = self.channels[channel].copy()  # Copy to avoid modification during iteration

        for socket_id in targets:
            if socket_id == except_socket:
                continue
            if except_user is not None and self.connection_users.get(socket_id, {}).get("id") == except_user:
                continue
            if await self._send(socket_id, message):
                delivered += 1
            else:
                disconnected.add(socket_id)

        logger.info("📨 Broadcast on %s: %d/%d connections", channel, delivered, len(targets))

        # Clean up failed connections
        for socket_id in disconnected:
            await self.disconnect(socket_id)

        return delivered

    def get_channels_info(self) -> Dict[str, dict]:
        """Channel -> connection and member counts. Used by /health."""
        return {
            channel: {"connections": len(sockets), "members": len(self.members(channel))}
            for channel, sockets in self.channels.items()
        }
