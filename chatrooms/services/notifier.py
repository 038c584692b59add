# chatrooms/services/notifier.py

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from chatrooms.models.models import MessageSentEvent
from chatrooms.models.orm import Message, User
from chatrooms.services.connection_manager import ConnectionManager

logger = logging.getLogger(__name__)

MESSAGE_SENT = "MessageSent"
CHANNEL_PATTERN = "chatroom.*"


def channel_for(chatroom_id: int) -> str:
    return f"chatroom.{chatroom_id}"


class LocalTransport:
    """Single-instance transport: events go straight to this process's sockets."""

    def __init__(self, deliver):
        self._deliver = deliver

    async def publish(self, channel: str, event: dict) -> None:
        await self._deliver(event)


# ============================================================================
# NOTIFICATION FAN-OUT
# ============================================================================
class Notifier:
    """
    Publishes new-message events to chatroom subscribers.

    Publishing is fire-and-forget: it runs after the message is committed,
    failures are logged and swallowed, nothing is retried or replayed. A
    subscriber that connects after the publish never sees the event.

    Envelope carried by every transport:
        {
            "channel": "chatroom.1",
            "event": "MessageSent",
            "data": {"message": "...", "user": "alice", "created_at": "2025-01-01 10:00:00"},
            "socket_id": "1234.5678" | null,   # originating connection, skipped on delivery
            "user_id": 7                        # sender, skipped when socket_id is null
        }
    """

    def __init__(self, connection_manager: ConnectionManager):
        self.connection_manager = connection_manager
        self.transport = LocalTransport(self.deliver)
        self._listener: Optional[asyncio.Task] = None

    async def start(self, settings) -> None:
        """Connect the transport selected by PUB_SUB_SERVICE and start listening."""
        if settings.PUB_SUB_SERVICE == "redis":
            from chatrooms.services.redis_pub_sub import AsyncRedisPubSubService

            redis_service = AsyncRedisPubSubService(
                host=settings.REDIS_HOST,
                port=settings.REDIS_PORT,
                access_key=settings.REDIS_ACCESS_KEY,
                ssl=settings.REDIS_SSL,
            )
            await redis_service.connect()
            self.transport = redis_service

            self.listen_in_background(redis_service)
        elif settings.PUB_SUB_SERVICE == "google_pub_sub":
            from chatrooms.services.gcloud_pub_sub import GooglePubSubService

            pubsub = GooglePubSubService(settings.PROJECT_ID, settings.TOPIC_ID, settings.SUBSCRIPTION_ID)
            pubsub.start(asyncio.get_running_loop(), self.deliver)
            self.transport = pubsub
        else:
            self.transport = LocalTransport(self.deliver)

        logger.info("✓ Fan-out transport: %s", type(self.transport).__name__)

    def listen_in_background(self, transport) -> asyncio.Task:
        """Run ``transport.listen`` as a task that logs if it ever dies."""
        self._listener = asyncio.create_task(transport.listen(CHANNEL_PATTERN, self.deliver))
        self._listener.add_done_callback(self._listener_done)
        return self._listener

    @staticmethod
    def _listener_done(task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("Fan-out listener stopped, cross-instance delivery is down: %r", error, exc_info=error)
        else:
            logger.warning("Fan-out listener ended")

    async def stop(self) -> None:
        if self._listener is not None:
            self._listener.cancel()
            self._listener = None

        transport = self.transport
        if hasattr(transport, "close"):
            await transport.close()
        elif hasattr(transport, "shutdown"):
            transport.shutdown()
        self.transport = LocalTransport(self.deliver)

    @staticmethod
    def build_event(message: Message, sender: User) -> dict:
        created_at = message.created_at.strftime("%Y-%m-%d %H:%M:%S") if message.created_at else None
        return MessageSentEvent(
            message=message.message_text,
            user=sender.name,
            created_at=created_at,
        ).model_dump()

    async def publish_message(self, message: Message, sender: User, socket_id: Optional[str] = None) -> bool:
        """
        Publish a MessageSent event for a committed message.

        Args:
            message: The persisted message
            sender: Its author; their connection(s) are excluded from delivery
            socket_id: Originating connection (X-Socket-ID), if the client sent one

        Returns:
            True if the transport accepted the event, False if it failed
        """
        channel = channel_for(message.chatroom_id)
        envelope = {
            "channel": channel,
            "event": MESSAGE_SENT,
            "data": self.build_event(message, sender),
            "socket_id": socket_id,
            "user_id": sender.id,
        }

        try:
            await self.transport.publish(channel, envelope)
        except Exception:
            logger.exception("Fan-out failed for message %s on %s", message.id, channel)
            return False

        logger.info("MessageSent event broadcasted successfully (message_id=%s)", message.id)
        return True

    async def deliver(self, envelope: dict) -> int:
        """
        Hand an envelope received from the transport to local subscribers.

        A socket id that belongs to a local connection of another user is
        ignored, and the sender's own connections are skipped instead.
        """
        socket_id = envelope.get("socket_id")
        user_id = envelope.get("user_id")
        owner = self.connection_manager.owner_of(socket_id) if socket_id else None
        if owner is not None and owner != user_id:
            logger.warning("Socket %s does not belong to sender %s - ignoring it", socket_id, user_id)
            socket_id = None

        return await self.connection_manager.broadcast_to_channel(
            envelope["channel"],
            {
                "type": "event",
                "event": envelope.get("event"),
                "channel": envelope["channel"],
                "data": envelope.get("data"),
            },
            except_socket=socket_id,
            except_user=None if socket_id else user_id,
        )
