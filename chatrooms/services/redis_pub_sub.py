# chatrooms/services/redis_pub_sub.py
import redis.asyncio as redis
import json
import logging
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)


class AsyncRedisPubSubService:
    """
    Redis Pub/Sub transport for chatroom events.

    Every event is published on its own chatroom channel ("chatroom.<id>").
    Each API instance pattern-subscribes to "chatroom.*" and hands every
    event to its local connection manager, so subscribers connected to any
    instance receive it.
    """

    def __init__(self, host: str = "localhost", port: int = 6379, access_key: str = "", ssl: bool = True):
        self.host = host
        self.port = port
        self.access_key = access_key
        self.ssl = ssl
        self.client = None
        self.pubsub = None

    async def connect(self):
        """Establish async connection to Redis."""
        scheme = "rediss" if self.ssl else "redis"
        auth = f":{self.access_key}@" if self.access_key else ""
        self.client = redis.from_url(
            f"{scheme}://{auth}{self.host}:{self.port}",
            decode_responses=True
        )
        await self.client.ping()
        logger.info(f"✓ Connected to Redis at {self.host}:{self.port}")

    async def publish(self, channel: str, event: dict):
        """Publish an event envelope to a chatroom channel."""
        receivers = await self.client.publish(channel, json.dumps(event))
        logger.info(f"📤 Published to Redis channel '{channel}' ({receivers} listeners)")

    async def listen(self, channel: str, on_event: Callable[[dict], Awaitable[None]]):
        """
        Listen to Redis channel(s) and hand each decoded event to ``on_event``.

        For all chatrooms, call this with a pattern:
            await redis_service.listen("chatroom.*", notifier.deliver)
        """
        self.pubsub = self.client.pubsub()

        # Support pattern matching for multiple chatrooms
        if "*" in channel:
            await self.pubsub.psubscribe(channel)
            logger.info(f"✓ Subscribed to Redis pattern '{channel}'")
        else:
            await self.pubsub.subscribe(channel)
            logger.info(f"✓ Subscribed to Redis channel '{channel}'")

        async for message in self.pubsub.listen():
            if message["type"] in ("message", "pmessage"):
                await self._dispatch(message["data"], on_event)

    async def _dispatch(self, raw: str, on_event: Callable[[dict], Awaitable[None]]):
        try:
            event = json.loads(raw)
        except ValueError:
            logger.warning("Redis message is not JSON - ignoring")
            return

        if not isinstance(event, dict) or not event.get("channel"):
            logger.warning("Redis message without channel - ignoring")
            return

        logger.info(f"➡ Redis: {event.get('event')} on {event['channel']}")
        try:
            await on_event(event)
        except Exception as e:
            logger.error(f"Error delivering Redis event on {event['channel']}: {e}")

    async def close(self):
        """Close connections."""
        if self.pubsub:
            await self.pubsub.punsubscribe()
            await self.pubsub.aclose()
        if self.client:
            await self.client.aclose()
        logger.info("Redis connection closed")
