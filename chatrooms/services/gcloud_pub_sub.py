import json
import asyncio
import logging

from google.cloud import pubsub_v1
from typing import Callable, Awaitable, Optional

logger = logging.getLogger(__name__)


class GooglePubSubService:
    """
    Google Cloud Pub/Sub transport for chatroom events.

    All chatrooms share one topic; the envelope's "channel" field routes the
    event. Every API instance needs its own subscription on the topic so
    each instance sees every event.
    """

    def __init__(self, project_id: str, topic_id: str, subscription_id: str):
        self.publisher = pubsub_v1.PublisherClient()
        self.subscriber = pubsub_v1.SubscriberClient()

        self.topic_path = self.publisher.topic_path(project_id, topic_id)
        self.subscription_path = self.subscriber.subscription_path(project_id, subscription_id)

        self._streaming_future: Optional[pubsub_v1.subscriber.futures.StreamingPullFuture] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._on_event: Optional[Callable[[dict], Awaitable[None]]] = None

    def start(
        self,
        loop: asyncio.AbstractEventLoop,
        on_event: Callable[[dict], Awaitable[None]],
    ) -> None:
        """
        Call this once on app startup.
        - loop: FastAPI's event loop
        - on_event: async function that will handle each decoded event (dict)
        """
        self._loop = loop
        self._on_event = on_event

        def _callback(message: pubsub_v1.subscriber.message.Message):
            try:
                payload_str = message.data.decode("utf-8")
                event = json.loads(payload_str)

                if self._loop is not None and self._on_event is not None:
                    # Schedule the async handler on the FastAPI event loop
                    asyncio.run_coroutine_threadsafe(self._on_event(event), self._loop)

                message.ack()
            except Exception as exc:
                logger.error("Error processing Pub/Sub message: %s", exc)
                message.nack()

        self._streaming_future = self.subscriber.subscribe(self.subscription_path, callback=_callback)
        logger.info("✓ Listening for events on %s", self.subscription_path)

    def shutdown(self) -> None:
        """Call this once on app shutdown."""
        if self._streaming_future is not None:
            self._streaming_future.cancel()
        self.subscriber.close()

    def publish_event(self, event: dict) -> str:
        """
        Publish a dict to the topic. Returns Pub/Sub message ID.
        NOTE: This is synchronous (blocks until publish is done).
        """
        data = json.dumps(event).encode("utf-8")
        future = self.publisher.publish(self.topic_path, data=data)
        return future.result()

    async def publish(self, channel: str, event: dict) -> None:
        message_id = await asyncio.to_thread(self.publish_event, event)
        logger.info("📤 Published %s to Pub/Sub (%s)", channel, message_id)
