# intermeet/services/redis_pub_sub.py
import json

import redis.asyncio as redis

from intermeet.core.logging import get_logger
from intermeet.services.connection_manager import ConnectionManager

logger = get_logger(__name__)


class AsyncRedisPubSubService:
    """
    Relays room events between instances over Redis Pub/Sub.

    Each room has its own channel ``room:{room_id}``. Every instance runs one
    pattern listener on ``room:*`` and hands received events to its local
    ConnectionManager.
    """

    def __init__(self, connection_manager: ConnectionManager, host: str = "localhost",
                 port: int = 6379, access_key: str = "", ssl: bool = False):
        self.connection_manager = connection_manager
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
            decode_responses=True,
        )
        await self.client.ping()
        logger.info("✓ Connected to Redis at %s:%s", self.host, self.port)

    async def publish(self, channel: str, message: dict):
        """Publish message to channel."""
        await self.client.publish(channel, json.dumps(message))

    async def broadcast_to_room(self, room_id: str, message: dict):
        """
        Publish a room event on the room's channel.

        The listener on every instance (this one included) receives it and
        forwards it to that instance's WebSocket connections.
        """
        await self.publish(f"room:{room_id}", message)
        logger.debug("📨 Published %s to room %s via Redis", message.get("type"), room_id)

    async def listen(self, channel: str = "room:*"):
        """
        Listen to Redis channel(s) and broadcast to local WebSockets.

        For multi-room support, call this with a pattern:
            await redis_service.listen("room:*")
        """
        self.pubsub = self.client.pubsub()

        if "*" in channel:
            await self.pubsub.psubscribe(channel)
            logger.info("✓ Subscribed to Redis pattern '%s'", channel)
        else:
            await self.pubsub.subscribe(channel)
            logger.info("✓ Subscribed to Redis channel '%s'", channel)

        async for message in self.pubsub.listen():
            if message["type"] not in ("message", "pmessage"):
                continue
            try:
                data = json.loads(message["data"])
            except (TypeError, json.JSONDecodeError):
                logger.warning("Malformed Redis message on %s - ignoring", message.get("channel"))
                continue

            room_id = data.get("room_id")
            if not room_id:
                logger.warning("Redis message without room_id - ignoring")
                continue
            await self.connection_manager.broadcast_to_room(room_id, data)

    async def close(self):
        """Close connections."""
        if self.pubsub:
            await self.pubsub.unsubscribe()
            await self.pubsub.aclose()
        if self.client:
            await self.client.aclose()
        logger.info("Redis connection closed")
