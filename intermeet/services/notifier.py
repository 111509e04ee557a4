# intermeet/services/notifier.py

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from intermeet.core.logging import get_logger
from intermeet.services.connection_manager import ConnectionManager

logger = get_logger(__name__)


class RoomEventPublisher:
    """
    Change feed for room events (lobby updates, chat, meeting end).

    With no Redis service attached, events go straight to the local
    ConnectionManager. With one attached, they are published to Redis and
    reach WebSockets through the listener on every instance.

    Publishing is best-effort: a failed publish is logged and dropped, since
    clients also poll and re-fetch full state on every event.
    """

    def __init__(self, connection_manager: ConnectionManager, redis_service=None) -> None:
        self.connection_manager = connection_manager
        self.redis_service = redis_service
        self.published: int = 0

    async def publish(self, room_id: str, event_type: str, *, owner_only: bool = False,
                      target_user: Optional[str] = None, **payload) -> None:
        event = {
            "type": event_type,
            "room_id": room_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            **payload,
        }
        if owner_only:
            event["owner_only"] = True
        if target_user:
            event["target_user"] = target_user

        try:
            if self.redis_service is not None:
                await self.redis_service.broadcast_to_room(room_id, event)
            else:
                await self.connection_manager.broadcast_to_room(room_id, event)
            self.published += 1
        except Exception:
            logger.exception("Failed to publish %s for room %s", event_type, room_id)
