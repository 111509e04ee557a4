# intermeet/services/chat.py
from __future__ import annotations

from typing import List

from intermeet.core.errors import InvalidRequest
from intermeet.models.models import Message, Room
from intermeet.services.notifier import RoomEventPublisher
from intermeet.services.store import Store

MAX_MESSAGE_LENGTH = 1000
HISTORY_LIMIT = 200


class ChatService:
    """In-call chat: append-only per room, read back in creation order."""

    def __init__(self, store: Store, publisher: RoomEventPublisher) -> None:
        self.store = store
        self.publisher = publisher

    async def send(self, room: Room, user_id: str, sender_name: str, content: str) -> Message:
        """
        Append a message to an active room.

        Content is trimmed and capped at MAX_MESSAGE_LENGTH characters; the
        sender's display name is copied onto the message as it is at send time.
        """
        clean = (content or "").strip()[:MAX_MESSAGE_LENGTH]
        if not clean:
            raise InvalidRequest("Message cannot be empty")

        message = Message(room_id=room.id, user_id=user_id, sender_name=sender_name, content=clean)
        with self.store.transaction():
            self.store.messages.append(message)

        await self.publisher.publish(
            room.id, "chat_message", message=message.model_dump(mode="json"),
        )
        return message

    def history(self, room: Room, limit: int = HISTORY_LIMIT) -> List[Message]:
        messages = [m for m in self.store.messages if m.room_id == room.id]
        messages.sort(key=lambda m: m.created_at)
        return messages[-limit:]

    def count(self, room_id: str) -> int:
        return sum(1 for m in self.store.messages if m.room_id == room_id)
