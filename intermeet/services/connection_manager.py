# intermeet/services/connection_manager.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Set
from fastapi import WebSocket

from intermeet.core.logging import get_logger

logger = get_logger(__name__)

# ============================================================================
# WEBSOCKET CONNECTION MANAGER
# ============================================================================

@dataclass(frozen=True)
class Subscriber:
    user_id: str
    is_owner: bool


class ConnectionManager:
    """
    Tracks which WebSockets are watching which rooms and fans events out.

    Data Structures:
        rooms: Maps room_id -> Set of WebSocket connections watching that room
               Example: {"3f2a...": {websocket1, websocket2}}

        connection_rooms: Maps WebSocket -> Set of room_ids it watches

        subscribers: Maps WebSocket -> Subscriber (identity and owner flag)

    Delivery rules:
        - events with "owner_only": true go to the room owner's sockets only
        - events with "target_user" go to that identity's sockets only
        - everything else goes to every socket in the room

    Scaling:
        - Single instance: all in-memory
        - Multi-instance: PUB_SUB_SERVICE=redis relays events between instances,
          each instance still delivers to its own sockets from here
    """

    def __init__(self) -> None:
        self.rooms: Dict[str, Set[WebSocket]] = {}
        self.connection_rooms: Dict[WebSocket, Set[str]] = {}
        self.subscribers: Dict[WebSocket, Subscriber] = {}

    async def connect(self, websocket: WebSocket, user_id: str, is_owner: bool = False) -> None:
        """Accept a WebSocket and remember who is on the other end."""
        await websocket.accept()

        self.connection_rooms[websocket] = set()
        self.subscribers[websocket] = Subscriber(user_id=user_id, is_owner=is_owner)

        logger.info("✓ User %s connected. Total: %d", user_id, len(self.connection_rooms))

    def disconnect(self, websocket: WebSocket) -> None:
        """Drop a WebSocket from every room it was watching."""
        if websocket not in self.connection_rooms:
            return

        subscriber = self.subscribers.get(websocket)

        for room_id in self.connection_rooms[websocket]:
            if room_id in self.rooms:
                self.rooms[room_id].discard(websocket)
                if not self.rooms[room_id]:
                    del self.rooms[room_id]

        del self.connection_rooms[websocket]
        del self.subscribers[websocket]

        logger.info(
            "✗ User %s disconnected. Total: %d",
            subscriber.user_id if subscriber else "unknown",
            len(self.connection_rooms),
        )

    def join_room(self, websocket: WebSocket, room_id: str) -> int:
        """
        Subscribe a connected WebSocket to a room's events.

        Returns:
            Number of sockets now watching the room
        """
        if websocket not in self.connection_rooms:
            return 0  # Connection already closed

        self.rooms.setdefault(room_id, set()).add(websocket)
        self.connection_rooms[websocket].add(room_id)
        return len(self.rooms[room_id])

    def _wants(self, websocket: WebSocket, message: dict) -> bool:
        subscriber = self.subscribers.get(websocket)
        if subscriber is None:
            return False
        if message.get("owner_only") and not subscriber.is_owner:
            return False
        target = message.get("target_user")
        if target and target != subscriber.user_id:
            return False
        return True

    async def broadcast_to_room(self, room_id: str, message: dict) -> int:
        """
        Send an event to every interested WebSocket watching a room.

        If a send fails, the connection is treated as gone and cleaned up.

        Returns:
            Number of sockets the event was delivered to
        """
        if room_id not in self.rooms:
            logger.debug("[routing] Skipped broadcast: room=%s has 0 subscribers", room_id)
            return 0

        disconnected = set()
        delivered = 0
        connections = self.rooms[room_id].copy()  # Copy to avoid modification during iteration

        for connection in connections:
            if not self._wants(connection, message):
                continue
            try:
                await connection.send_json(message)
                delivered += 1
            except Exception as e:
                logger.warning("Send error, dropping connection: %s", e)
                disconnected.add(connection)

        for conn in disconnected:
            self.disconnect(conn)

        return delivered
