# intermeet/services/lobby.py
from __future__ import annotations

from typing import List, Literal

from intermeet.core.errors import LobbyEntryNotFound, NotRoomOwner
from intermeet.core.logging import get_logger
from intermeet.models.models import LobbyEntry, Room, utcnow
from intermeet.services.notifier import RoomEventPublisher
from intermeet.services.store import Store

logger = get_logger(__name__)

EntryStatus = Literal["waiting", "admitted", "rejected", "unknown"]

# ============================================================================
# LOBBY QUEUE
# ============================================================================

class LobbyQueue:
    """
    Per-room waiting list gated by the room owner.

    One entry per (room, identity). Status moves waiting -> admitted or
    waiting -> rejected and only the owner moves it. Rejection sticks: asking
    again does not put a rejected identity back in the queue. An admitted
    entry is consumed (deleted) when its holder is actually let in, so a
    later rejoin has to ask again.

    Every change is announced on the room's change feed as ``lobby_changed``
    for the owner (who re-fetches the full list) and ``lobby_status`` for the
    affected identity.
    """

    def __init__(self, store: Store, publisher: RoomEventPublisher) -> None:
        self.store = store
        self.publisher = publisher

    def _entry(self, room: Room, user_id: str):
        return self.store.lobby.get(Store.lobby_key(room.id, user_id))

    @staticmethod
    def _require_owner(room: Room, requesting_id: str) -> None:
        if room.creator_id != requesting_id:
            raise NotRoomOwner("Not authorized")

    async def _announce(self, room: Room, entry: LobbyEntry) -> None:
        await self.publisher.publish(room.id, "lobby_changed", owner_only=True)
        await self.publisher.publish(
            room.id, "lobby_status", target_user=entry.user_id, status=entry.status,
        )

    async def request_entry(self, room: Room, user_id: str, display_name: str) -> EntryStatus:
        """
        Ask to be let into a room.

        Owners and rooms without a waiting room are admitted on the spot and
        no entry is written. Repeating the request while waiting changes
        nothing.
        """
        if room.creator_id == user_id or not room.waiting_room_enabled:
            return "admitted"

        with self.store.transaction():
            entry = self._entry(room, user_id)
            if entry is not None:
                if entry.status == "waiting" and entry.display_name != display_name:
                    entry.display_name = display_name
                    entry.updated_at = utcnow()
                return entry.status

            entry = LobbyEntry(room_id=room.id, user_id=user_id, display_name=display_name)
            self.store.lobby[Store.lobby_key(room.id, user_id)] = entry

        logger.info("⏳ %s is waiting for room %s", user_id, room.room_code)
        await self._announce(room, entry)
        return "waiting"

    def list_waiting(self, room: Room, requesting_id: str) -> List[LobbyEntry]:
        """Owner-only view of who is waiting, oldest first."""
        self._require_owner(room, requesting_id)
        waiting = [
            e for e in self.store.lobby.values()
            if e.room_id == room.id and e.status == "waiting"
        ]
        waiting.sort(key=lambda e: e.created_at)
        return waiting

    async def decide(self, room: Room, requesting_id: str, target_id: str,
                     action: Literal["admit", "reject"]) -> LobbyEntry:
        """
        Admit or reject a lobby entry. Owner-only.

        Raises:
            NotRoomOwner: requester does not own the room
            LobbyEntryNotFound: target never asked to join
        """
        self._require_owner(room, requesting_id)

        with self.store.transaction():
            entry = self._entry(room, target_id)
            if entry is None:
                raise LobbyEntryNotFound("Lobby entry not found")
            entry.status = "admitted" if action == "admit" else "rejected"
            entry.updated_at = utcnow()

        logger.info("Lobby %s: %s -> %s", room.room_code, target_id, entry.status)
        await self._announce(room, entry)
        return entry

    def check_status(self, room: Room, user_id: str) -> EntryStatus:
        """A waiting entry in an ended room reads as unknown so the holder re-asks admission."""
        if not room.is_active:
            return "unknown"
        entry = self._entry(room, user_id)
        return entry.status if entry else "unknown"

    def consume_admission(self, room: Room, user_id: str) -> bool:
        """Delete an admitted entry once its holder has been let in."""
        key = Store.lobby_key(room.id, user_id)
        with self.store.transaction():
            entry = self.store.lobby.get(key)
            if entry is None or entry.status != "admitted":
                return False
            del self.store.lobby[key]
            return True
