# intermeet/services/room_directory.py
from __future__ import annotations

import re
import secrets
from datetime import datetime, timedelta
from typing import List, Optional

from intermeet.core.errors import CodeSpaceExhausted, InvalidRequest
from intermeet.core.logging import get_logger
from intermeet.models.models import Room, utcnow
from intermeet.services.passwords import hash_password, password_fits
from intermeet.services.presence import CapacityTracker
from intermeet.services.store import Store

logger = get_logger(__name__)

# No 0/O or 1/I: codes are read aloud and typed by hand.
CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
CODE_LENGTH = 6
CODE_PATTERN = re.compile(r"^[A-Z0-9]{6}$")
MAX_CODE_ATTEMPTS = 20

DEFAULT_ROOM_NAME = "My Meeting"
DEFAULT_BREAKOUT_NAME = "Breakout Room"
MAX_NAME_LENGTH = 100
OWNED_ROOMS_LIMIT = 50

_UNSAFE_NAME_CHARS = re.compile(r"[<>\"'&]")


def generate_room_code() -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


def is_valid_room_code(code: str) -> bool:
    return bool(CODE_PATTERN.match(code or ""))


def clean_room_name(name: Optional[str], default: str = DEFAULT_ROOM_NAME) -> str:
    cleaned = _UNSAFE_NAME_CHARS.sub("", name or "").strip()[:MAX_NAME_LENGTH]
    return cleaned or default


# ============================================================================
# ROOM DIRECTORY
# ============================================================================

class RoomDirectory:
    """
    Maps short room codes to rooms and owns the room lifecycle.

    Rooms are never deleted: ending a meeting or expiring it flips
    ``is_active`` and force-closes every open presence record. Codes are
    unique among active rooms; an inactive room's code may be reused.

    Usage:
        directory = RoomDirectory(store, presence, max_age_hours=24)
        room = directory.create_room(creator_id="user-1", name="Standup")
        directory.get_active(room.room_code)
    """

    def __init__(self, store: Store, presence: CapacityTracker, max_age_hours: int = 24,
                 default_max_participants: int = 50) -> None:
        self.store = store
        self.presence = presence
        self.max_age = timedelta(hours=max_age_hours)
        self.default_max_participants = default_max_participants

    def _active_codes(self) -> set:
        return {r.room_code for r in self.store.rooms.values() if r.is_active}

    def create_room(
        self,
        creator_id: str,
        name: Optional[str] = None,
        password: Optional[str] = None,
        waiting_room_enabled: bool = False,
        is_persistent: bool = False,
        max_participants: Optional[int] = None,
        parent_room_id: Optional[str] = None,
        default_name: str = DEFAULT_ROOM_NAME,
    ) -> Room:
        """
        Create a room under a freshly generated, unused code.

        Raises:
            InvalidRequest: password longer than the hash can take
            CodeSpaceExhausted: no free code after MAX_CODE_ATTEMPTS tries
        """
        password_hash = None
        if password:
            if not password_fits(password):
                raise InvalidRequest("Password must be at most 72 bytes")
            password_hash = hash_password(password)

        with self.store.transaction():
            active_codes = self._active_codes()
            for _ in range(MAX_CODE_ATTEMPTS):
                code = generate_room_code()
                if code not in active_codes:
                    break
            else:
                raise CodeSpaceExhausted("Could not allocate a room code, try again")

            room = Room(
                room_code=code,
                name=clean_room_name(name, default=default_name),
                creator_id=creator_id,
                is_persistent=is_persistent,
                password_hash=password_hash,
                waiting_room_enabled=waiting_room_enabled,
                max_participants=max_participants or self.default_max_participants,
                parent_room_id=parent_room_id,
            )
            self.store.rooms[room.id] = room

        logger.info("✓ Created room %s (%s)", room.room_code, room.id)
        return room

    def get_active(self, code: str) -> Optional[Room]:
        for room in self.store.rooms.values():
            if room.room_code == code and room.is_active:
                return room
        return None

    def get_any(self, code: str) -> Optional[Room]:
        """Active room for the code if there is one, else the newest inactive one."""
        active = self.get_active(code)
        if active:
            return active
        matches = [r for r in self.store.rooms.values() if r.room_code == code]
        if not matches:
            return None
        return max(matches, key=lambda r: r.created_at)

    def is_expired(self, room: Room, now: Optional[datetime] = None) -> bool:
        if room.is_persistent:
            return False
        now = now or utcnow()
        return now - room.created_at > self.max_age

    def deactivate(self, room: Room) -> int:
        """
        Mark a room inactive and close all open presence records.

        Returns:
            Number of presence records that were closed
        """
        with self.store.transaction():
            room.is_active = False
        closed = self.presence.close_all(room.id)
        logger.info("✗ Deactivated room %s (%d participants closed)", room.room_code, closed)
        return closed

    def sweep_expired(self, now: Optional[datetime] = None) -> List[Room]:
        """Deactivate every active, non-persistent room past its maximum age."""
        now = now or utcnow()
        expired = [
            room for room in list(self.store.rooms.values())
            if room.is_active and self.is_expired(room, now)
        ]
        for room in expired:
            self.deactivate(room)
        if expired:
            logger.info("Swept %d expired rooms", len(expired))
        return expired

    def list_owned(self, creator_id: str, limit: int = OWNED_ROOMS_LIMIT) -> List[Room]:
        owned = [r for r in self.store.rooms.values() if r.creator_id == creator_id]
        owned.sort(key=lambda r: r.created_at, reverse=True)
        return owned[:limit]

    def list_breakouts(self, parent: Room) -> List[Room]:
        children = [
            r for r in self.store.rooms.values()
            if r.parent_room_id == parent.id and r.is_active
        ]
        children.sort(key=lambda r: r.created_at)
        return children
