# intermeet/services/presence.py
from __future__ import annotations

from datetime import datetime
from typing import Dict, Iterable, Optional

from intermeet.core.logging import get_logger
from intermeet.models.models import PresenceRecord, utcnow
from intermeet.services.store import Store

logger = get_logger(__name__)


class CapacityTracker:
    """
    Counts who is currently in a room from open presence records.

    A record is open while ``left_at`` is null. Reconnects close the prior
    record for the same identity before opening a new one, so one identity
    never holds two open records in the same room.
    """

    def __init__(self, store: Store) -> None:
        self.store = store

    def _open_records(self, room_id: str):
        return [
            r for r in self.store.presence.values()
            if r.room_id == room_id and r.left_at is None
        ]

    def count_open(self, room_id: str) -> int:
        return len(self._open_records(room_id))

    def counts_for(self, room_ids: Iterable[str]) -> Dict[str, int]:
        wanted = set(room_ids)
        counts = {room_id: 0 for room_id in wanted}
        for record in self.store.presence.values():
            if record.left_at is None and record.room_id in wanted:
                counts[record.room_id] += 1
        return counts

    def total_joins(self, room_id: str) -> int:
        """Lifetime number of presence records, open or closed."""
        return sum(1 for r in self.store.presence.values() if r.room_id == room_id)

    def open_if_capacity(self, room_id: str, user_id: str, max_participants: int) -> Optional[PresenceRecord]:
        """
        Atomically open a presence record unless the room is full.

        The identity's own open records do not count against it: a reconnect
        closes them and takes their place.

        Returns:
            The new record, or None when the room is at capacity.
        """
        with self.store.transaction():
            now = utcnow()
            open_records = self._open_records(room_id)
            own = [r for r in open_records if r.user_id == user_id]
            others = len(open_records) - len(own)

            if others >= max_participants:
                return None

            for record in own:
                record.left_at = now
            if own:
                logger.info("↻ %s reconnected to room %s", user_id, room_id)

            record = PresenceRecord(room_id=room_id, user_id=user_id, joined_at=now)
            self.store.presence[record.id] = record
            return record

    def close_for_user(self, room_id: str, user_id: str, now: Optional[datetime] = None) -> int:
        with self.store.transaction():
            now = now or utcnow()
            closed = 0
            for record in self._open_records(room_id):
                if record.user_id == user_id:
                    record.left_at = now
                    closed += 1
            return closed

    def close_all(self, room_id: str, now: Optional[datetime] = None) -> int:
        with self.store.transaction():
            now = now or utcnow()
            open_records = self._open_records(room_id)
            for record in open_records:
                record.left_at = now
            return len(open_records)
