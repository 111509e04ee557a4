# intermeet/api/routes/utils.py

from __future__ import annotations

from fastapi import HTTPException

from intermeet.core import state
from intermeet.models.models import Room, RoomSummary


def active_room_or_404(code: str, detail: str = "Room not found or inactive") -> Room:
    room = state.rooms.get_active(code.upper())
    if room is None:
        raise HTTPException(status_code=404, detail=detail)
    # Past its age limit but not swept yet
    if state.rooms.is_expired(room):
        state.rooms.deactivate(room)
        raise HTTPException(status_code=410, detail="This meeting has expired")
    return room


def any_room_or_404(code: str, detail: str = "Room not found") -> Room:
    room = state.rooms.get_any(code.upper())
    if room is None:
        raise HTTPException(status_code=404, detail=detail)
    return room


def require_owner(room: Room, user_id: str, detail: str = "Only the room creator can do that") -> None:
    if room.creator_id != user_id:
        raise HTTPException(status_code=403, detail=detail)


def room_summary(room: Room, participant_count: int | None = None) -> RoomSummary:
    if participant_count is None:
        participant_count = state.presence.count_open(room.id)
    return RoomSummary(
        id=room.id,
        name=room.name,
        room_code=room.room_code,
        created_at=room.created_at,
        is_active=room.is_active,
        is_persistent=room.is_persistent,
        has_password=bool(room.password_hash),
        waiting_room_enabled=room.waiting_room_enabled,
        max_participants=room.max_participants,
        parent_room_id=room.parent_room_id,
        participantCount=participant_count,
    )
