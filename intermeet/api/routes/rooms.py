# intermeet/api/routes/rooms.py

from typing import List

from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool

from intermeet.api.routes.utils import active_room_or_404, any_room_or_404, require_owner, room_summary
from intermeet.core import state
from intermeet.models.models import (
    AnalyticsResponse,
    BreakoutRoomOut,
    CreateBreakoutRequest,
    CreateRoomRequest,
    CurrentUser,
    RoomStats,
    RoomSummary,
)
from intermeet.services.auth_service import get_current_user
from intermeet.services.room_directory import DEFAULT_BREAKOUT_NAME

router = APIRouter(tags=["Rooms"])

# ============================================================================
# ROOM LIFECYCLE ENDPOINTS
# ============================================================================

@router.post("/rooms", response_model=RoomSummary, status_code=201)
async def create_room(request: CreateRoomRequest, user: CurrentUser = Depends(get_current_user)):
    """
    Create a meeting owned by the caller.

    The room gets a fresh 6-character code that no other active room uses.
    A password, if given, is stored only as a salted hash.

    Raises:
        HTTPException: 400 if the password is too long, 503 if no code is free
    """
    # bcrypt runs in the worker thread with the rest of the create
    room = await run_in_threadpool(
        state.rooms.create_room,
        creator_id=user.id,
        name=request.name,
        password=request.password,
        waiting_room_enabled=request.waiting_room_enabled,
        is_persistent=request.is_persistent,
        max_participants=request.max_participants,
    )
    return room_summary(room, participant_count=0)


@router.get("/rooms", response_model=AnalyticsResponse)
async def list_my_rooms(user: CurrentUser = Depends(get_current_user)):
    """
    The caller's rooms, newest first, with lifetime join and message totals.
    """
    stats = [
        RoomStats(
            id=room.id,
            name=room.name,
            room_code=room.room_code,
            created_at=room.created_at,
            is_active=room.is_active,
            totalParticipants=state.presence.total_joins(room.id),
            totalMessages=state.chat.count(room.id),
        )
        for room in state.rooms.list_owned(user.id)
    ]
    return AnalyticsResponse(
        rooms=stats,
        totals={
            "rooms": len(stats),
            "participants": sum(s.totalParticipants for s in stats),
            "messages": sum(s.totalMessages for s in stats),
        },
    )


@router.get("/rooms/{code}", response_model=RoomSummary)
async def get_room(code: str, user: CurrentUser = Depends(get_current_user)):
    """Room details with the current number of participants."""
    return room_summary(any_room_or_404(code))


@router.post("/rooms/{code}/end")
async def end_meeting(code: str, user: CurrentUser = Depends(get_current_user)):
    """
    End a meeting for everyone. Owner-only.

    Side Effects:
        - Room marked inactive (its code becomes free again)
        - Every open presence record closed
        - "room_ended" event published to the room
    """
    room = any_room_or_404(code)
    require_owner(room, user.id, "Only the room creator can end the meeting")

    state.rooms.deactivate(room)
    await state.publisher.publish(room.id, "room_ended")
    return {"success": True}


@router.post("/rooms/{code}/leave")
async def leave_room(code: str, user: CurrentUser = Depends(get_current_user)):
    """Close the caller's open presence in a room (disconnect or hang up)."""
    room = any_room_or_404(code)
    closed = state.presence.close_for_user(room.id, user.id)
    return {"success": True, "closed": closed}

# ============================================================================
# BREAKOUT ROOMS
# ============================================================================

@router.post("/rooms/{code}/breakouts", status_code=201)
async def create_breakout(code: str, request: CreateBreakoutRequest,
                          user: CurrentUser = Depends(get_current_user)):
    """
    Create a breakout room under an active meeting. Owner-only.

    The breakout is a normal room with its own code that points back at
    its parent.
    """
    parent = active_room_or_404(code, "Parent room not found")
    require_owner(parent, user.id, "Only the room creator can create breakout rooms")

    breakout = state.rooms.create_room(
        creator_id=user.id,
        name=request.breakoutName,
        parent_room_id=parent.id,
        default_name=DEFAULT_BREAKOUT_NAME,
    )
    return {
        "breakoutRoom": {
            "id": breakout.id,
            "name": breakout.name,
            "room_code": breakout.room_code,
        }
    }


@router.get("/rooms/{code}/breakouts")
async def list_breakouts(code: str, user: CurrentUser = Depends(get_current_user)):
    """Active breakout rooms of a meeting, oldest first, with participant counts."""
    parent = any_room_or_404(code, "Parent room not found")
    breakouts = state.rooms.list_breakouts(parent)
    counts = state.presence.counts_for(b.id for b in breakouts)

    result: List[BreakoutRoomOut] = [
        BreakoutRoomOut(
            id=b.id,
            name=b.name,
            room_code=b.room_code,
            is_active=b.is_active,
            created_at=b.created_at,
            participantCount=counts.get(b.id, 0),
        )
        for b in breakouts
    ]
    return {"breakoutRooms": result}
