# intermeet/api/routes/admission.py

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from intermeet.core import state
from intermeet.core.config import settings
from intermeet.core.logging import get_logger
from intermeet.models.models import CurrentUser, JoinRoomRequest, SessionGrantResponse
from intermeet.services.admission import DenyReason, OutcomeKind
from intermeet.services.auth_service import get_current_user
from intermeet.services.room_directory import is_valid_room_code

logger = get_logger(__name__)

router = APIRouter(tags=["Admission"])

# reason -> (HTTP status, user-facing message)
DENIALS = {
    DenyReason.NOT_FOUND: (404, "Room not found or has ended"),
    DenyReason.EXPIRED: (410, "This meeting has expired"),
    DenyReason.FULL: (403, "Meeting is full"),
    DenyReason.WRONG_PASSWORD: (403, "Incorrect password"),
    DenyReason.REJECTED_BY_HOST: (403, "The host declined your request to join"),
}

# ============================================================================
# ROOM ADMISSION ENDPOINT
# ============================================================================

@router.post("/rooms/join", response_model=SessionGrantResponse)
async def join_room(request: JoinRoomRequest, user: CurrentUser = Depends(get_current_user)):
    """
    Ask to enter a meeting and, if let in, receive a media session grant.

    Flow:
        1. Rate limit per identity (before any room lookup)
        2. Validate the 6-character room code
        3. Run the admission policy (expiry, password, waiting room, capacity)
        4. On admit, return the signed grant for the media platform

    Returns:
        SessionGrantResponse on admit. Gates and denials come back as error
        responses carrying ``reason`` plus ``requiresPassword`` or
        ``requiresLobby`` so the client knows what to ask the user next.

    Raises:
        HTTPException: 401 unauthenticated, 429 rate limited, 400 bad code,
        500 on unexpected backend failure
    """
    if not state.rate_limiter.hit(user.id):
        retry_after = state.rate_limiter.retry_after(user.id)
        return JSONResponse(
            status_code=429,
            content={"detail": "Too many requests. Please wait a moment.", "reason": "rate_limited"},
            headers={"Retry-After": str(retry_after)},
        )

    if not is_valid_room_code(request.roomCode):
        raise HTTPException(status_code=400, detail="Invalid room code")

    try:
        outcome = await state.admission.evaluate(request.roomCode, user, request.password)
    except Exception:
        logger.exception("Admission failed for room %s", request.roomCode)
        raise HTTPException(status_code=500, detail="Failed to connect to meeting")

    if outcome.kind is OutcomeKind.NEED_PASSWORD:
        return JSONResponse(
            status_code=403,
            content={"detail": "This room requires a password", "reason": "password_required",
                     "requiresPassword": True},
        )

    if outcome.kind is OutcomeKind.NEED_LOBBY:
        return JSONResponse(
            status_code=403,
            content={"detail": "Waiting for host to admit you", "reason": "lobby",
                     "requiresLobby": True},
        )

    if outcome.kind is OutcomeKind.DENY:
        status_code, message = DENIALS[outcome.reason]
        content = {"detail": message, "reason": outcome.reason.value}
        if outcome.reason is DenyReason.WRONG_PASSWORD:
            content["requiresPassword"] = True
        return JSONResponse(status_code=status_code, content=content)

    room = outcome.room
    return SessionGrantResponse(
        token=outcome.token,
        serverUrl=settings.LIVEKIT_URL,
        roomName=room.name,
        roomCode=room.room_code,
        isCreator=room.creator_id == user.id,
        participantCount=outcome.participant_count,
        maxParticipants=room.max_participants,
        waitingRoomEnabled=room.waiting_room_enabled,
    )
