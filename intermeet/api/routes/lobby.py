# intermeet/api/routes/lobby.py

from fastapi import APIRouter, Depends

from intermeet.api.routes.utils import active_room_or_404, any_room_or_404
from intermeet.core import state
from intermeet.models.models import CurrentUser, LobbyDecisionRequest, LobbyEntryOut
from intermeet.services.auth_service import get_current_user

router = APIRouter(tags=["Lobby"])

# ============================================================================
# WAITING ROOM ENDPOINTS
# ============================================================================

@router.post("/rooms/{code}/lobby")
async def request_entry(code: str, user: CurrentUser = Depends(get_current_user)):
    """
    Ask the host to be let in.

    Returns {"status": "admitted"} straight away for the owner or when the
    room has no waiting room; otherwise {"status": "waiting"} (or the
    existing decision, if the host already made one).
    """
    room = active_room_or_404(code, "Room not found")
    status = await state.lobby.request_entry(room, user.id, state.profiles.display_name(user))
    return {"status": status}


@router.get("/rooms/{code}/lobby")
async def list_waiting(code: str, user: CurrentUser = Depends(get_current_user)):
    """Everyone still waiting, oldest first. Owner-only."""
    room = any_room_or_404(code)
    entries = state.lobby.list_waiting(room, user.id)
    return {
        "entries": [
            LobbyEntryOut(
                id=e.id,
                user_id=e.user_id,
                display_name=e.display_name,
                status=e.status,
                created_at=e.created_at,
            )
            for e in entries
        ]
    }


@router.get("/rooms/{code}/lobby/status")
async def check_status(code: str, user: CurrentUser = Depends(get_current_user)):
    """The caller's own lobby status: waiting, admitted, rejected or unknown."""
    room = any_room_or_404(code)
    return {"status": state.lobby.check_status(room, user.id)}


@router.patch("/rooms/{code}/lobby")
async def decide(code: str, request: LobbyDecisionRequest, user: CurrentUser = Depends(get_current_user)):
    """Admit or reject someone in the lobby. Owner-only."""
    room = any_room_or_404(code)
    entry = await state.lobby.decide(room, user.id, request.userId, request.action)
    return {"success": True, "status": entry.status}
