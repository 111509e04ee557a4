# intermeet/api/routes/chat.py

from fastapi import APIRouter, Depends

from intermeet.api.routes.utils import active_room_or_404, any_room_or_404
from intermeet.core import state
from intermeet.models.models import CurrentUser, MessageOut, SendMessageRequest
from intermeet.services.auth_service import get_current_user

router = APIRouter(tags=["Chat"])


def _out(message) -> MessageOut:
    return MessageOut(
        id=message.id,
        content=message.content,
        created_at=message.created_at,
        user_id=message.user_id,
        sender_name=message.sender_name,
    )


@router.get("/rooms/{code}/messages")
async def fetch_messages(code: str, user: CurrentUser = Depends(get_current_user)):
    """The latest 200 messages of a room in chronological order."""
    room = any_room_or_404(code)
    return {"messages": [_out(m) for m in state.chat.history(room)]}


@router.post("/rooms/{code}/messages", status_code=201)
async def send_message(code: str, request: SendMessageRequest,
                       user: CurrentUser = Depends(get_current_user)):
    """
    Post a chat message to an active room.

    Content is trimmed and capped at 1000 characters. The stored sender name
    is the caller's display name at send time.

    Raises:
        HTTPException: 404 if the room is missing or ended, 400 if empty
    """
    room = active_room_or_404(code)
    message = await state.chat.send(room, user.id, state.profiles.display_name(user), request.content)
    return {"message": _out(message)}
