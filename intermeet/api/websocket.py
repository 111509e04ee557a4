# intermeet/api/websocket.py

from __future__ import annotations

import json

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from intermeet.core import state
from intermeet.core.logging import get_logger
from intermeet.services.auth_service import user_from_token

logger = get_logger(__name__)

router = APIRouter()

# ============================================================================
# WEBSOCKET ENDPOINT
# ============================================================================

@router.websocket("/ws/rooms/{code}")
async def room_events(websocket: WebSocket, code: str, token: str = ""):
    """
    Push channel for one room's change feed.

    Protocol:
    =========

    Client -> Server Actions:
    -------------------------
    Ping:
        {"action": "ping"}
        Response: {"type": "pong"}

    Server -> Client Messages:
    -------------------------
    Subscribed (sent once after connect):
        {"type": "subscribed", "room_code": "ABC123", "is_owner": false}

    Lobby changed (owner only, re-fetch GET /rooms/{code}/lobby):
        {"type": "lobby_changed", "room_id": "..."}

    Lobby status (only to the identity it concerns):
        {"type": "lobby_status", "room_id": "...", "status": "admitted"}

    Chat message:
        {"type": "chat_message", "room_id": "...", "message": {...}}

    Room ended:
        {"type": "room_ended", "room_id": "..."}

    Error:
        {"type": "error", "message": "..."}

    Events are hints: clients re-read state over HTTP rather than trusting
    payloads, so a missed or reordered event costs nothing but latency.

    Close codes:
        4401 token missing or invalid, 4404 room not found
    """
    user = user_from_token(token) if token else None
    if user is None:
        await websocket.close(code=4401)
        return

    room = state.rooms.get_any(code.upper())
    if room is None:
        await websocket.close(code=4404)
        return

    is_owner = room.creator_id == user.id
    await state.connection_manager.connect(websocket, user.id, is_owner=is_owner)
    state.connection_manager.join_room(websocket, room.id)
    await websocket.send_json({"type": "subscribed", "room_code": room.room_code, "is_owner": is_owner})

    try:
        while True:
            data = await websocket.receive_text()

            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                await websocket.send_json({"type": "error", "message": "Invalid JSON"})
                continue

            action = message.get("action") if isinstance(message, dict) else None
            if action == "ping":
                await websocket.send_json({"type": "pong"})
            else:
                await websocket.send_json({"type": "error", "message": f"Unknown action: {action}"})

    except WebSocketDisconnect:
        state.connection_manager.disconnect(websocket)
    except Exception as e:
        logger.error("WebSocket error: %s", e)
        state.connection_manager.disconnect(websocket)
