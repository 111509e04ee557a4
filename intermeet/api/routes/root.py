# intermeet/api/routes/root.py

from fastapi import APIRouter

router = APIRouter()


@router.get("/")
async def root():
    """
    Root endpoint - API information.

    Returns basic info about the API and its features.
    """
    return {
        "message": "InterMeet",
        "version": "1.0",
        "features": ["rooms", "passwords", "waiting_room", "breakout_rooms", "chat"],
        "endpoints": {
            "websocket": "/ws/rooms/{code}",
            "rooms": "/rooms",
            "join": "/rooms/join",
            "lobby": "/rooms/{code}/lobby",
            "messages": "/rooms/{code}/messages",
            "breakouts": "/rooms/{code}/breakouts",
            "profile": "/profile",
            "health": "/health",
        },
    }
