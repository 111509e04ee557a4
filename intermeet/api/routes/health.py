# intermeet/api/routes/health.py

from datetime import datetime, timezone

from fastapi import APIRouter

from intermeet.core import state

router = APIRouter()

@router.get("/health")
async def health():
    """
    Liveness plus a snapshot of rooms, listeners and published events.
    """
    uptime_seconds = (datetime.now(timezone.utc) - state.app_start_time).total_seconds()
    return {
        "status": "healthy",
        "uptime_hours": round(uptime_seconds / 3600, 2),
        "connections": len(state.connection_manager.connection_rooms),
        "active_rooms": sum(1 for r in state.store.rooms.values() if r.is_active),
        "rooms_with_listeners": len(state.connection_manager.rooms),
        "events_published": state.publisher.published,
    }
