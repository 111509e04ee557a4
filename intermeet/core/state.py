# intermeet/core/state.py
from __future__ import annotations

from datetime import datetime, timezone

from intermeet.core.config import settings
from intermeet.services.admission import AdmissionPolicyEvaluator
from intermeet.services.chat import ChatService
from intermeet.services.connection_manager import ConnectionManager
from intermeet.services.lobby import LobbyQueue
from intermeet.services.notifier import RoomEventPublisher
from intermeet.services.presence import CapacityTracker
from intermeet.services.profiles import ProfileService
from intermeet.services.rate_limiter import FixedWindowRateLimiter
from intermeet.services.room_directory import RoomDirectory
from intermeet.services.session_grant import SessionGrantIssuer
from intermeet.services.store import Store

# Global singletons for app state (rebuilt by reset())
store: Store
connection_manager: ConnectionManager
publisher: RoomEventPublisher
presence: CapacityTracker
rooms: RoomDirectory
lobby: LobbyQueue
chat: ChatService
profiles: ProfileService
issuer: SessionGrantIssuer
admission: AdmissionPolicyEvaluator
rate_limiter: FixedWindowRateLimiter
redis_service = None

app_start_time: datetime = datetime.now(timezone.utc)


def reset(data_file: str | None = None) -> None:
    """Build a fresh set of services. Called at import and by tests."""
    global store, connection_manager, publisher, presence, rooms, lobby, chat
    global profiles, issuer, admission, rate_limiter, redis_service

    store = Store(data_file=settings.DATA_FILE if data_file is None else data_file)
    connection_manager = ConnectionManager()
    redis_service = None
    publisher = RoomEventPublisher(connection_manager)
    presence = CapacityTracker(store)
    rooms = RoomDirectory(
        store,
        presence,
        max_age_hours=settings.ROOM_MAX_AGE_HOURS,
        default_max_participants=settings.DEFAULT_MAX_PARTICIPANTS,
    )
    lobby = LobbyQueue(store, publisher)
    chat = ChatService(store, publisher)
    profiles = ProfileService(store)
    issuer = SessionGrantIssuer(
        settings.LIVEKIT_API_KEY,
        settings.LIVEKIT_API_SECRET,
        ttl_seconds=settings.SESSION_GRANT_TTL_SECONDS,
    )
    admission = AdmissionPolicyEvaluator(rooms, lobby, presence, profiles, issuer)
    rate_limiter = FixedWindowRateLimiter(
        max_requests=settings.RATE_LIMIT_MAX,
        window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
    )


reset()
