# intermeet/services/admission.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from fastapi.concurrency import run_in_threadpool

from intermeet.core.logging import get_logger
from intermeet.models.models import CurrentUser, Room
from intermeet.services.lobby import LobbyQueue
from intermeet.services.passwords import verify_password
from intermeet.services.presence import CapacityTracker
from intermeet.services.profiles import ProfileService
from intermeet.services.room_directory import RoomDirectory
from intermeet.services.session_grant import SessionGrant, SessionGrantIssuer

logger = get_logger(__name__)


class OutcomeKind(str, Enum):
    ADMIT = "admit"
    NEED_PASSWORD = "need_password"
    NEED_LOBBY = "need_lobby"
    DENY = "deny"


class DenyReason(str, Enum):
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    FULL = "full"
    WRONG_PASSWORD = "wrong_password"
    REJECTED_BY_HOST = "rejected_by_host"


@dataclass
class AdmissionOutcome:
    kind: OutcomeKind
    reason: Optional[DenyReason] = None
    room: Optional[Room] = None
    token: Optional[str] = None
    participant_count: int = 0

    @property
    def admitted(self) -> bool:
        return self.kind is OutcomeKind.ADMIT

    @classmethod
    def deny(cls, reason: DenyReason, room: Optional[Room] = None) -> "AdmissionOutcome":
        return cls(kind=OutcomeKind.DENY, reason=reason, room=room)


# ============================================================================
# ADMISSION POLICY EVALUATOR
# ============================================================================

class AdmissionPolicyEvaluator:
    """
    Decides whether an identity may enter a room right now.

    Checks run in a fixed order and the first one that applies wins:

        1. room code resolves to an active room        else deny(not_found)
        2. room is persistent or younger than max age  else deactivate, deny(expired)
        3. password gate (owner exempt)                need_password / deny(wrong_password)
        4. waiting-room gate (owner exempt)            deny(rejected_by_host) / need_lobby
        5. capacity, as one conditional write          else deny(full)
        6. admit: presence opened, session grant minted

    Expected denials come back as outcomes. Anything raised from here is an
    unexpected backend failure for the caller to map onto a generic error.
    """

    def __init__(self, directory: RoomDirectory, lobby: LobbyQueue, presence: CapacityTracker,
                 profiles: ProfileService, issuer: SessionGrantIssuer) -> None:
        self.directory = directory
        self.lobby = lobby
        self.presence = presence
        self.profiles = profiles
        self.issuer = issuer

    async def evaluate(self, code: str, user: CurrentUser, password: Optional[str] = None,
                       now: Optional[datetime] = None) -> AdmissionOutcome:
        room = self.directory.get_active(code)
        if room is None:
            return AdmissionOutcome.deny(DenyReason.NOT_FOUND)

        if self.directory.is_expired(room, now):
            self.directory.deactivate(room)
            return AdmissionOutcome.deny(DenyReason.EXPIRED, room)

        is_owner = room.creator_id == user.id

        if room.password_hash and not is_owner:
            if not password:
                return AdmissionOutcome(kind=OutcomeKind.NEED_PASSWORD, room=room)
            if not await run_in_threadpool(verify_password, password, room.password_hash):
                logger.info("Wrong password for room %s from %s", room.room_code, user.id)
                return AdmissionOutcome.deny(DenyReason.WRONG_PASSWORD, room)

        if room.waiting_room_enabled and not is_owner:
            status = self.lobby.check_status(room, user.id)
            if status == "rejected":
                return AdmissionOutcome.deny(DenyReason.REJECTED_BY_HOST, room)
            if status != "admitted":
                await self.lobby.request_entry(room, user.id, self.profiles.display_name(user))
                return AdmissionOutcome(kind=OutcomeKind.NEED_LOBBY, room=room)

        record = self.presence.open_if_capacity(room.id, user.id, room.max_participants)
        if record is None:
            return AdmissionOutcome.deny(DenyReason.FULL, room)

        if room.waiting_room_enabled and not is_owner:
            self.lobby.consume_admission(room, user.id)

        token = self.issuer.mint(SessionGrant(
            identity=user.id,
            name=self.profiles.display_name(user),
            room=room.room_code,
            avatar_url=self.profiles.avatar_url(user),
        ))
        count = self.presence.count_open(room.id)
        logger.info("→ %s admitted to %s (%d/%d)", user.id, room.room_code, count, room.max_participants)
        return AdmissionOutcome(
            kind=OutcomeKind.ADMIT, room=room, token=token, participant_count=count,
        )
