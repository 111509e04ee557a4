# intermeet/models/models.py
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Literal, Optional, List

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


LobbyStatus = Literal["waiting", "admitted", "rejected"]

# ============================================================================
# STORED RECORDS
# ============================================================================

class Room(BaseModel):
    id: str = Field(default_factory=new_id)
    room_code: str
    name: str
    creator_id: str
    created_at: datetime = Field(default_factory=utcnow)
    is_active: bool = True
    is_persistent: bool = False
    password_hash: Optional[str] = None
    waiting_room_enabled: bool = False
    max_participants: int = 50
    parent_room_id: Optional[str] = None


class PresenceRecord(BaseModel):
    id: str = Field(default_factory=new_id)
    room_id: str
    user_id: str
    joined_at: datetime = Field(default_factory=utcnow)
    left_at: Optional[datetime] = None


class LobbyEntry(BaseModel):
    id: str = Field(default_factory=new_id)
    room_id: str
    user_id: str
    display_name: str
    status: LobbyStatus = "waiting"
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Message(BaseModel):
    id: str = Field(default_factory=new_id)
    room_id: str
    user_id: str
    sender_name: str
    content: str
    created_at: datetime = Field(default_factory=utcnow)


class Profile(BaseModel):
    id: str
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    updated_at: datetime = Field(default_factory=utcnow)


class CurrentUser(BaseModel):
    """Identity resolved from the auth provider's bearer token."""
    id: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None

# ============================================================================
# REQUESTS
# ============================================================================

class CreateRoomRequest(BaseModel):
    name: Optional[str] = None
    password: Optional[str] = None
    waiting_room_enabled: bool = False
    is_persistent: bool = False
    max_participants: Optional[int] = Field(default=None, ge=1, le=500)


class JoinRoomRequest(BaseModel):
    roomCode: str
    password: Optional[str] = None


class LobbyDecisionRequest(BaseModel):
    userId: str
    action: Literal["admit", "reject"]


class SendMessageRequest(BaseModel):
    content: str


class CreateBreakoutRequest(BaseModel):
    breakoutName: Optional[str] = None


class UpdateProfileRequest(BaseModel):
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None

# ============================================================================
# RESPONSES
# ============================================================================

class RoomSummary(BaseModel):
    id: str
    name: str
    room_code: str
    created_at: datetime
    is_active: bool
    is_persistent: bool
    has_password: bool
    waiting_room_enabled: bool
    max_participants: int
    parent_room_id: Optional[str] = None
    participantCount: int = 0


class RoomStats(BaseModel):
    id: str
    name: str
    room_code: str
    created_at: datetime
    is_active: bool
    totalParticipants: int = 0
    totalMessages: int = 0


class AnalyticsResponse(BaseModel):
    rooms: List[RoomStats]
    totals: dict


class SessionGrantResponse(BaseModel):
    token: str
    serverUrl: str
    roomName: str
    roomCode: str
    isCreator: bool
    participantCount: int
    maxParticipants: int
    waitingRoomEnabled: bool


class LobbyEntryOut(BaseModel):
    id: str
    user_id: str
    display_name: str
    status: LobbyStatus
    created_at: datetime


class MessageOut(BaseModel):
    id: str
    content: str
    created_at: datetime
    user_id: str
    sender_name: str


class BreakoutRoomOut(BaseModel):
    id: str
    name: str
    room_code: str
    is_active: bool
    created_at: datetime
    participantCount: int = 0
