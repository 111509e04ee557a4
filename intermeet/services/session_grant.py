# intermeet/services/session_grant.py
"""
Session grants for the media platform.

The media SDK accepts a LiveKit-style access token: an HS256 JWT issued by
the API key, whose subject is the participant identity and whose ``video``
claim names the room and what the participant may do in it.
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from jose import jwt

ALGORITHM = "HS256"


@dataclass
class SessionGrant:
    identity: str
    name: str
    room: str
    avatar_url: Optional[str] = None
    can_publish: bool = True
    can_subscribe: bool = True
    can_publish_data: bool = True

    def video_grant(self) -> Dict[str, Any]:
        return {
            "roomJoin": True,
            "room": self.room,
            "canPublish": self.can_publish,
            "canSubscribe": self.can_subscribe,
            "canPublishData": self.can_publish_data,
        }


class SessionGrantIssuer:
    def __init__(self, api_key: str, api_secret: str, ttl_seconds: int = 6 * 3600) -> None:
        self.api_key = api_key
        self.api_secret = api_secret
        self.ttl_seconds = ttl_seconds

    def mint(self, grant: SessionGrant, now: Optional[int] = None) -> str:
        now = int(now if now is not None else time.time())
        claims = {
            "iss": self.api_key,
            "sub": grant.identity,
            "name": grant.name,
            "metadata": json.dumps({"avatar_url": grant.avatar_url}),
            "nbf": now,
            "exp": now + self.ttl_seconds,
            "video": grant.video_grant(),
        }
        return jwt.encode(claims, self.api_secret, algorithm=ALGORITHM)

    def decode(self, token: str) -> Dict[str, Any]:
        """Verify and decode a grant this issuer minted (used by tests and tooling)."""
        return jwt.decode(token, self.api_secret, algorithms=[ALGORITHM], issuer=self.api_key)
