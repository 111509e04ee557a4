# intermeet/services/profiles.py
from __future__ import annotations

from typing import Optional

from intermeet.core.errors import InvalidRequest
from intermeet.models.models import CurrentUser, Profile, utcnow
from intermeet.services.store import Store

MAX_NAME_LENGTH = 100
ANONYMOUS = "Anonymous"


class ProfileService:
    def __init__(self, store: Store) -> None:
        self.store = store

    def get(self, user_id: str) -> Optional[Profile]:
        return self.store.profiles.get(user_id)

    def update(self, user_id: str, full_name: Optional[str] = None,
               avatar_url: Optional[str] = None) -> Profile:
        with self.store.transaction():
            profile = self.store.profiles.get(user_id) or Profile(id=user_id)
            if full_name is not None:
                clean = full_name.strip()[:MAX_NAME_LENGTH]
                if not clean:
                    raise InvalidRequest("Name cannot be empty")
                profile.full_name = clean
            if avatar_url is not None:
                profile.avatar_url = avatar_url.strip() or None
            profile.updated_at = utcnow()
            self.store.profiles[user_id] = profile
        return profile

    def display_name(self, user: CurrentUser) -> str:
        profile = self.get(user.id)
        if profile and profile.full_name:
            return profile.full_name
        return user.full_name or user.email or ANONYMOUS

    def avatar_url(self, user: CurrentUser) -> Optional[str]:
        profile = self.get(user.id)
        if profile and profile.avatar_url:
            return profile.avatar_url
        return user.avatar_url
