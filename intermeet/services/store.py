# intermeet/services/store.py
from __future__ import annotations

import json
import os
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List

from pydantic import ValidationError

from intermeet.core.logging import get_logger
from intermeet.models.models import LobbyEntry, Message, PresenceRecord, Profile, Room

logger = get_logger(__name__)

# ============================================================================
# TABLE STORE
# ============================================================================

class Store:
    """
    Row store for rooms, presence records, lobby entries, messages and profiles.

    Every table is an in-memory dict (messages are an append-only list).
    Services mutate rows inside ``transaction()``, which serialises writers
    and, when a data file is configured, snapshots all tables to disk on exit.

    Storage Format (DATA_FILE):
        {
            "rooms": {"<room id>": {...}},
            "presence": {"<record id>": {...}},
            "lobby": {"<room id>:<user id>": {...}},
            "messages": [{...}],
            "profiles": {"<user id>": {...}}
        }

    Usage:
        store = Store(data_file="intermeet.json")
        with store.transaction():
            store.rooms[room.id] = room
    """

    def __init__(self, data_file: str = "") -> None:
        self.data_file = data_file
        self.rooms: Dict[str, Room] = {}
        self.presence: Dict[str, PresenceRecord] = {}
        self.lobby: Dict[str, LobbyEntry] = {}
        self.messages: List[Message] = []
        self.profiles: Dict[str, Profile] = {}
        self._lock = threading.RLock()
        self.load()

    @staticmethod
    def lobby_key(room_id: str, user_id: str) -> str:
        return f"{room_id}:{user_id}"

    @contextmanager
    def transaction(self) -> Iterator["Store"]:
        """Hold the write lock for a multi-row read-check-write sequence."""
        with self._lock:
            yield self
            self.save()

    def load(self) -> None:
        """
        Load all tables from the data file.

        A missing file means a fresh store. Tables are replaced only when every
        one of them parsed; otherwise the store starts empty and the file is
        moved aside to ``<data_file>.corrupt`` so the next save cannot
        overwrite what is still in it.
        """
        if not self.data_file or not os.path.exists(self.data_file):
            return

        try:
            with open(self.data_file, "r") as f:
                data = json.load(f)
            rooms = {k: Room(**v) for k, v in data.get("rooms", {}).items()}
            presence = {k: PresenceRecord(**v) for k, v in data.get("presence", {}).items()}
            lobby = {k: LobbyEntry(**v) for k, v in data.get("lobby", {}).items()}
            messages = [Message(**m) for m in data.get("messages", [])]
            profiles = {k: Profile(**v) for k, v in data.get("profiles", {}).items()}
        except (OSError, ValueError, TypeError, AttributeError, ValidationError) as e:
            corrupt_path = f"{self.data_file}.corrupt"
            logger.error("Load error: %s (moved to %s)", e, corrupt_path)
            os.replace(self.data_file, corrupt_path)
            return

        self.rooms = rooms
        self.presence = presence
        self.lobby = lobby
        self.messages = messages
        self.profiles = profiles
        logger.info("✓ Loaded %d rooms from %s", len(self.rooms), self.data_file)

    def save(self) -> None:
        """Persist all tables to the data file (no-op without one)."""
        if not self.data_file:
            return

        data = {
            "rooms": {k: v.model_dump(mode="json") for k, v in self.rooms.items()},
            "presence": {k: v.model_dump(mode="json") for k, v in self.presence.items()},
            "lobby": {k: v.model_dump(mode="json") for k, v in self.lobby.items()},
            "messages": [m.model_dump(mode="json") for m in self.messages],
            "profiles": {k: v.model_dump(mode="json") for k, v in self.profiles.items()},
        }
        tmp_path = f"{self.data_file}.tmp"
        with open(tmp_path, "w") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp_path, self.data_file)
