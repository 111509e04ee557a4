# intermeet/client/admission.py
"""
Client-side admission flow.

Drives one user from the pre-join screen into a meeting:

    prejoin -> connecting -> connected
                  |  ^
                  v  |
          password / lobby

Any stage can fall into ``error``. ``connected`` lasts until the user leaves
(``left``); ``error`` lasts until ``retry()``.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any, Callable, Dict, Optional, Protocol

import httpx

from intermeet.client.api_client import InterMeetClient, JoinResult
from intermeet.core.logging import get_logger

logger = get_logger(__name__)

CONNECTIVITY_MESSAGE = "Failed to connect to server"

# deny reason -> what the user reads
DENIAL_MESSAGES = {
    "not_found": "Room not found or has ended",
    "expired": "This meeting has expired",
    "full": "Meeting is full",
    "rejected_by_host": "The host declined your request to join",
    "rate_limited": "Too many requests. Please wait a moment.",
}

# lobby poll HTTP status -> what the user reads
STATUS_MESSAGES = {
    401: "Your session has expired. Please sign in again.",
    404: DENIAL_MESSAGES["not_found"],
}


class Stage(str, Enum):
    PREJOIN = "prejoin"
    PASSWORD = "password"
    LOBBY = "lobby"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"
    LEFT = "left"


class MediaPreview(Protocol):
    """Local camera/microphone preview held while the user reviews devices."""

    def release(self) -> None: ...


class InvalidTransition(RuntimeError):
    pass


class AdmissionFlow:
    """
    State machine for joining one room.

    Every response is applied only if the flow is still in the stage that
    issued the request: each transition bumps a generation counter and
    late answers from an older generation are dropped.

    While in the lobby the flow polls ``check_status`` every
    ``poll_interval`` seconds, doubling the wait after a failed poll up to
    ``max_poll_interval``. A refused poll (4xx other than 429, e.g. an
    expired session) ends in ``error``. ``notify_lobby_change()`` (called from a push
    subscription) wakes the poll early; both paths end in the same
    ``check_status`` call.
    """

    def __init__(
        self,
        client: InterMeetClient,
        room_code: str,
        preview: Optional[MediaPreview] = None,
        poll_interval: float = 3.0,
        max_poll_interval: float = 30.0,
        on_change: Optional[Callable[["AdmissionFlow"], None]] = None,
    ) -> None:
        self.client = client
        self.room_code = room_code.strip().upper()
        self.preview = preview
        self.poll_interval = poll_interval
        self.max_poll_interval = max_poll_interval
        self.on_change = on_change

        self.stage = Stage.PREJOIN
        self.error_message: Optional[str] = None
        self.password_incorrect = False
        self.grant: Optional[Dict[str, Any]] = None

        self._password: Optional[str] = None
        self._generation = 0
        self._wake = asyncio.Event()
        self._changed = asyncio.Event()
        self._poll_task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # transitions
    # ------------------------------------------------------------------

    def _enter(self, stage: Stage) -> int:
        self._generation += 1
        self.stage = stage
        logger.debug("Admission %s -> %s", self.room_code, stage.value)

        if stage is Stage.CONNECTING and self.preview is not None:
            self.preview.release()
            self.preview = None

        changed, self._changed = self._changed, asyncio.Event()
        changed.set()
        if self.on_change is not None:
            self.on_change(self)
        return self._generation

    def _fail(self, message: str) -> None:
        self.error_message = message
        self._enter(Stage.ERROR)

    def _require(self, *stages: Stage) -> None:
        if self.stage not in stages:
            raise InvalidTransition(f"Cannot do that while {self.stage.value}")

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    # ------------------------------------------------------------------
    # user actions
    # ------------------------------------------------------------------

    async def confirm_prejoin(self) -> Stage:
        """User is happy with the device preview; try to get in."""
        self._require(Stage.PREJOIN)
        await self._attempt()
        return self.stage

    async def submit_password(self, password: str) -> Stage:
        self._require(Stage.PASSWORD)
        self._password = password
        await self._attempt()
        return self.stage

    def notify_lobby_change(self) -> None:
        """Push path: something changed in the lobby, check now."""
        if self.stage is Stage.LOBBY:
            self._wake.set()

    async def disconnect(self) -> None:
        """Leave the meeting. Terminal: start a new flow to rejoin."""
        self._require(Stage.CONNECTED)
        self._enter(Stage.LEFT)
        try:
            await self.client.leave(self.room_code)
        except httpx.HTTPError as e:
            logger.warning("Leave notification for %s failed: %s", self.room_code, e)

    def retry(self) -> None:
        """Back to the pre-join screen after an error."""
        self._require(Stage.ERROR)
        self.error_message = None
        self.password_incorrect = False
        self._password = None
        self.grant = None
        self._enter(Stage.PREJOIN)

    async def close(self) -> None:
        """Stop polling; any answer still in flight is ignored."""
        self._generation += 1
        if self._poll_task is not None:
            self._poll_task.cancel()
            try:
                await self._poll_task
            except asyncio.CancelledError:
                pass
            self._poll_task = None

    async def wait_for(self, *stages: Stage) -> Stage:
        while self.stage not in stages:
            await self._changed.wait()
        return self.stage

    # ------------------------------------------------------------------
    # admission
    # ------------------------------------------------------------------

    async def _attempt(self) -> None:
        generation = self._enter(Stage.CONNECTING)
        tried_password = self._password

        try:
            result = await self.client.join(self.room_code, tried_password)
        except httpx.HTTPError as e:
            if self._is_current(generation):
                logger.warning("Admission request for %s failed: %s", self.room_code, e)
                self._fail(CONNECTIVITY_MESSAGE)
            return

        if not self._is_current(generation):
            logger.debug("Dropping stale admission answer for %s", self.room_code)
            return

        await self._apply(result, tried_password, generation)

    async def _apply(self, result: JoinResult, tried_password: Optional[str], generation: int) -> None:
        if result.ok:
            self.grant = result.body
            self._enter(Stage.CONNECTED)
            return

        if result.requires_password:
            self.password_incorrect = bool(tried_password)
            self._password = None
            self._enter(Stage.PASSWORD)
            return

        if result.requires_lobby:
            try:
                status = await self.client.request_entry(self.room_code)
            except httpx.HTTPError as e:
                if self._is_current(generation):
                    logger.warning("Lobby request for %s failed: %s", self.room_code, e)
                    self._fail(CONNECTIVITY_MESSAGE)
                return
            if not self._is_current(generation):
                return
            if status == "rejected":
                self._fail(DENIAL_MESSAGES["rejected_by_host"])
                return
            if status == "admitted":
                await self._attempt()
                return
            lobby_generation = self._enter(Stage.LOBBY)
            self._wake.clear()
            self._poll_task = asyncio.create_task(self._poll_lobby(lobby_generation))
            return

        message = DENIAL_MESSAGES.get(result.reason or "") or result.detail or "Failed to join room"
        self._fail(message)

    async def _poll_lobby(self, generation: int) -> None:
        interval = self.poll_interval

        while self._is_current(generation):
            try:
                await asyncio.wait_for(self._wake.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass
            self._wake.clear()
            if not self._is_current(generation):
                return

            try:
                status = await self.client.check_status(self.room_code)
            except httpx.HTTPStatusError as e:
                code = e.response.status_code
                if 400 <= code < 500 and code != 429:
                    if self._is_current(generation):
                        logger.warning("Lobby poll for %s refused: %d", self.room_code, code)
                        self._fail(STATUS_MESSAGES.get(code, "Failed to join room"))
                    return
                interval = min(interval * 2, self.max_poll_interval)
                logger.info("Lobby poll for %s got %d, next in %.1fs", self.room_code, code, interval)
                continue
            except httpx.HTTPError as e:
                interval = min(interval * 2, self.max_poll_interval)
                logger.info("Lobby poll for %s failed (%s), next in %.1fs", self.room_code, e, interval)
                continue

            if not self._is_current(generation):
                return
            interval = self.poll_interval

            # "unknown" means the entry is gone (room ended or state reset):
            # ask the admission endpoint again for the real answer.
            if status in ("admitted", "unknown"):
                await self._attempt()
                return
            if status == "rejected":
                self._fail(DENIAL_MESSAGES["rejected_by_host"])
                return
