# intermeet/core/errors.py

from __future__ import annotations


class InterMeetError(Exception):
    """Base class for domain errors that map onto an HTTP status."""

    status_code: int = 400

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class NotRoomOwner(InterMeetError):
    status_code = 403


class LobbyEntryNotFound(InterMeetError):
    status_code = 404


class InvalidRequest(InterMeetError):
    status_code = 400


class CodeSpaceExhausted(InterMeetError):
    """Raised when no unused room code could be generated."""

    status_code = 503
