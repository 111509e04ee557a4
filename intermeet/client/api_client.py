# intermeet/client/api_client.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from intermeet.core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class JoinResult:
    """Raw answer of the admission endpoint; non-2xx answers are data, not errors."""
    status_code: int
    body: Dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status_code == 200

    @property
    def requires_password(self) -> bool:
        return bool(self.body.get("requiresPassword"))

    @property
    def requires_lobby(self) -> bool:
        return bool(self.body.get("requiresLobby"))

    @property
    def reason(self) -> Optional[str]:
        return self.body.get("reason")

    @property
    def detail(self) -> Optional[str]:
        return self.body.get("detail")


class InterMeetClient:
    """
    Async HTTP client for the InterMeet API.

    Transport problems (connection refused, timeouts) surface as
    ``httpx.HTTPError``. The admission call returns every HTTP answer as a
    JoinResult; the other calls raise ``httpx.HTTPStatusError`` on non-2xx.

    Usage:
        async with InterMeetClient("https://meet.example.com", token) as client:
            result = await client.join("ABC123")
    """

    def __init__(self, base_url: str, access_token: str, transport: Optional[httpx.AsyncBaseTransport] = None,
                 timeout: float = 10.0) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={"Authorization": f"Bearer {access_token}"},
            transport=transport,
            timeout=timeout,
        )

    async def __aenter__(self) -> "InterMeetClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _json(self, response: httpx.Response) -> Dict[str, Any]:
        response.raise_for_status()
        return response.json()

    async def join(self, room_code: str, password: Optional[str] = None) -> JoinResult:
        payload: Dict[str, Any] = {"roomCode": room_code}
        if password:
            payload["password"] = password
        response = await self._client.post("/rooms/join", json=payload)
        try:
            body = response.json()
        except ValueError:
            body = {"detail": response.text}
        return JoinResult(status_code=response.status_code, body=body)

    async def create_room(self, **options) -> Dict[str, Any]:
        return await self._json(await self._client.post("/rooms", json=options))

    async def request_entry(self, room_code: str) -> str:
        data = await self._json(await self._client.post(f"/rooms/{room_code}/lobby"))
        return data["status"]

    async def check_status(self, room_code: str) -> str:
        data = await self._json(await self._client.get(f"/rooms/{room_code}/lobby/status"))
        return data["status"]

    async def list_waiting(self, room_code: str) -> List[Dict[str, Any]]:
        data = await self._json(await self._client.get(f"/rooms/{room_code}/lobby"))
        return data["entries"]

    async def decide(self, room_code: str, user_id: str, action: str) -> Dict[str, Any]:
        return await self._json(await self._client.patch(
            f"/rooms/{room_code}/lobby", json={"userId": user_id, "action": action},
        ))

    async def leave(self, room_code: str) -> Dict[str, Any]:
        return await self._json(await self._client.post(f"/rooms/{room_code}/leave"))
