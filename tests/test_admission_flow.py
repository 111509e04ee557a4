import asyncio

import httpx
import pytest

from conftest import FakePreview, make_room
from intermeet.client.admission import CONNECTIVITY_MESSAGE, AdmissionFlow, InvalidTransition, Stage
from intermeet.client.api_client import InterMeetClient, JoinResult
from intermeet.core import state
from intermeet.main import app
from intermeet.services.auth_service import create_access_token


@pytest.fixture
async def clients():
    opened = []

    def open_client(user_id, transport=None):
        client = InterMeetClient(
            "http://testserver",
            create_access_token(user_id, full_name=user_id.title()),
            transport=transport or httpx.ASGITransport(app=app),
        )
        opened.append(client)
        return client

    yield open_client

    for client in opened:
        await client.aclose()


async def settle(flow, *stages):
    return await asyncio.wait_for(flow.wait_for(*stages), timeout=2)


async def test_straight_in(clients):
    room = make_room()
    preview = FakePreview()
    seen = []
    flow = AdmissionFlow(clients("guest-1"), room.room_code.lower(), preview=preview,
                         on_change=lambda f: seen.append(f.stage))

    assert await flow.confirm_prejoin() is Stage.CONNECTED
    assert seen == [Stage.CONNECTING, Stage.CONNECTED]
    assert flow.grant["roomCode"] == room.room_code
    assert state.issuer.decode(flow.grant["token"])["sub"] == "guest-1"
    assert preview.released == 1


async def test_password_round_trip(clients):
    room = make_room(password="secret42")
    flow = AdmissionFlow(clients("guest-1"), room.room_code)

    assert await flow.confirm_prejoin() is Stage.PASSWORD
    assert flow.password_incorrect is False

    assert await flow.submit_password("nope") is Stage.PASSWORD
    assert flow.password_incorrect is True

    assert await flow.submit_password("secret42") is Stage.CONNECTED


async def test_lobby_admitted_by_poll(clients):
    room = make_room(waiting_room_enabled=True)
    preview = FakePreview()
    flow = AdmissionFlow(clients("guest-1"), room.room_code, preview=preview, poll_interval=0.01)

    assert await flow.confirm_prejoin() is Stage.LOBBY
    await state.lobby.decide(room, "owner-1", "guest-1", "admit")

    assert await settle(flow, Stage.CONNECTED, Stage.ERROR) is Stage.CONNECTED
    assert preview.released == 1
    assert state.lobby.check_status(room, "guest-1") == "unknown"
    await flow.close()


async def test_lobby_admitted_by_push(clients):
    room = make_room(waiting_room_enabled=True)
    flow = AdmissionFlow(clients("guest-1"), room.room_code, poll_interval=60)

    await flow.confirm_prejoin()
    await state.lobby.decide(room, "owner-1", "guest-1", "admit")
    flow.notify_lobby_change()

    assert await settle(flow, Stage.CONNECTED, Stage.ERROR) is Stage.CONNECTED
    await flow.close()


async def test_lobby_rejection(clients):
    room = make_room(waiting_room_enabled=True)
    flow = AdmissionFlow(clients("guest-1"), room.room_code, poll_interval=60)

    await flow.confirm_prejoin()
    await state.lobby.decide(room, "owner-1", "guest-1", "reject")
    flow.notify_lobby_change()

    assert await settle(flow, Stage.CONNECTED, Stage.ERROR) is Stage.ERROR
    assert flow.error_message == "The host declined your request to join"
    await flow.close()


async def test_ended_room_while_waiting(clients):
    room = make_room(waiting_room_enabled=True)
    flow = AdmissionFlow(clients("guest-1"), room.room_code, poll_interval=60)

    await flow.confirm_prejoin()
    state.rooms.deactivate(room)
    flow.notify_lobby_change()

    assert await settle(flow, Stage.CONNECTED, Stage.ERROR) is Stage.ERROR
    assert flow.error_message == "Room not found or has ended"
    await flow.close()


async def test_full_room_then_retry(clients):
    room = make_room(max_participants=1)
    state.presence.open_if_capacity(room.id, "someone", 1)
    preview = FakePreview()
    flow = AdmissionFlow(clients("guest-1"), room.room_code, preview=preview)

    assert await flow.confirm_prejoin() is Stage.ERROR
    assert flow.error_message == "Meeting is full"
    assert preview.released == 1

    flow.retry()
    assert flow.stage is Stage.PREJOIN
    assert flow.error_message is None


async def test_unreachable_server(clients):
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    flow = AdmissionFlow(clients("guest-1", transport=httpx.MockTransport(refuse)), "ABC123")

    assert await flow.confirm_prejoin() is Stage.ERROR
    assert flow.error_message == CONNECTIVITY_MESSAGE


async def test_disconnect_leaves_room(clients):
    room = make_room()
    flow = AdmissionFlow(clients("guest-1"), room.room_code)
    await flow.confirm_prejoin()
    assert state.presence.count_open(room.id) == 1

    await flow.disconnect()

    assert flow.stage is Stage.LEFT
    assert state.presence.count_open(room.id) == 0
    with pytest.raises(InvalidTransition):
        await flow.disconnect()


async def test_actions_outside_their_stage():
    flow = AdmissionFlow(client=None, room_code="ABC123")
    with pytest.raises(InvalidTransition):
        await flow.submit_password("pw")
    with pytest.raises(InvalidTransition):
        flow.retry()


class GatedClient:
    """Holds every join answer until released."""

    def __init__(self):
        self.gate = asyncio.Event()

    async def join(self, room_code, password=None):
        await self.gate.wait()
        return JoinResult(status_code=200, body={"roomCode": room_code})


async def test_late_answer_is_dropped():
    client = GatedClient()
    flow = AdmissionFlow(client, "ABC123")

    pending = asyncio.create_task(flow.confirm_prejoin())
    await asyncio.sleep(0)
    assert flow.stage is Stage.CONNECTING

    await flow.close()
    client.gate.set()
    await pending

    assert flow.stage is Stage.CONNECTING
    assert flow.grant is None


async def test_expired_session_while_waiting_is_an_error(clients):
    room = make_room(waiting_room_enabled=True)
    flow = AdmissionFlow(clients("guest-1"), room.room_code, poll_interval=0.01, max_poll_interval=0.05)

    assert await flow.confirm_prejoin() is Stage.LOBBY
    flow.client = InterMeetClient("http://testserver", "expired-token", transport=httpx.ASGITransport(app=app))
    try:
        assert await settle(flow, Stage.CONNECTED, Stage.ERROR) is Stage.ERROR
        assert flow.error_message == "Your session has expired. Please sign in again."
    finally:
        await flow.close()
        await flow.client.aclose()


async def test_owner_lets_guest_in_through_the_client(clients):
    host = clients("owner-1")
    created = await host.create_room(name="Interview", waiting_room_enabled=True)
    flow = AdmissionFlow(clients("guest-1"), created["room_code"], poll_interval=60)

    assert await flow.confirm_prejoin() is Stage.LOBBY
    waiting = await host.list_waiting(created["room_code"])
    assert [(e["user_id"], e["display_name"]) for e in waiting] == [("guest-1", "Guest-1")]

    decided = await host.decide(created["room_code"], "guest-1", "admit")
    assert decided == {"success": True, "status": "admitted"}
    flow.notify_lobby_change()

    assert await settle(flow, Stage.CONNECTED, Stage.ERROR) is Stage.CONNECTED
    assert await host.list_waiting(created["room_code"]) == []
    await flow.close()


async def test_guest_cannot_use_owner_calls(clients):
    room = make_room(waiting_room_enabled=True)
    guest = clients("guest-1")

    with pytest.raises(httpx.HTTPStatusError) as exc:
        await guest.list_waiting(room.room_code)
    assert exc.value.response.status_code == 403
