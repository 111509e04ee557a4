import pytest

from conftest import FakeWebSocket, make_room
from intermeet.core import state
from intermeet.core.errors import LobbyEntryNotFound, NotRoomOwner


@pytest.fixture
def room(owner):
    return make_room(creator_id=owner.id, waiting_room_enabled=True)


async def test_owner_is_admitted_without_an_entry(room, owner):
    assert await state.lobby.request_entry(room, owner.id, "Olivia") == "admitted"
    assert state.store.lobby == {}


async def test_open_room_admits_without_an_entry(guest):
    room = make_room(waiting_room_enabled=False)
    assert await state.lobby.request_entry(room, guest.id, "Gus") == "admitted"
    assert state.store.lobby == {}


async def test_repeated_request_is_idempotent(room, guest):
    assert await state.lobby.request_entry(room, guest.id, "Gus") == "waiting"
    first = state.lobby._entry(room, guest.id)

    assert await state.lobby.request_entry(room, guest.id, "Gus") == "waiting"

    entries = [e for e in state.store.lobby.values() if e.room_id == room.id]
    assert len(entries) == 1
    assert entries[0].status == "waiting"
    assert entries[0].created_at == first.created_at


async def test_list_waiting_is_owner_only_and_oldest_first(room, owner):
    for n in range(3):
        await state.lobby.request_entry(room, f"user-{n}", f"User {n}")
    await state.lobby.decide(room, owner.id, "user-1", "admit")

    waiting = state.lobby.list_waiting(room, owner.id)
    assert [e.user_id for e in waiting] == ["user-0", "user-2"]

    with pytest.raises(NotRoomOwner):
        state.lobby.list_waiting(room, "user-0")


async def test_decide_is_owner_only(room, guest):
    await state.lobby.request_entry(room, guest.id, "Gus")
    with pytest.raises(NotRoomOwner):
        await state.lobby.decide(room, guest.id, guest.id, "admit")
    assert state.lobby.check_status(room, guest.id) == "waiting"


async def test_decide_unknown_target(room, owner):
    with pytest.raises(LobbyEntryNotFound):
        await state.lobby.decide(room, owner.id, "nobody", "admit")


async def test_check_status_unknown_without_entry(room):
    assert state.lobby.check_status(room, "stranger") == "unknown"


class TestRejectionIsTerminal:
    async def test_status_stays_rejected(self, room, owner, guest):
        await state.lobby.request_entry(room, guest.id, "Gus")
        await state.lobby.decide(room, owner.id, guest.id, "reject")

        for _ in range(3):
            assert state.lobby.check_status(room, guest.id) == "rejected"

    async def test_asking_again_does_not_reset(self, room, owner, guest):
        await state.lobby.request_entry(room, guest.id, "Gus")
        await state.lobby.decide(room, owner.id, guest.id, "reject")

        assert await state.lobby.request_entry(room, guest.id, "Gus") == "rejected"
        assert state.lobby.check_status(room, guest.id) == "rejected"
        assert state.lobby.list_waiting(room, owner.id) == []


async def test_changes_reach_owner_and_target_only(room, owner, guest):
    owner_ws, guest_ws, other_ws = FakeWebSocket(), FakeWebSocket(), FakeWebSocket()
    manager = state.connection_manager
    await manager.connect(owner_ws, owner.id, is_owner=True)
    await manager.connect(guest_ws, guest.id)
    await manager.connect(other_ws, "someone-else")
    for ws in (owner_ws, guest_ws, other_ws):
        manager.join_room(ws, room.id)

    await state.lobby.request_entry(room, guest.id, "Gus")
    await state.lobby.decide(room, owner.id, guest.id, "admit")

    assert [m["type"] for m in owner_ws.sent] == ["lobby_changed", "lobby_changed"]
    assert [(m["type"], m["status"]) for m in guest_ws.sent] == [
        ("lobby_status", "waiting"),
        ("lobby_status", "admitted"),
    ]
    assert other_ws.sent == []
