import pytest

from conftest import age_room, auth, make_room
from intermeet.core import state
from intermeet.services import room_directory
from intermeet.services.rate_limiter import FixedWindowRateLimiter


OWNER = auth("owner-1", full_name="Olivia Owner")
GUEST = auth("guest-1", full_name="Gus Guest")


def create(client, headers=OWNER, **body):
    response = client.post("/rooms", json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def test_requires_authentication(client):
    assert client.post("/rooms", json={}).status_code == 401
    assert client.post("/rooms/join", json={"roomCode": "ABC123"}).status_code == 401
    bad = {"Authorization": "Bearer not-a-jwt"}
    assert client.get("/rooms", headers=bad).status_code == 401


def test_create_room_defaults(client):
    room = create(client)

    assert room["name"] == "My Meeting"
    assert len(room["room_code"]) == 6
    assert set(room["room_code"]) <= set(room_directory.CODE_ALPHABET)
    assert room["max_participants"] == 50
    assert room["has_password"] is False
    assert "password_hash" not in room


def test_create_room_strips_markup_from_name(client):
    room = create(client, name='  <b>"Team" & Co</b>  ')
    assert room["name"] == "bTeam  Co/b"


def test_codes_are_unique_among_active_rooms(client, monkeypatch):
    codes = iter(["AAAAAA", "AAAAAA", "BBBBBB", "AAAAAA"])
    monkeypatch.setattr(room_directory, "generate_room_code", lambda: next(codes))

    first = create(client)
    second = create(client)
    assert (first["room_code"], second["room_code"]) == ("AAAAAA", "BBBBBB")

    client.post("/rooms/AAAAAA/end", headers=OWNER)
    third = create(client)
    assert third["room_code"] == "AAAAAA"

    active = [r.room_code for r in state.store.rooms.values() if r.is_active]
    assert len(active) == len(set(active))


def test_code_space_exhausted(client, monkeypatch):
    monkeypatch.setattr(room_directory, "generate_room_code", lambda: "AAAAAA")
    create(client)
    response = client.post("/rooms", json={}, headers=OWNER)
    assert response.status_code == 503


def test_overlong_password_rejected(client):
    response = client.post("/rooms", json={"password": "x" * 80}, headers=OWNER)
    assert response.status_code == 400


def test_malformed_code_is_bad_request(client):
    for code in ("abc123", "ABC12", "ABC-12", "ABCDEFG"):
        response = client.post("/rooms/join", json={"roomCode": code}, headers=GUEST)
        assert response.status_code == 400


class TestAdmissionResponses:
    def test_admit_payload(self, client):
        room = create(client, name="Standup", max_participants=5)

        response = client.post("/rooms/join", json={"roomCode": room["room_code"]}, headers=GUEST)

        assert response.status_code == 200
        body = response.json()
        assert body["roomName"] == "Standup"
        assert body["roomCode"] == room["room_code"]
        assert body["isCreator"] is False
        assert body["participantCount"] == 1
        assert body["maxParticipants"] == 5
        assert body["waitingRoomEnabled"] is False
        assert state.issuer.decode(body["token"])["sub"] == "guest-1"

    def test_owner_flag(self, client):
        room = create(client, password="pw", waiting_room_enabled=True)
        body = client.post("/rooms/join", json={"roomCode": room["room_code"]}, headers=OWNER).json()
        assert body["isCreator"] is True

    def test_not_found(self, client):
        response = client.post("/rooms/join", json={"roomCode": "ZZZZZZ"}, headers=GUEST)
        assert response.status_code == 404
        assert response.json()["reason"] == "not_found"

    def test_expired_is_gone(self, client):
        room = age_room(make_room(), hours=25)
        response = client.post("/rooms/join", json={"roomCode": room.room_code}, headers=GUEST)
        assert response.status_code == 410
        assert response.json()["detail"] == "This meeting has expired"

    def test_lobby_flag(self, client):
        room = create(client, waiting_room_enabled=True)
        response = client.post("/rooms/join", json={"roomCode": room["room_code"]}, headers=GUEST)
        assert response.status_code == 403
        assert response.json()["requiresLobby"] is True

    def test_backend_failure_is_generic(self, client, monkeypatch):
        room = create(client)

        def explode(*args, **kwargs):
            raise RuntimeError("database unreachable")

        monkeypatch.setattr(state.presence, "open_if_capacity", explode)
        response = client.post("/rooms/join", json={"roomCode": room["room_code"]}, headers=GUEST)

        assert response.status_code == 500
        assert response.json()["detail"] == "Failed to connect to meeting"


class TestRateLimit:
    def test_eleventh_attempt_is_limited(self, client):
        for _ in range(10):
            assert client.post("/rooms/join", json={"roomCode": "ZZZZZZ"}, headers=GUEST).status_code == 404

        response = client.post("/rooms/join", json={"roomCode": "ZZZZZZ"}, headers=GUEST)
        assert response.status_code == 429
        assert "Retry-After" in response.headers

        other = client.post("/rooms/join", json={"roomCode": "ZZZZZZ"}, headers=auth("someone-else"))
        assert other.status_code == 404

    def test_limit_checked_before_policy(self, client):
        room = create(client)
        state.rate_limiter = FixedWindowRateLimiter(max_requests=1, window_seconds=60)
        state.rate_limiter.hit("guest-1")
        response = client.post("/rooms/join", json={"roomCode": room["room_code"]}, headers=GUEST)
        assert response.status_code == 429
        assert state.presence.count_open(state.rooms.get_active(room["room_code"]).id) == 0

    def test_window_resets(self):
        now = [0.0]
        limiter = FixedWindowRateLimiter(max_requests=2, window_seconds=60, clock=lambda: now[0])

        assert limiter.hit("u") and limiter.hit("u")
        assert not limiter.hit("u")
        assert limiter.retry_after("u") == 61

        now[0] = 61.0
        assert limiter.hit("u")
        assert limiter.cleanup() == 0
        now[0] = 200.0
        assert limiter.cleanup() == 1


class TestEndMeeting:
    def test_owner_ends_meeting(self, client):
        room = create(client)
        code = room["room_code"]
        client.post("/rooms/join", json={"roomCode": code}, headers=GUEST)
        client.post("/rooms/join", json={"roomCode": code}, headers=OWNER)

        response = client.post(f"/rooms/{code}/end", headers=OWNER)

        assert response.json() == {"success": True}
        details = client.get(f"/rooms/{code}", headers=OWNER).json()
        assert details["is_active"] is False
        assert details["participantCount"] == 0
        assert client.post("/rooms/join", json={"roomCode": code}, headers=GUEST).status_code == 404

    def test_non_owner_cannot_end(self, client):
        room = create(client)
        response = client.post(f"/rooms/{room['room_code']}/end", headers=GUEST)
        assert response.status_code == 403
        assert state.rooms.get_active(room["room_code"]) is not None

    def test_unknown_room(self, client):
        assert client.post("/rooms/ZZZZZZ/end", headers=OWNER).status_code == 404


def test_leave_closes_presence(client):
    room = create(client)
    code = room["room_code"]
    client.post("/rooms/join", json={"roomCode": code}, headers=GUEST)

    response = client.post(f"/rooms/{code}/leave", headers=GUEST)

    assert response.json()["closed"] == 1
    assert client.get(f"/rooms/{code}", headers=GUEST).json()["participantCount"] == 0


class TestBreakouts:
    def test_owner_creates_and_lists(self, client):
        parent = create(client, name="All hands")
        code = parent["room_code"]

        first = client.post(f"/rooms/{code}/breakouts", json={"breakoutName": "Team <A>"}, headers=OWNER)
        second = client.post(f"/rooms/{code}/breakouts", json={}, headers=OWNER)
        assert first.status_code == 201
        assert first.json()["breakoutRoom"]["name"] == "Team A"
        assert second.json()["breakoutRoom"]["name"] == "Breakout Room"

        breakout_code = first.json()["breakoutRoom"]["room_code"]
        client.post("/rooms/join", json={"roomCode": breakout_code}, headers=GUEST)

        listed = client.get(f"/rooms/{code}/breakouts", headers=GUEST).json()["breakoutRooms"]
        assert [b["name"] for b in listed] == ["Team A", "Breakout Room"]
        assert [b["participantCount"] for b in listed] == [1, 0]

        child = state.rooms.get_active(breakout_code)
        assert child.parent_room_id == parent["id"]

    def test_non_owner_cannot_create(self, client):
        parent = create(client)
        response = client.post(f"/rooms/{parent['room_code']}/breakouts", json={}, headers=GUEST)
        assert response.status_code == 403

    def test_ended_breakouts_are_hidden(self, client):
        parent = create(client)
        code = parent["room_code"]
        made = client.post(f"/rooms/{code}/breakouts", json={}, headers=OWNER).json()["breakoutRoom"]
        client.post(f"/rooms/{made['room_code']}/end", headers=OWNER)

        assert client.get(f"/rooms/{code}/breakouts", headers=OWNER).json()["breakoutRooms"] == []


def test_my_rooms_with_totals(client):
    first = create(client, name="One")
    age_room(state.rooms.get_active(first["room_code"]), hours=1)
    create(client, name="Two")
    create(client, headers=GUEST, name="Not mine")
    client.post("/rooms/join", json={"roomCode": first["room_code"]}, headers=GUEST)
    client.post(f"/rooms/{first['room_code']}/messages", json={"content": "hi"}, headers=GUEST)

    body = client.get("/rooms", headers=OWNER).json()

    assert [r["name"] for r in body["rooms"]] == ["Two", "One"]
    assert body["totals"] == {"rooms": 2, "participants": 1, "messages": 1}


def test_profile_name_flows_into_grant(client):
    response = client.patch("/profile", json={"full_name": "  Gustavo  "}, headers=GUEST)
    assert response.json()["full_name"] == "Gustavo"
    assert client.get("/profile", headers=GUEST).json()["full_name"] == "Gustavo"

    room = create(client)
    token = client.post("/rooms/join", json={"roomCode": room["room_code"]}, headers=GUEST).json()["token"]
    assert state.issuer.decode(token)["name"] == "Gustavo"


def test_profile_rejects_blank_name(client):
    assert client.patch("/profile", json={"full_name": "   "}, headers=GUEST).status_code == 400


@pytest.mark.parametrize("path", ["/", "/health"])
def test_info_endpoints(client, path):
    assert client.get(path).status_code == 200
