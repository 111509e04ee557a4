from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from intermeet.core import state
from intermeet.main import app
from intermeet.models.models import CurrentUser, utcnow
from intermeet.services.auth_service import create_access_token


class FakePreview:
    """Stands in for the camera/microphone preview handle."""

    def __init__(self):
        self.released = 0

    def release(self):
        self.released += 1


class FakeWebSocket:
    """Collects whatever the connection manager sends to it."""

    def __init__(self):
        self.sent = []
        self.accepted = False

    async def accept(self):
        self.accepted = True

    async def send_json(self, message):
        self.sent.append(message)


@pytest.fixture(autouse=True)
def fresh_state():
    state.reset(data_file="")
    yield
    state.reset(data_file="")


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def owner():
    return CurrentUser(id="owner-1", email="owner@example.com", full_name="Olivia Owner")


@pytest.fixture
def guest():
    return CurrentUser(id="guest-1", email="guest@example.com", full_name="Gus Guest")


def auth(user_id, full_name=None, email=None):
    token = create_access_token(user_id, email=email or f"{user_id}@example.com", full_name=full_name)
    return {"Authorization": f"Bearer {token}"}


def make_room(creator_id="owner-1", **options):
    return state.rooms.create_room(creator_id=creator_id, **options)


def age_room(room, hours):
    room.created_at = utcnow() - timedelta(hours=hours)
    return room
