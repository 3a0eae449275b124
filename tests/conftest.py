"""Shared fixtures: a Flask app on a temporary data directory."""

import pytest

from fleet import FleetStore, Role, User
from web.app import create_app
from web.auth import hash_password

PASSWORD = "correct-horse"


@pytest.fixture
def app(tmp_path):
    app = create_app(
        {
            "TESTING": True,
            "FLEET_DATA_DIR": str(tmp_path / "data"),
            "SECRET_KEY": "test-secret",
            "INIT_KEY": "init-key",
            "RELAY_DEBOUNCE_SECONDS": 0,
            "SSE_HEARTBEAT_SECONDS": 0.1,
            "WATCH_DATA_DIR": False,
        }
    )
    store = app.extensions["fleet_store"]
    store.add_user(User("gm", hash_password(PASSWORD), Role.GM))
    store.add_user(User("op", hash_password(PASSWORD), Role.OPERATOR))
    yield app
    app.extensions["fleet_relay"].close()


@pytest.fixture
def store(app) -> FleetStore:
    return app.extensions["fleet_store"]


@pytest.fixture
def client(app):
    return app.test_client()


def _login(client, username):
    response = client.post(
        "/api/login", json={"username": username, "password": PASSWORD}
    )
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.get_json()['token']}"}


@pytest.fixture
def gm_headers(client):
    return _login(client, "gm")


@pytest.fixture
def op_headers(client):
    return _login(client, "op")
