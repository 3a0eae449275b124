#!/usr/bin/env python3
"""Tests for the HTTP client, run against the Flask app."""

from urllib.parse import urlsplit

import pytest
import requests

from fleet import Vehicle, VehicleStatus
from fleet.client import (
    FileTokenStore,
    FleetClient,
    FleetClientError,
    MemoryTokenStore,
    Session,
)

from conftest import PASSWORD

BASE_URL = "http://fleet.test"


class FakeResponse:
    """The parts of requests.Response the client uses."""

    def __init__(self, status_code, body=None, reason="", lines=()):
        self.status_code = status_code
        self._body = body
        self.reason = reason
        self._lines = lines

    def json(self):
        if self._body is None:
            raise ValueError("no JSON")
        return self._body

    def iter_lines(self, decode_unicode=False):
        return iter(self._lines)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


class FlaskTransport:
    """Stands in for requests.Session, routing calls to a Flask test client."""

    def __init__(self, client):
        self.client = client

    def request(self, method, url, headers=None, timeout=None, json=None, params=None):
        response = self.client.open(
            urlsplit(url).path,
            method=method,
            headers=headers,
            json=json,
            query_string=params,
        )
        body = response.get_json(silent=True)
        return FakeResponse(response.status_code, body, response.status.split(" ", 1)[-1])


@pytest.fixture
def api(client):
    return FleetClient(Session(BASE_URL), MemoryTokenStore(), http=FlaskTransport(client))


@pytest.fixture
def logged_in(api):
    api.login("gm", PASSWORD)
    return api


class TestSession:
    def test_headers(self):
        assert Session(BASE_URL).headers() == {}
        assert Session(BASE_URL, token="t").headers() == {"Authorization": "Bearer t"}

    def test_authenticated(self):
        assert not Session(BASE_URL).authenticated
        assert Session(BASE_URL, token="t").authenticated


class TestTokenStores:
    def test_file_store_round_trip(self, tmp_path):
        store = FileTokenStore(tmp_path / "cfg" / "session.json")
        assert store.load() is None
        store.save({"base_url": BASE_URL, "token": "t"})
        assert store.load()["token"] == "t"
        store.clear()
        assert store.load() is None

    def test_restore_matching_server(self, tmp_path):
        store = FileTokenStore(tmp_path / "session.json")
        store.save({"base_url": BASE_URL, "token": "t", "username": "gm", "role": "GM"})
        client = FleetClient.restore(BASE_URL, store)
        assert client.session.token == "t"
        assert client.session.username == "gm"

    def test_restore_other_server_starts_logged_out(self, tmp_path):
        store = FileTokenStore(tmp_path / "session.json")
        store.save({"base_url": "http://elsewhere", "token": "t"})
        assert not FleetClient.restore(BASE_URL, store).session.authenticated


class TestAuth:
    def test_login_saves_session(self, api):
        session = api.login("gm", PASSWORD)
        assert session.authenticated
        assert session.role == "GM"
        assert api.token_store.load()["token"] == session.token

    def test_bad_login_raises_401(self, api):
        with pytest.raises(FleetClientError) as e:
            api.login("gm", "wrong")
        assert e.value.status == 401
        assert not api.session.authenticated

    def test_logout_clears(self, logged_in):
        logged_in.logout()
        assert not logged_in.session.authenticated
        assert logged_in.token_store.load() is None

    def test_register(self, api):
        assert api.register("newbie", "long-enough")["role"] == "operator"


class TestVehicles:
    def test_requires_login(self, api):
        with pytest.raises(FleetClientError) as e:
            api.list_vehicles()
        assert e.value.status == 401

    def test_create_and_list(self, logged_in):
        created = logged_in.create_vehicle({"name": "Bus 1", "km": 100})
        assert isinstance(created, Vehicle)
        assert created.oil_change_due == 5000
        assert [v.id for v in logged_in.list_vehicles()] == [created.id]

    def test_list_by_status(self, logged_in):
        logged_in.create_vehicle({"name": "Bus 1"})
        logged_in.create_vehicle({"name": "Bus 2", "status": "in-shop"})
        vehicles = logged_in.list_vehicles(VehicleStatus.IN_SHOP)
        assert [v.name for v in vehicles] == ["Bus 2"]

    def test_update_and_oil_change(self, logged_in):
        created = logged_in.create_vehicle({"name": "Bus 1", "km": 100})
        updated = logged_in.update_vehicle(created.id, {"km": 4600})
        assert updated.oil_change_due == 500
        assert logged_in.record_oil_change(created.id).oil_change_due == 5000

    def test_delete_then_get_404(self, logged_in):
        created = logged_in.create_vehicle({"name": "Bus 1"})
        logged_in.delete_vehicle(created.id)
        with pytest.raises(FleetClientError) as e:
            logged_in.get_vehicle(created.id)
        assert e.value.status == 404

    def test_validation_error_message(self, logged_in):
        with pytest.raises(FleetClientError) as e:
            logged_in.create_vehicle({"name": "Bus", "km": "far"})
        assert e.value.status == 400
        assert str(e.value)


class TestTransportErrors:
    def test_unreachable_server(self):
        class DownHttp:
            def request(self, *args, **kwargs):
                raise requests.ConnectionError("refused")

        api = FleetClient(Session(BASE_URL), http=DownHttp())
        with pytest.raises(FleetClientError) as e:
            api.list_vehicles()
        assert e.value.status is None

    def test_non_json_error_uses_reason(self):
        class ProxyHttp:
            def request(self, *args, **kwargs):
                return FakeResponse(502, reason="Bad Gateway")

        api = FleetClient(Session(BASE_URL), http=ProxyHttp())
        with pytest.raises(FleetClientError, match="Bad Gateway"):
            api.list_vehicles()


class TestEvents:
    def test_yields_event_names(self):
        class StreamHttp:
            def get(self, url, headers=None, stream=False, timeout=None):
                assert stream
                assert headers == {"Authorization": "Bearer t"}
                return FakeResponse(
                    200,
                    lines=[
                        "retry: 3000",
                        "",
                        "event: vehicle-update",
                        "data: {}",
                        "",
                        ": heartbeat",
                        "event: vehicle-update",
                    ],
                )

        api = FleetClient(Session(BASE_URL, token="t"), http=StreamHttp())
        assert list(api.events()) == ["vehicle-update", "vehicle-update"]

    def test_rejected_stream_raises(self):
        class StreamHttp:
            def get(self, *args, **kwargs):
                return FakeResponse(401)

        api = FleetClient(Session(BASE_URL), http=StreamHttp())
        with pytest.raises(FleetClientError):
            list(api.events())
