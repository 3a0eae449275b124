"""HTTP client for the fleet API."""

import json
import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Union

import requests

from .loader import vehicle_from_dict
from .status import VehicleStatus
from .vehicle import Vehicle

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10


class FleetClientError(Exception):
    """An API call failed. `status` is the HTTP status (None if unreachable)."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


@dataclass
class Session:
    """Credentials for one logged-in user against one server."""

    base_url: str
    token: Optional[str] = None
    username: Optional[str] = None
    role: Optional[str] = None

    @property
    def authenticated(self) -> bool:
        return self.token is not None

    def headers(self) -> Dict[str, str]:
        if self.token is None:
            return {}
        return {"Authorization": f"Bearer {self.token}"}


class MemoryTokenStore:
    """Keeps the session for the life of the process only."""

    def __init__(self):
        self._data: Optional[dict] = None

    def load(self) -> Optional[dict]:
        return self._data

    def save(self, data: dict) -> None:
        self._data = dict(data)

    def clear(self) -> None:
        self._data = None


class FileTokenStore:
    """Persists the session as JSON (e.g. ~/.config/fleet/session.json)."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self) -> Optional[dict]:
        if not self.path.exists():
            return None
        with open(self.path) as fp:
            return json.load(fp)

    def save(self, data: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w") as fp:
            json.dump(data, fp)
        self.path.chmod(0o600)

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


class FleetClient:
    """
    Client for the fleet JSON API.

    The session is explicit state on the client; persisting it is delegated
    to the injected token store.
    """

    def __init__(
        self,
        session: Session,
        token_store=None,
        http: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.session = session
        self.token_store = token_store or MemoryTokenStore()
        self.http = http or requests.Session()
        self.timeout = timeout

    @classmethod
    def restore(cls, base_url: str, token_store, **kwargs) -> "FleetClient":
        """Resume a saved session for base_url, or start logged out."""
        saved = token_store.load()
        if saved and saved.get("base_url") == base_url:
            session = Session(**saved)
        else:
            session = Session(base_url)
        return cls(session, token_store, **kwargs)

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------

    def _url(self, path: str) -> str:
        return self.session.base_url.rstrip("/") + path

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        try:
            response = self.http.request(
                method,
                self._url(path),
                headers=self.session.headers(),
                timeout=self.timeout,
                **kwargs,
            )
        except requests.RequestException as e:
            raise FleetClientError(f"Cannot reach {self.session.base_url}: {e}") from e
        if response.status_code >= 400:
            try:
                message = response.json().get("error", response.reason)
            except ValueError:
                message = response.reason
            raise FleetClientError(message, response.status_code)
        return response

    # -------------------------------------------------------------------------
    # Auth
    # -------------------------------------------------------------------------

    def login(self, username: str, password: str) -> Session:
        data = self._request(
            "POST", "/api/login", json={"username": username, "password": password}
        ).json()
        self.session.token = data["token"]
        self.session.username = data.get("username", username)
        self.session.role = data.get("role")
        self.token_store.save(asdict(self.session))
        return self.session

    def logout(self) -> None:
        self.session.token = None
        self.session.username = None
        self.session.role = None
        self.token_store.clear()

    def register(self, username: str, password: str) -> Dict[str, Any]:
        return self._request(
            "POST", "/api/register", json={"username": username, "password": password}
        ).json()

    # -------------------------------------------------------------------------
    # Vehicles
    # -------------------------------------------------------------------------

    def list_vehicles(self, status: Optional[VehicleStatus] = None) -> List[Vehicle]:
        params = {"status": status.value} if status else None
        data = self._request("GET", "/api/vehicles", params=params).json()
        return [vehicle_from_dict(d) for d in data]

    def get_vehicle(self, vehicle_id: str) -> Vehicle:
        return vehicle_from_dict(self._request("GET", f"/api/vehicles/{vehicle_id}").json())

    def create_vehicle(self, fields: Dict[str, Any]) -> Vehicle:
        return vehicle_from_dict(self._request("POST", "/api/vehicles", json=fields).json())

    def update_vehicle(self, vehicle_id: str, fields: Dict[str, Any]) -> Vehicle:
        return vehicle_from_dict(
            self._request("PUT", f"/api/vehicles/{vehicle_id}", json=fields).json()
        )

    def record_oil_change(self, vehicle_id: str) -> Vehicle:
        return vehicle_from_dict(
            self._request("POST", f"/api/vehicles/{vehicle_id}/oil-change").json()
        )

    def delete_vehicle(self, vehicle_id: str) -> None:
        self._request("DELETE", f"/api/vehicles/{vehicle_id}")

    # -------------------------------------------------------------------------
    # Live updates
    # -------------------------------------------------------------------------

    def events(self) -> Iterator[str]:
        """
        Yield event names from the server's event stream until it closes.

        Callers should re-fetch the vehicle list on each `vehicle-update`.
        """
        try:
            response = self.http.get(
                self._url("/api/events"),
                headers=self.session.headers(),
                stream=True,
                timeout=(self.timeout, None),
            )
        except requests.RequestException as e:
            raise FleetClientError(f"Cannot reach {self.session.base_url}: {e}") from e
        if response.status_code >= 400:
            raise FleetClientError("Event stream rejected", response.status_code)
        with response:
            for line in response.iter_lines(decode_unicode=True):
                if line and line.startswith("event:"):
                    yield line[len("event:"):].strip()
