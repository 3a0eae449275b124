"""YAML document store for vehicles and users."""

import logging
import os
import tempfile
import threading
import uuid
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

import yaml
from dateutil.parser import isoparse
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .status import VehicleStatus
from .user import Role, User
from .vehicle import Vehicle

logger = logging.getLogger(__name__)

# Change operations reported to store watchers
INSERT = "insert"
UPDATE = "update"
DELETE = "delete"
RESET = "reset"


class VehicleNotFoundError(LookupError):
    """No vehicle with the given id."""


class DuplicateNameError(ValueError):
    """A vehicle or user with the same name already exists."""


@dataclass
class ChangeEvent:
    """A committed mutation of the vehicle collection."""

    operation: str
    vehicle_id: Optional[str] = None


class Watch:
    """Handle for a store change listener."""

    def __init__(self, listener: Callable[[ChangeEvent], None]):
        self.listener = listener
        self.active = True
        self.error: Optional[BaseException] = None


# =============================================================================
# Serialization
# =============================================================================


def parse_date(value: Union[str, date]) -> date:
    """Parse an ISO date (or datetime) string; dates pass through."""
    if isinstance(value, date):
        return value
    return isoparse(str(value)).date()


def vehicle_to_dict(vehicle: Vehicle) -> Dict[str, Any]:
    """Serialize a Vehicle to the document format (camelCase keys)."""
    return {
        "id": vehicle.id,
        "name": vehicle.name,
        "status": vehicle.status.value,
        "statusReason": vehicle.display_reason,
        "km": vehicle.km,
        "oilChangeDue": vehicle.oil_change_due,
        "safetyDue": vehicle.safety_due.isoformat(),
        "drivers": list(vehicle.drivers),
        "comment": vehicle.comment,
    }


def vehicle_from_dict(dct: Dict[str, Any]) -> Vehicle:
    """Parse a document (camelCase keys) into a Vehicle."""
    safety_due = dct.get("safetyDue")
    status = dct.get("status")
    return Vehicle(
        dct["name"],
        dct.get("km") or 0,
        dct.get("oilChangeDue"),
        parse_date(safety_due) if safety_due else None,
        VehicleStatus.parse(status) if status else VehicleStatus.ON_ROAD,
        dct.get("statusReason"),
        dct.get("drivers"),
        dct.get("comment"),
        dct.get("id"),
    )


def _user_to_dict(user: User) -> Dict[str, Any]:
    return {
        "username": user.username,
        "passwordHash": user.password_hash,
        "role": user.role.value,
    }


def _user_from_dict(dct: Dict[str, Any]) -> User:
    return User(dct["username"], dct["passwordHash"], Role(dct.get("role", "operator")))


def _load(filename: Path) -> Any:
    with open(filename, "r") as fp:
        return yaml.load(fp, Loader=yaml.SafeLoader)


def _dump(filename: Path, data: Any) -> None:
    """Write YAML to a temp file and move it into place (atomic per document)."""
    fd, tmp = tempfile.mkstemp(dir=filename.parent, suffix=".tmp")
    try:
        with os.fdopen(fd, "w") as fp:
            yaml.dump(
                data,
                fp,
                default_flow_style=False,
                allow_unicode=True,
                sort_keys=False,
                width=120,
            )
        os.replace(tmp, filename)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise


def _read_bytes(filename: Path) -> Optional[bytes]:
    try:
        return filename.read_bytes()
    except FileNotFoundError:
        return None


# =============================================================================
# Store
# =============================================================================


class _VehicleFileHandler(FileSystemEventHandler):
    """Feeds vehicle document changes seen on disk back into the store."""

    def __init__(self, store: "FleetStore"):
        super().__init__()
        self.store = store

    def on_created(self, event):
        self._sync(event)

    def on_modified(self, event):
        self._sync(event)

    def on_deleted(self, event):
        self._sync(event)

    def on_moved(self, event):
        self._sync(event)

    def _sync(self, event) -> None:
        if event.is_directory:
            return
        paths = [event.src_path, getattr(event, "dest_path", None)]
        for path in paths:
            if not path:
                continue
            try:
                self.store._sync_file(Path(os.fsdecode(path)))
            except OSError:
                logger.exception("Could not read changed document %s", path)


class FleetStore:
    """
    Vehicle and user documents stored as YAML under a data directory.

    Layout:
        <data_dir>/vehicles/<id>.yaml   one document per vehicle
        <data_dir>/users.yaml           list of user documents

    Every committed vehicle write is reported to watchers as a ChangeEvent.
    Writes from other processes sharing the directory are reported too once
    `start_observer()` has been called.
    """

    def __init__(self, data_dir: Union[str, Path]):
        self.data_dir = Path(data_dir)
        self.vehicles_dir = self.data_dir / "vehicles"
        self.users_path = self.data_dir / "users.yaml"
        self.vehicles_dir.mkdir(parents=True, exist_ok=True)
        self._watches: List[Watch] = []
        self._lock = threading.RLock()
        # Last content seen per vehicle file name; None once deleted
        self._known: Dict[str, Optional[bytes]] = {}
        self._observer: Optional[Observer] = None

    # -------------------------------------------------------------------------
    # Change watch
    # -------------------------------------------------------------------------

    def watch(self, listener: Callable[[ChangeEvent], None]) -> Watch:
        """Register a listener called after every committed vehicle write."""
        handle = Watch(listener)
        self._watches.append(handle)
        return handle

    def unwatch(self, handle: Watch) -> None:
        handle.active = False
        if handle in self._watches:
            self._watches.remove(handle)

    def _notify(self, event: ChangeEvent) -> None:
        for handle in list(self._watches):
            try:
                handle.listener(event)
            except Exception as e:
                # A failed watch is dropped, not resubscribed
                logger.exception("Change watch failed on %s; detaching", event)
                handle.error = e
                self.unwatch(handle)

    def start_observer(self) -> None:
        """Report writes made to the vehicles directory by other processes."""
        if self._observer is not None:
            return
        observer = Observer()
        observer.schedule(
            _VehicleFileHandler(self), str(self.vehicles_dir), recursive=False
        )
        observer.daemon = True
        observer.start()
        self._observer = observer
        logger.info("Observing %s for external changes", self.vehicles_dir)

    def stop_observer(self) -> None:
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join()
        self._observer = None

    def _remember(self, path: Path) -> None:
        self._known[path.name] = _read_bytes(path)

    def _sync_file(self, path: Path) -> None:
        """Report a vehicle document that changed on disk without going through us."""
        if path.suffix != ".yaml":
            return
        path = self.vehicles_dir / path.name
        with self._lock:
            content = _read_bytes(path)
            if path.name in self._known and self._known[path.name] == content:
                return
            previous = self._known.get(path.name)
            self._known[path.name] = content
        if content is None:
            operation = DELETE
        elif previous is None:
            operation = INSERT
        else:
            operation = UPDATE
        logger.debug("External %s of vehicle %s", operation, path.stem)
        self._notify(ChangeEvent(operation, path.stem))

    # -------------------------------------------------------------------------
    # Vehicles
    # -------------------------------------------------------------------------

    def _vehicle_path(self, vehicle_id: str) -> Path:
        # Ids are hex, anything else can't name a stored document
        if not vehicle_id or not vehicle_id.isalnum():
            raise VehicleNotFoundError(vehicle_id)
        return self.vehicles_dir / f"{vehicle_id}.yaml"

    def list_vehicles(self, status: Optional[VehicleStatus] = None) -> List[Vehicle]:
        """All vehicles sorted by name, optionally filtered by status."""
        vehicles = [
            vehicle_from_dict(_load(path))
            for path in sorted(self.vehicles_dir.glob("*.yaml"))
        ]
        if status is not None:
            vehicles = [v for v in vehicles if v.status == status]
        return sorted(vehicles, key=lambda v: v.name.lower())

    def get_vehicle(self, vehicle_id: str) -> Vehicle:
        path = self._vehicle_path(vehicle_id)
        if not path.exists():
            raise VehicleNotFoundError(vehicle_id)
        return vehicle_from_dict(_load(path))

    def _check_unique_name(self, vehicle: Vehicle) -> None:
        name = vehicle.name.strip().lower()
        for other in self.list_vehicles():
            if other.id != vehicle.id and other.name.strip().lower() == name:
                raise DuplicateNameError(f"Vehicle '{vehicle.name}' already exists")

    def create_vehicle(self, vehicle: Vehicle) -> Vehicle:
        """Store a new vehicle, assigning its id."""
        with self._lock:
            vehicle.id = uuid.uuid4().hex
            self._check_unique_name(vehicle)
            path = self._vehicle_path(vehicle.id)
            _dump(path, vehicle_to_dict(vehicle))
            self._remember(path)
        logger.debug("Created vehicle %s (%s)", vehicle.id, vehicle.name)
        self._notify(ChangeEvent(INSERT, vehicle.id))
        return vehicle

    def save_vehicle(self, vehicle: Vehicle) -> Vehicle:
        """Replace an existing vehicle document (last write wins)."""
        path = self._vehicle_path(vehicle.id)
        with self._lock:
            if not path.exists():
                raise VehicleNotFoundError(vehicle.id)
            self._check_unique_name(vehicle)
            _dump(path, vehicle_to_dict(vehicle))
            self._remember(path)
        logger.debug("Updated vehicle %s", vehicle.id)
        self._notify(ChangeEvent(UPDATE, vehicle.id))
        return vehicle

    def delete_vehicle(self, vehicle_id: str) -> None:
        path = self._vehicle_path(vehicle_id)
        with self._lock:
            if not path.exists():
                raise VehicleNotFoundError(vehicle_id)
            path.unlink()
            self._known[path.name] = None
        logger.debug("Deleted vehicle %s", vehicle_id)
        self._notify(ChangeEvent(DELETE, vehicle_id))

    # -------------------------------------------------------------------------
    # Users
    # -------------------------------------------------------------------------

    def list_users(self) -> List[User]:
        if not self.users_path.exists():
            return []
        return [_user_from_dict(d) for d in _load(self.users_path) or []]

    def get_user(self, username: str) -> Optional[User]:
        for user in self.list_users():
            if user.username == username:
                return user
        return None

    def add_user(self, user: User) -> User:
        with self._lock:
            users = self.list_users()
            if any(u.username == user.username for u in users):
                raise DuplicateNameError(f"User '{user.username}' already exists")
            users.append(user)
            _dump(self.users_path, [_user_to_dict(u) for u in users])
        logger.debug("Added user %s (%s)", user.username, user.role.value)
        return user

    # -------------------------------------------------------------------------
    # Seeding
    # -------------------------------------------------------------------------

    def reset(self, vehicles: Iterable[Vehicle], users: Iterable[User]) -> None:
        """Destroy all documents and replace them with the given ones."""
        with self._lock:
            for path in self.vehicles_dir.glob("*.yaml"):
                path.unlink()
                self._known[path.name] = None
            for vehicle in vehicles:
                vehicle.id = uuid.uuid4().hex
                path = self._vehicle_path(vehicle.id)
                _dump(path, vehicle_to_dict(vehicle))
                self._remember(path)
            _dump(self.users_path, [_user_to_dict(u) for u in users])
        logger.info("Store reset under %s", self.data_dir)
        self._notify(ChangeEvent(RESET))
