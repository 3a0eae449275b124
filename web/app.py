"""Flask web application for fleet maintenance tracking."""

import hmac
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Mapping, Optional

from flask import (
    Flask,
    Response,
    current_app,
    flash,
    g,
    jsonify,
    redirect,
    render_template,
    request,
    session,
    url_for,
)
from jsonschema import ValidationError
from werkzeug.exceptions import HTTPException

from fleet.loader import (
    FleetStore,
    VehicleNotFoundError,
    parse_date,
    vehicle_to_dict,
)
from fleet.seed import demo_vehicles
from fleet.status import Severity, VehicleStatus
from fleet.user import Role, User
from fleet.validation import validate_credentials, validate_payload
from fleet.vehicle import Vehicle

from .auth import (
    AuthError,
    PermissionDenied,
    authenticate,
    create_access_token,
    hash_password,
    login_required,
    page_login_required,
    role_required,
)
from .config import load_config
from .relay import ChangeRelay, format_sse

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8


# =============================================================================
# Template filters
# =============================================================================


def format_km(km):
    """Format kilometers with comma separator."""
    if km is None:
        return "—"
    return f"{km:,.0f}"


def format_date(value):
    """Format date for display."""
    if value is None:
        return "—"
    return value.isoformat()


def severity_color(severity: Severity) -> str:
    """Get Tailwind color classes for a severity."""
    return severity.css_class


def severity_bar_color(severity: Severity) -> str:
    """Get Tailwind color class for a progress bar."""
    return severity.bar_class


def status_badge_color(status: VehicleStatus) -> str:
    """Get Tailwind color classes for a vehicle status badge."""
    colors = {
        VehicleStatus.ON_ROAD: "bg-green-500 text-white",
        VehicleStatus.IN_SHOP: "bg-yellow-500 text-white",
        VehicleStatus.OUT_OF_SERVICE: "bg-red-500 text-white",
    }
    return colors.get(status, "bg-gray-500 text-white")


def percent(fraction: float) -> str:
    return f"{fraction * 100:.0f}%"


# =============================================================================
# Helpers
# =============================================================================


def _store() -> FleetStore:
    return current_app.extensions["fleet_store"]


def _relay() -> ChangeRelay:
    return current_app.extensions["fleet_relay"]


def _json_body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValueError("Expected a JSON object body")
    return data


def _status_filter(value: Optional[str]) -> Optional[VehicleStatus]:
    if not value or value == "all":
        return None
    return VehicleStatus.parse(value)


def _issue_token(user: User) -> str:
    return create_access_token(
        user,
        current_app.config["SECRET_KEY"],
        timedelta(minutes=current_app.config["TOKEN_EXPIRE_MINUTES"]),
    )


def vehicle_from_payload(data: Dict[str, Any]) -> Vehicle:
    """Build a new Vehicle from a validated create payload, applying defaults."""
    safety_due = data.get("safetyDue")
    status = data.get("status")
    return Vehicle(
        data["name"].strip(),
        km=data.get("km", 0),
        oil_change_due=data.get("oilChangeDue"),
        safety_due=parse_date(safety_due) if safety_due else None,
        status=VehicleStatus.parse(status) if status else VehicleStatus.ON_ROAD,
        status_reason=data.get("statusReason"),
        drivers=data.get("drivers"),
        comment=data.get("comment"),
    )


def apply_payload(vehicle: Vehicle, data: Dict[str, Any]) -> Vehicle:
    """Apply a validated partial update to a vehicle."""
    if "name" in data:
        vehicle.name = data["name"].strip()
    if "status" in data or "statusReason" in data:
        status = VehicleStatus.parse(data["status"]) if "status" in data else vehicle.status
        reason = data.get("statusReason", vehicle.status_reason)
        vehicle.set_status(status, reason)
    if "km" in data:
        vehicle.record_odometer(data["km"])
    # An explicit remaining value wins over the odometer adjustment
    if "oilChangeDue" in data:
        vehicle.oil_change_due = data["oilChangeDue"]
    if "safetyDue" in data:
        vehicle.safety_due = parse_date(data["safetyDue"])
    if "drivers" in data:
        vehicle.drivers = list(data["drivers"])
    if "comment" in data:
        vehicle.comment = data["comment"] or None
    return vehicle


# =============================================================================
# Application factory
# =============================================================================


def create_app(overrides: Optional[Mapping[str, Any]] = None) -> Flask:
    """Create the app with a store and change relay from the config."""
    app = Flask(__name__)
    app.config.update(load_config(overrides))

    store = FleetStore(app.config["FLEET_DATA_DIR"])
    relay = ChangeRelay(debounce_seconds=app.config["RELAY_DEBOUNCE_SECONDS"])
    relay.attach(store)
    if app.config["WATCH_DATA_DIR"]:
        store.start_observer()
    app.extensions["fleet_store"] = store
    app.extensions["fleet_relay"] = relay

    app.jinja_env.filters["format_km"] = format_km
    app.jinja_env.filters["format_date"] = format_date
    app.jinja_env.filters["severity_color"] = severity_color
    app.jinja_env.filters["severity_bar_color"] = severity_bar_color
    app.jinja_env.filters["status_badge_color"] = status_badge_color
    app.jinja_env.filters["percent"] = percent

    register_error_handlers(app)
    register_api_routes(app)
    register_page_routes(app)
    return app


def _error(message: str, code: int):
    return jsonify({"error": message}), code


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ValidationError)
    def handle_validation_error(e):
        return _error(e.message, 400)

    @app.errorhandler(ValueError)
    def handle_value_error(e):
        return _error(str(e), 400)

    @app.errorhandler(AuthError)
    def handle_auth_error(e):
        return _error(str(e), 401)

    @app.errorhandler(PermissionDenied)
    def handle_permission_denied(e):
        return _error(str(e), 403)

    @app.errorhandler(VehicleNotFoundError)
    def handle_not_found(e):
        return _error(f"Vehicle '{e.args[0]}' not found", 404)

    @app.errorhandler(HTTPException)
    def handle_http_exception(e):
        if request.path.startswith("/api/"):
            return _error(e.description, e.code)
        return e

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return _error("Internal server error", 500)


# =============================================================================
# JSON API
# =============================================================================


def register_api_routes(app: Flask) -> None:
    @app.route("/api/login", methods=["POST"])
    @app.route("/api/auth", methods=["POST"])
    def api_login():
        """Exchange credentials for a bearer token."""
        data = _json_body()
        try:
            validate_credentials(data)
        except ValidationError as e:
            raise AuthError("Invalid credentials") from e
        user = authenticate(_store(), data["username"], data["password"])
        return jsonify({"token": _issue_token(user), **user.to_public_dict()})

    @app.route("/api/register", methods=["POST"])
    def api_register():
        """Create an operator account."""
        data = _json_body()
        validate_credentials(data)
        if len(data["password"]) < MIN_PASSWORD_LENGTH:
            raise ValueError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
            )
        user = User(data["username"].strip(), hash_password(data["password"]))
        _store().add_user(user)
        logger.info("Registered user %s", user.username)
        return jsonify(user.to_public_dict()), 201

    @app.route("/api/vehicles", methods=["GET"])
    @login_required
    def api_list_vehicles():
        """Raw vehicle records; clients evaluate maintenance status themselves."""
        status = _status_filter(request.args.get("status"))
        return jsonify([vehicle_to_dict(v) for v in _store().list_vehicles(status)])

    @app.route("/api/vehicles/<vehicle_id>", methods=["GET"])
    @login_required
    def api_get_vehicle(vehicle_id: str):
        return jsonify(vehicle_to_dict(_store().get_vehicle(vehicle_id)))

    @app.route("/api/vehicles", methods=["POST"])
    @login_required
    def api_create_vehicle():
        data = _json_body()
        validate_payload(data)
        vehicle = _store().create_vehicle(vehicle_from_payload(data))
        logger.info("%s created vehicle %s", g.user.username, vehicle.name)
        return jsonify(vehicle_to_dict(vehicle)), 201

    @app.route("/api/vehicles/<vehicle_id>", methods=["PUT"])
    @login_required
    def api_update_vehicle(vehicle_id: str):
        data = _json_body()
        validate_payload(data, partial=True)
        store = _store()
        vehicle = apply_payload(store.get_vehicle(vehicle_id), data)
        store.save_vehicle(vehicle)
        return jsonify(vehicle_to_dict(vehicle))

    @app.route("/api/vehicles/<vehicle_id>/oil-change", methods=["POST"])
    @login_required
    def api_oil_change(vehicle_id: str):
        """Record an oil change: reset the remaining km to a full interval."""
        store = _store()
        vehicle = store.get_vehicle(vehicle_id)
        vehicle.reset_oil_change()
        store.save_vehicle(vehicle)
        return jsonify(vehicle_to_dict(vehicle))

    @app.route("/api/vehicles/<vehicle_id>", methods=["DELETE"])
    @login_required
    @role_required(Role.GM, Role.SUPERVISOR)
    def api_delete_vehicle(vehicle_id: str):
        _store().delete_vehicle(vehicle_id)
        logger.info("%s deleted vehicle %s", g.user.username, vehicle_id)
        return "", 204

    @app.route("/api/init", methods=["POST"])
    def api_init():
        """Destructive re-seed: demo fleet plus a single GM account."""
        init_key = current_app.config.get("INIT_KEY")
        if not init_key:
            return _error("Not found", 404)
        supplied = request.headers.get("X-Init-Key", "")
        if not hmac.compare_digest(supplied.encode(), init_key.encode()):
            logger.warning("Rejected init request from %s", request.remote_addr)
            raise PermissionDenied("Invalid init key")
        data = _json_body()
        validate_credentials(data)
        admin = User(data["username"], hash_password(data["password"]), Role.GM)
        vehicles = demo_vehicles()
        _store().reset(vehicles, [admin])
        logger.warning("Store re-seeded with %d vehicles", len(vehicles))
        return jsonify({"vehicles": len(vehicles), "users": 1}), 201

    @app.route("/api/events")
    @login_required(allow_query=True)
    def api_events():
        """Server-sent events: one `vehicle-update` per (debounced) change."""
        sub = _relay().subscribe()
        heartbeat = current_app.config["SSE_HEARTBEAT_SECONDS"]

        def stream():
            try:
                yield "retry: 3000\n\n"
                while True:
                    event = sub.get(timeout=heartbeat)
                    if event is None:
                        yield ": heartbeat\n\n"
                    else:
                        yield format_sse(event)
            finally:
                sub.close()

        return Response(
            stream(),
            mimetype="text/event-stream",
            headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        )

    @app.route("/api/health")
    def api_health():
        relay = _relay()
        return jsonify(
            {
                "status": "ok",
                "relay": "attached" if relay.healthy else "detached",
                "subscribers": relay.subscriber_count,
            }
        )


# =============================================================================
# Dashboard pages
# =============================================================================


def register_page_routes(app: Flask) -> None:
    @app.route("/login", methods=["GET"])
    def login_page():
        return render_template("login.html")

    @app.route("/login", methods=["POST"])
    def login_submit():
        username = request.form.get("username", "")
        password = request.form.get("password", "")
        try:
            user = authenticate(_store(), username, password)
        except AuthError:
            flash("Invalid credentials", "error")
            return render_template("login.html", username=username), 401
        session["token"] = _issue_token(user)
        return redirect(url_for("index"))

    @app.route("/logout")
    def logout():
        session.pop("token", None)
        return redirect(url_for("login_page"))

    @app.route("/")
    @page_login_required
    def index():
        """Dashboard showing all vehicles with their maintenance status."""
        status_filter = request.args.get("status", "all").lower()
        try:
            status = _status_filter(status_filter)
        except ValueError:
            flash(f"Unknown status filter '{status_filter}'", "error")
            return redirect(url_for("index"))

        now = datetime.now()
        vehicles = []
        for vehicle in _store().list_vehicles(status):
            vehicles.append({"vehicle": vehicle, "due": vehicle.evaluate(now)})

        # Most urgent first
        vehicles.sort(key=lambda v: (v["due"].severity.value, v["vehicle"].name.lower()))

        return render_template(
            "index.html",
            vehicles=vehicles,
            user=g.user,
            now=now,
            status_filter=status_filter,
            statuses=list(VehicleStatus),
            Severity=Severity,
        )


def main():
    config = load_config()
    logging.basicConfig(
        level=config["LOG_LEVEL"],
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = create_app(config)
    # threaded: each EventSource connection holds a worker
    app.run(host="0.0.0.0", port=config["PORT"], threaded=True)


if __name__ == "__main__":
    main()
