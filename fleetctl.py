#!/usr/bin/env python3
"""
Command-line client for fleet maintenance tracking.

Commands:
  login       - Log in and save the session
  logout      - Forget the saved session
  status      - Show vehicles with oil change and safety inspection status
  add         - Add a vehicle
  update      - Change a vehicle's details or status
  odometer    - Record a new odometer reading
  oil-change  - Record an oil change
  delete      - Delete a vehicle
  watch       - Re-print status whenever the fleet changes
  seed        - (local) Re-seed a data directory with the demo fleet
  add-user    - (local) Add a user to a data directory
"""

import argparse
import getpass
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from tabulate import tabulate

from fleet import FleetStore, Role, User, Vehicle, VehicleStatus
from fleet.client import FileTokenStore, FleetClient, FleetClientError
from fleet.seed import demo_vehicles

DEFAULT_URL = os.environ.get("FLEET_URL", "http://localhost:5001")
DEFAULT_SESSION_FILE = Path.home() / ".config" / "fleet" / "session.json"

# =============================================================================
# Formatting helpers
# =============================================================================


def format_km(km: Optional[float]) -> str:
    """Format kilometers for display."""
    return f"{km:,.0f}" if km is not None else "-"


def format_days(days: int) -> str:
    """Format remaining days (clamped at zero) for display."""
    return f"{max(days, 0)}d"


def format_severity(severity) -> str:
    return severity.name


def truncate(text: Optional[str], max_len: int = 30) -> str:
    """Truncate text with ellipsis if too long."""
    if not text:
        return "-"
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."


def make_status_table(
    vehicles: List[Vehicle], now: Optional[datetime] = None
) -> List[List[str]]:
    """Convert vehicles to table rows, evaluating maintenance status."""
    rows = []
    for vehicle in vehicles:
        due = vehicle.evaluate(now)
        status = vehicle.status.display_name
        if vehicle.display_reason:
            status += f" ({truncate(vehicle.display_reason, 20)})"
        rows.append(
            [
                vehicle.id[:8] if vehicle.id else "-",
                vehicle.name,
                status,
                format_km(vehicle.km),
                format_km(vehicle.oil_change_due),
                format_severity(due.oil_severity),
                vehicle.safety_due.isoformat(),
                format_days(due.remaining_days),
                format_severity(due.safety_severity),
                truncate(", ".join(vehicle.drivers)),
            ]
        )
    return rows


STATUS_HEADERS = [
    "Id",
    "Name",
    "Status",
    "KM",
    "Oil due (km)",
    "Oil",
    "Safety due",
    "Days",
    "Safety",
    "Drivers",
]


def resolve_vehicle_id(client: FleetClient, prefix: str) -> str:
    """Expand an id prefix (as printed by `status`) to the full id."""
    matches = [v.id for v in client.list_vehicles() if v.id.startswith(prefix)]
    if len(matches) != 1:
        raise FleetClientError(
            f"No vehicle matches '{prefix}'" if not matches else f"'{prefix}' is ambiguous"
        )
    return matches[0]


def _vehicle_fields(args) -> dict:
    """Collect the API fields set on the command line."""
    fields = {}
    if getattr(args, "name", None):
        fields["name"] = args.name
    if getattr(args, "km", None) is not None:
        fields["km"] = args.km
    if getattr(args, "oil_due", None) is not None:
        fields["oilChangeDue"] = args.oil_due
    if getattr(args, "safety_due", None):
        fields["safetyDue"] = args.safety_due
    if getattr(args, "status", None):
        fields["status"] = args.status
    if getattr(args, "reason", None) is not None:
        fields["statusReason"] = args.reason
    if getattr(args, "driver", None):
        fields["drivers"] = args.driver
    if getattr(args, "comment", None) is not None:
        fields["comment"] = args.comment
    return fields


# =============================================================================
# Remote commands
# =============================================================================


def cmd_login(client: FleetClient, args):
    password = args.password or getpass.getpass("Password: ")
    session = client.login(args.username, password)
    print(f"Logged in as {session.username} ({session.role})")
    return 0


def cmd_logout(client: FleetClient, args):
    client.logout()
    print("Logged out.")
    return 0


def print_status(client: FleetClient, args) -> None:
    status = VehicleStatus.parse(args.status) if args.status else None
    vehicles = client.list_vehicles(status)
    now = datetime.now()
    if args.due_only:
        vehicles = [v for v in vehicles if v.evaluate(now).is_due]
    vehicles.sort(key=lambda v: (v.evaluate(now).severity.value, v.name.lower()))

    print(f"Fleet: {client.session.base_url} (as of {now:%Y-%m-%d %H:%M})")
    print(f"Vehicles: {len(vehicles)}")
    print()
    if not vehicles:
        print("No vehicles found.")
        return
    print(tabulate(make_status_table(vehicles, now), headers=STATUS_HEADERS, tablefmt="simple"))


def cmd_status(client: FleetClient, args):
    """Show vehicles with oil change and safety inspection status."""
    print_status(client, args)
    return 0


def cmd_add(client: FleetClient, args):
    vehicle = client.create_vehicle(_vehicle_fields(args))
    print(f"Added {vehicle.name} ({vehicle.id})")
    print(f"  Oil change due in: {format_km(vehicle.oil_change_due)} km")
    print(f"  Safety due:        {vehicle.safety_due.isoformat()}")
    return 0


def cmd_update(client: FleetClient, args):
    fields = _vehicle_fields(args)
    if not fields:
        print("Error: nothing to update")
        return 1
    vehicle = client.update_vehicle(resolve_vehicle_id(client, args.vehicle_id), fields)
    print(f"Updated {vehicle.name}")
    return 0


def cmd_odometer(client: FleetClient, args):
    """Record a new odometer reading."""
    vehicle_id = resolve_vehicle_id(client, args.vehicle_id)
    vehicle = client.get_vehicle(vehicle_id)
    driven = args.km - vehicle.km

    print(f"Vehicle: {vehicle.name}")
    print(f"Current KM: {format_km(vehicle.km)}")
    print(f"New KM:     {format_km(args.km)}")
    if driven >= 0:
        print(f"Oil change due in: {format_km(vehicle.oil_change_due - driven)} km")
    print()

    if args.dry_run:
        print("(dry run - no changes made)")
        return 0

    client.update_vehicle(vehicle_id, {"km": args.km})
    print("Odometer updated.")
    return 0


def cmd_oil_change(client: FleetClient, args):
    vehicle = client.record_oil_change(resolve_vehicle_id(client, args.vehicle_id))
    print(f"Oil change recorded for {vehicle.name}; next due in {format_km(vehicle.oil_change_due)} km")
    return 0


def cmd_delete(client: FleetClient, args):
    client.delete_vehicle(resolve_vehicle_id(client, args.vehicle_id))
    print("Vehicle deleted.")
    return 0


def cmd_watch(client: FleetClient, args):
    """Print status, then again on every vehicle-update."""
    print_status(client, args)
    for event in client.events():
        if event == "vehicle-update":
            print()
            print_status(client, args)
    print("Event stream closed.")
    return 0


# =============================================================================
# Local admin commands
# =============================================================================


def cmd_seed(args):
    """Replace all vehicles and users in a data directory."""
    # Imported here so remote commands don't need the server stack
    from web.auth import hash_password

    password = args.password or getpass.getpass(f"Password for {args.username}: ")
    store = FleetStore(args.data_dir)
    vehicles = demo_vehicles()
    store.reset(vehicles, [User(args.username, hash_password(password), Role.GM)])
    print(f"Seeded {len(vehicles)} vehicles and user {args.username} in {args.data_dir}")
    return 0


def cmd_add_user(args):
    from web.auth import hash_password

    password = args.password or getpass.getpass("Password: ")
    store = FleetStore(args.data_dir)
    store.add_user(User(args.username, hash_password(password), Role(args.role)))
    print(f"Added user {args.username} ({args.role})")
    return 0


# =============================================================================
# Main
# =============================================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Fleet maintenance tracker",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s login gm
  %(prog)s status --due-only
  %(prog)s add "Bus 104" --km 12000 --driver Chen --driver Okafor
  %(prog)s odometer 3f2a1c 12850
  %(prog)s update 3f2a1c --status in-shop --reason "Brake pads"
  %(prog)s oil-change 3f2a1c
  %(prog)s watch
  %(prog)s seed --data-dir data --username gm
""",
    )
    parser.add_argument("--url", default=DEFAULT_URL, help="Server URL")
    parser.add_argument(
        "--session-file",
        type=Path,
        default=DEFAULT_SESSION_FILE,
        help="Where the login session is saved",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    login_parser = subparsers.add_parser("login", help="Log in and save the session")
    login_parser.add_argument("username")
    login_parser.add_argument("--password", help="Password (prompted if omitted)")

    subparsers.add_parser("logout", help="Forget the saved session")

    for name, help_text in (
        ("status", "Show vehicle maintenance status"),
        ("watch", "Re-print status whenever the fleet changes"),
    ):
        p = subparsers.add_parser(name, help=help_text)
        p.add_argument(
            "--status",
            choices=[s.value for s in VehicleStatus],
            help="Only vehicles with this status",
        )
        p.add_argument(
            "--due-only",
            action="store_true",
            help="Only vehicles with a warning or danger severity",
        )

    add_parser = subparsers.add_parser("add", help="Add a vehicle")
    add_parser.add_argument("name")
    update_parser = subparsers.add_parser("update", help="Change a vehicle")
    update_parser.add_argument("vehicle_id", help="Vehicle id or prefix")
    update_parser.add_argument("--name")
    for p in (add_parser, update_parser):
        p.add_argument("--km", type=float, help="Odometer reading")
        p.add_argument("--oil-due", type=float, help="Km remaining until the next oil change")
        p.add_argument("--safety-due", help="Next safety inspection (YYYY-MM-DD)")
        p.add_argument("--status", choices=[s.value for s in VehicleStatus])
        p.add_argument("--reason", help="Why the vehicle is off the road")
        p.add_argument("--driver", action="append", help="Assigned driver (repeatable)")
        p.add_argument("--comment")

    odometer_parser = subparsers.add_parser("odometer", help="Record an odometer reading")
    odometer_parser.add_argument("vehicle_id", help="Vehicle id or prefix")
    odometer_parser.add_argument("km", type=float, help="Odometer reading")
    odometer_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be updated without saving",
    )

    oil_parser = subparsers.add_parser("oil-change", help="Record an oil change")
    oil_parser.add_argument("vehicle_id", help="Vehicle id or prefix")

    delete_parser = subparsers.add_parser("delete", help="Delete a vehicle")
    delete_parser.add_argument("vehicle_id", help="Vehicle id or prefix")

    seed_parser = subparsers.add_parser("seed", help="(local) Re-seed a data directory")
    seed_parser.add_argument("--username", required=True, help="GM account to create")
    add_user_parser = subparsers.add_parser("add-user", help="(local) Add a user")
    add_user_parser.add_argument("username")
    add_user_parser.add_argument(
        "--role", choices=[r.value for r in Role], default=Role.OPERATOR.value
    )
    for p in (seed_parser, add_user_parser):
        p.add_argument("--data-dir", type=Path, default=Path("data"))
        p.add_argument("--password", help="Password (prompted if omitted)")

    return parser


LOCAL_COMMANDS = {"seed": cmd_seed, "add-user": cmd_add_user}

REMOTE_COMMANDS = {
    "login": cmd_login,
    "logout": cmd_logout,
    "status": cmd_status,
    "add": cmd_add,
    "update": cmd_update,
    "odometer": cmd_odometer,
    "oil-change": cmd_oil_change,
    "delete": cmd_delete,
    "watch": cmd_watch,
}


def main(argv=None):
    args = build_parser().parse_args(argv)

    if args.command in LOCAL_COMMANDS:
        try:
            return LOCAL_COMMANDS[args.command](args)
        except ValueError as e:
            print(f"Error: {e}")
            return 1

    client = FleetClient.restore(args.url, FileTokenStore(args.session_file))
    if args.command not in ("login", "logout") and not client.session.authenticated:
        print(f"Error: not logged in to {args.url} (run: login USERNAME)")
        return 1

    try:
        return REMOTE_COMMANDS[args.command](client, args)
    except FleetClientError as e:
        print(f"Error: {e}")
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main() or 0)
