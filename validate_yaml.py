#!/usr/bin/env python3
"""Validate stored vehicle documents against the schema."""
import sys
from pathlib import Path

import yaml
from jsonschema import ValidationError

from fleet.validation import validate_document


def validate_vehicle_file(filepath: Path) -> list[str]:
    """Validate a single vehicle YAML document. Returns list of errors."""
    errors = []
    try:
        with open(filepath) as f:
            data = yaml.safe_load(f)
        validate_document(data)
        if data.get("id") != filepath.stem:
            errors.append(f"Document id {data.get('id')!r} does not match file name")
    except yaml.YAMLError as e:
        errors.append(f"YAML parse error: {e}")
    except ValidationError as e:
        errors.append(f"Schema validation error: {e.message}")
        if e.path:
            errors.append(f"  at path: {'.'.join(str(p) for p in e.path)}")
    except OSError as e:
        errors.append(f"Error: {e}")
    return errors


def main(argv=None):
    """Validate all vehicle documents under DATA_DIR/vehicles (default: data)."""
    argv = sys.argv[1:] if argv is None else argv
    data_dir = Path(argv[0]) if argv else Path("data")
    vehicles_dir = data_dir / "vehicles"

    if not vehicles_dir.exists():
        print(f"Error: vehicles directory not found: {vehicles_dir}")
        return 1

    yaml_files = sorted(vehicles_dir.glob("*.yaml"))

    if not yaml_files:
        print(f"Warning: No YAML files found in {vehicles_dir}")
        return 0

    all_valid = True
    for filepath in yaml_files:
        errors = validate_vehicle_file(filepath)
        if errors:
            print(f"FAIL: {filepath.name}")
            for error in errors:
                print(f"  {error}")
            all_valid = False
        else:
            print(f"OK: {filepath.name}")

    return 0 if all_valid else 1


if __name__ == "__main__":
    sys.exit(main())
