"""JSON-Schema validation for vehicle documents and API payloads."""

import copy
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError, validate

SCHEMA_PATH = Path(__file__).parent / "schema.yaml"

__all__ = [
    "ValidationError",
    "validate_document",
    "validate_payload",
    "validate_credentials",
]


@lru_cache(maxsize=None)
def _schema() -> dict:
    with open(SCHEMA_PATH) as f:
        return yaml.safe_load(f)


def validate_document(data: Any) -> None:
    """Validate a stored vehicle document. Raises ValidationError."""
    validate(instance=data, schema=_schema())


def validate_payload(data: Any, partial: bool = False) -> None:
    """
    Validate a create/update payload. Raises ValidationError.

    Create requires a name; partial updates require nothing.
    """
    schema = copy.deepcopy(_schema()["definitions"]["payload"])
    if not partial:
        schema["required"] = ["name"]
    validate(instance=data, schema=schema)


def validate_credentials(data: Any) -> None:
    """Validate a {username, password} body. Raises ValidationError."""
    validate(instance=data, schema=_schema()["definitions"]["credentials"])
