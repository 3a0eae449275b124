"""Environment configuration."""

import logging
import os
from typing import Any, Dict, Mapping, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEV_SECRET_KEY = "dev-secret-key-change-in-prod"


def load_config(overrides: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    """
    Build the app config from the environment (and a .env file, if present).

    Values in `overrides` win over the environment.
    """
    load_dotenv()
    config: Dict[str, Any] = {
        "FLEET_DATA_DIR": os.environ.get("FLEET_DATA_DIR", "data"),
        "SECRET_KEY": os.environ.get("SECRET_KEY", DEV_SECRET_KEY),
        "PORT": int(os.environ.get("PORT", "5001")),
        "INIT_KEY": os.environ.get("INIT_KEY") or None,
        "TOKEN_EXPIRE_MINUTES": int(os.environ.get("TOKEN_EXPIRE_MINUTES", "60")),
        "RELAY_DEBOUNCE_SECONDS": float(os.environ.get("RELAY_DEBOUNCE_SECONDS", "0.25")),
        "SSE_HEARTBEAT_SECONDS": float(os.environ.get("SSE_HEARTBEAT_SECONDS", "15")),
        "LOG_LEVEL": os.environ.get("LOG_LEVEL", "INFO"),
        # Pick up writes from other processes (e.g. fleetctl seed)
        "WATCH_DATA_DIR": os.environ.get("WATCH_DATA_DIR", "1").lower()
        not in ("0", "false", "no"),
    }
    if overrides:
        config.update(overrides)
    if config["SECRET_KEY"] == DEV_SECRET_KEY:
        logger.warning("SECRET_KEY not set; using the development key")
    return config
