"""Runtime configuration read from the environment (and an optional .env file)."""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

DEFAULT_DB_PATH = Path.home() / ".local" / "share" / "plantenergy" / "plantenergy.db"
DEFAULT_SITE_CONFIG = Path(__file__).parent.parent.parent / "config" / "site.yaml"
DEFAULT_LOG_LEVEL = "WARNING"


def get_db_path() -> Path:
    """Get the database path, creating parent directories if needed."""
    db_path = Path(os.environ.get("PLANTENERGY_DB_PATH") or DEFAULT_DB_PATH)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return db_path


def get_site_config_path() -> Path:
    """Get the path of the YAML file describing suppliers and plants."""
    return Path(os.environ.get("PLANTENERGY_SITE_CONFIG") or DEFAULT_SITE_CONFIG)


def get_log_level() -> int:
    """Get the log level name from PLANTENERGY_LOG_LEVEL (default: WARNING)."""
    name = os.environ.get("PLANTENERGY_LOG_LEVEL", DEFAULT_LOG_LEVEL).upper()
    level = logging.getLevelName(name)
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level in PLANTENERGY_LOG_LEVEL: {name}")
    return level


def get_gateway_url() -> str:
    """Get the telemetry gateway base URL from environment."""
    url = os.environ.get("PLANTENERGY_GATEWAY_URL")
    if not url:
        raise ValueError(
            "PLANTENERGY_GATEWAY_URL environment variable not set.\n"
            "Set it with: export PLANTENERGY_GATEWAY_URL='http://gateway.local:8080'"
        )
    return url.rstrip("/")


def get_gateway_token() -> str | None:
    """Get the optional bearer token for the telemetry gateway."""
    return os.environ.get("PLANTENERGY_GATEWAY_TOKEN")
