from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from datetime import timedelta, tzinfo
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dateutil import tz
from dotenv import load_dotenv

load_dotenv()

APP_NAME = "go-to-meet"
APP_LABEL = "dev.trappi.go-to-meet"

SCOPES = ["https://www.googleapis.com/auth/calendar.readonly"]

POLL_INTERVAL = 30  # seconds
TICK_INTERVAL = 1  # seconds
MAX_RETRIES = 3
RETRY_DELAY = 5  # seconds
CALLBACK_PORT = 8080
CALLBACK_PATH = "/callback"
CALLBACK_TIMEOUT = 300  # seconds
IMMINENT_THRESHOLD = timedelta(minutes=2)


class ConfigError(Exception):
    pass


@dataclass
class Settings:
    data_dir: Path
    google_client_secrets: str
    google_token_file: str
    calendar_id: str
    timezone: tzinfo

    @property
    def redirect_uri(self) -> str:
        return f"http://localhost:{CALLBACK_PORT}{CALLBACK_PATH}"


def local_timezone() -> tzinfo:
    # follows the system zone across DST changes
    return tz.tzlocal()


def get_timezone() -> tzinfo:
    tz_name = os.getenv("TIMEZONE")
    if not tz_name:
        return local_timezone()
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        logging.warning("Invalid TIMEZONE %s, falling back to local time", tz_name)
        return local_timezone()


def default_data_dir() -> Path:
    return Path.home() / "Library" / "Application Support" / APP_NAME


def get_settings() -> Settings:
    data_dir = Path(os.getenv("MEETBAR_DATA_DIR") or default_data_dir()).expanduser()
    data_dir.mkdir(mode=0o700, parents=True, exist_ok=True)
    return Settings(
        data_dir=data_dir,
        google_client_secrets=os.getenv("MEETBAR_CLIENT_SECRETS", str(data_dir / "credentials.json")),
        google_token_file=os.getenv("MEETBAR_TOKEN_FILE", str(data_dir / "token.json")),
        calendar_id=os.getenv("CALENDAR_ID", "primary"),
        timezone=get_timezone(),
    )


def load_client_config(path: str) -> dict:
    """Read the OAuth client registration.

    Accepts the file downloaded from the Google Cloud console
    (``{"installed": {...}}`` or ``{"web": {...}}``) as well as a flat
    ``{"client_id": ..., "client_secret": ...}`` object, and always returns
    the ``installed`` shape expected by google-auth-oauthlib.
    """
    try:
        with open(path, encoding="utf-8") as fh:
            data = json.load(fh)
    except OSError as exc:
        raise ConfigError(f"Unable to read client secrets {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Client secrets {path} is not valid JSON: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError(f"Client secrets {path} must be a JSON object")

    client = data.get("installed") or data.get("web") or data
    client_id = client.get("client_id") if isinstance(client, dict) else None
    client_secret = client.get("client_secret") if isinstance(client, dict) else None
    if not client_id or not client_secret:
        raise ConfigError(f"Client secrets {path} is missing client_id or client_secret")

    return {
        "installed": {
            "client_id": client_id,
            "client_secret": client_secret,
            "auth_uri": client.get("auth_uri", "https://accounts.google.com/o/oauth2/auth"),
            "token_uri": client.get("token_uri", "https://oauth2.googleapis.com/token"),
        }
    }
