from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from google.oauth2.credentials import Credentials

from meetbar.config import SCOPES, Settings

UTC = timezone.utc


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    secrets = tmp_path / "credentials.json"
    secrets.write_text(json.dumps({"client_id": "client-id", "client_secret": "client-secret"}))
    return Settings(
        data_dir=tmp_path,
        google_client_secrets=str(secrets),
        google_token_file=str(tmp_path / "token.json"),
        calendar_id="primary",
        timezone=UTC,
    )


def make_credentials(token: str = "access", expires_in: timedelta = timedelta(hours=1)) -> Credentials:
    expiry = datetime.now(UTC).replace(tzinfo=None) + expires_in
    return Credentials(
        token=token,
        refresh_token="refresh",
        token_uri="https://oauth2.googleapis.com/token",
        client_id="client-id",
        client_secret="client-secret",
        scopes=SCOPES,
        expiry=expiry,
    )


def make_event(summary: str, start: str, end: str, link: str | None = "https://meet.google.com/abc-defg-hij", **extra) -> dict:
    event = {
        "summary": summary,
        "start": {"dateTime": start},
        "end": {"dateTime": end},
    }
    if link:
        event["hangoutLink"] = link
    event.update(extra)
    return event
