from __future__ import annotations

import logging
import os
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional
from urllib.parse import parse_qs
from wsgiref.simple_server import WSGIRequestHandler, WSGIServer, make_server

from google.auth.exceptions import RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from oauthlib.oauth2.rfc6749.errors import OAuth2Error
from requests.exceptions import RequestException

from .browser import open_link
from .config import CALLBACK_PATH, CALLBACK_PORT, CALLBACK_TIMEOUT, SCOPES, Settings, load_client_config

SUCCESS_PAGE = b"""<!DOCTYPE html>
<html><head><meta charset="utf-8"><title>go-to-meet</title></head>
<body><p>Authorization successful! You can close this window.</p></body></html>
"""


class AuthError(Exception):
    pass


class _QuietHandler(WSGIRequestHandler):
    def log_message(self, format, *args):
        logging.debug("Callback listener: " + format, *args)


class CallbackApp:
    """WSGI app accepting exactly one request on ``path``."""

    def __init__(self, path: str):
        self.path = path
        self.params: Optional[dict[str, str]] = None

    def __call__(self, environ, start_response):
        if environ.get("PATH_INFO") != self.path or self.params is not None:
            start_response("404 Not Found", [("Content-Type", "text/plain; charset=utf-8")])
            return [b"Not found"]
        query = parse_qs(environ.get("QUERY_STRING", ""))
        self.params = {key: values[0] for key, values in query.items()}
        start_response("200 OK", [("Content-Type", "text/html; charset=utf-8")])
        return [SUCCESS_PAGE]


class CallbackListener:
    def __init__(self, server: WSGIServer, app: CallbackApp, timeout: float):
        self.server = server
        self.app = app
        self.timeout = timeout

    def wait_for_code(self) -> dict[str, str]:
        """Serve requests until the callback arrives; returns its query parameters."""
        deadline = time.monotonic() + self.timeout
        while self.app.params is None:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise AuthError(f"No authorization callback received within {self.timeout:.0f}s")
            self.server.timeout = remaining
            self.server.handle_request()

        params = self.app.params
        if "error" in params:
            raise AuthError(f"Authorization denied: {params['error']}")
        if not params.get("code"):
            raise AuthError("Authorization callback did not include a code")
        return params


@contextmanager
def callback_listener(
    port: int = CALLBACK_PORT, path: str = CALLBACK_PATH, timeout: float = CALLBACK_TIMEOUT
) -> Iterator[CallbackListener]:
    """Serve the OAuth redirect on a fixed path for at most ``timeout`` seconds.

    ``InstalledAppFlow.run_local_server`` only serves the root path and does not
    report a timeout as an error, so the listener is kept here.
    """
    app = CallbackApp(path)
    try:
        server = make_server("localhost", port, app, handler_class=_QuietHandler)
    except OSError as exc:
        raise AuthError(f"Unable to listen on localhost:{port}: {exc}") from exc
    logging.info("Waiting for authorization callback on http://localhost:%d%s", port, path)
    try:
        yield CallbackListener(server, app, timeout)
    finally:
        server.server_close()


def load_credentials(token_file: str) -> Optional[Credentials]:
    if not os.path.exists(token_file):
        return None
    try:
        return Credentials.from_authorized_user_file(token_file, SCOPES)
    except (OSError, ValueError) as exc:
        logging.warning("Ignoring unreadable token file %s: %s", token_file, exc)
        return None


def save_credentials(creds: Credentials, token_file: str) -> None:
    path = Path(token_file)
    path.write_text(creds.to_json(), encoding="utf-8")
    path.chmod(0o600)


def forget_token(settings: Settings) -> None:
    try:
        os.remove(settings.google_token_file)
    except FileNotFoundError:
        pass


def run_authorization_flow(client_config: dict, settings: Settings) -> Credentials:
    flow = InstalledAppFlow.from_client_config(client_config, SCOPES, redirect_uri=settings.redirect_uri)
    auth_url, state = flow.authorization_url(access_type="offline", prompt="consent")

    with callback_listener() as listener:
        logging.info("Visit this URL to authorize the application: %s", auth_url)
        open_link(auth_url)
        params = listener.wait_for_code()

    if params.get("state") != state:
        raise AuthError("Authorization callback state does not match the request")
    try:
        flow.fetch_token(code=params["code"])
    except (OAuth2Error, RequestException) as exc:
        raise AuthError(f"Unable to exchange authorization code: {exc}") from exc
    return flow.credentials


def ensure_valid(creds: Credentials, token_file: str) -> bool:
    if creds.valid:
        return True
    if creds.expired and creds.refresh_token:
        try:
            creds.refresh(Request())
        except RefreshError as exc:
            logging.warning("Token refresh failed: %s", exc)
            return False
        save_credentials(creds, token_file)
        return True
    return False


def obtain_credentials(settings: Settings) -> Credentials:
    """Return usable credentials, running the browser flow when needed.

    A persisted token is reused (and refreshed) when possible. Otherwise the
    interactive flow runs; if the resulting token still cannot mint an access
    token the flow is repeated once.
    """
    client_config = load_client_config(settings.google_client_secrets)

    creds = load_credentials(settings.google_token_file)
    if creds is None:
        creds = run_authorization_flow(client_config, settings)
        save_credentials(creds, settings.google_token_file)

    if not ensure_valid(creds, settings.google_token_file):
        logging.info("Stored token is invalid or cannot be refreshed, getting new token...")
        creds = run_authorization_flow(client_config, settings)
        save_credentials(creds, settings.google_token_file)
        if not ensure_valid(creds, settings.google_token_file):
            raise AuthError("Authorization did not produce a usable token")

    return creds
