from __future__ import annotations

import logging
import os
import threading
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable, Optional, Tuple

from google.oauth2.credentials import Credentials

from .auth import AuthError, forget_token, obtain_credentials
from .config import POLL_INTERVAL, ConfigError, Settings
from .gcal import AuthenticationExpired, ServiceError, build_service, fetch_upcoming
from .models import Meeting

CONNECTING = "connecting"
POLLING = "polling"


@dataclass(frozen=True)
class Snapshot:
    meetings: Tuple[Meeting, ...] = ()
    version: int = 0


class MeetingBoard:
    """Single-slot hand-off between the poller and the display.

    ``publish`` swaps in a new immutable snapshot in one assignment, so a
    reader always sees either the previous list or the new one.
    """

    def __init__(self):
        self._snapshot = Snapshot()

    def publish(self, meetings: Iterable[Meeting]) -> Snapshot:
        current = self._snapshot
        snapshot = Snapshot(
            meetings=tuple(meetings),
            version=current.version + 1,
        )
        self._snapshot = snapshot
        return snapshot

    def latest(self) -> Snapshot:
        return self._snapshot


def _exit_process(exc: Exception) -> None:
    os._exit(1)


class Poller:
    def __init__(
        self,
        settings: Settings,
        board: MeetingBoard,
        credentials: Credentials,
        interval: float = POLL_INTERVAL,
        sleep: Callable[[float], None] = time.sleep,
        on_fatal: Callable[[Exception], None] = _exit_process,
    ):
        self.settings = settings
        self.board = board
        self.credentials = credentials
        self.interval = interval
        self.sleep = sleep
        self.on_fatal = on_fatal
        self.service = None
        self.state = CONNECTING

    def connect(self) -> None:
        self.state = CONNECTING
        self.service = build_service(self.credentials)
        self.state = POLLING
        logging.info("Calendar service ready")

    def reauthorize(self) -> None:
        logging.warning("Calendar credentials expired, re-running authorization")
        forget_token(self.settings)
        self.credentials = obtain_credentials(self.settings)
        self.connect()

    def poll_once(self, now: Optional[datetime] = None) -> Optional[Tuple[Meeting, ...]]:
        now = now or datetime.now(self.settings.timezone)
        try:
            meetings = fetch_upcoming(self.service, now, self.settings.calendar_id)
        except AuthenticationExpired as exc:
            logging.warning("Authentication failure while polling: %s", exc)
            self.reauthorize()
            return None
        snapshot = self.board.publish(meetings)
        logging.info("Found %d upcoming meetings", len(snapshot.meetings))
        return snapshot.meetings

    def run_forever(self) -> None:
        if self.service is None:
            self.connect()
        while True:
            self.poll_once()
            self.sleep(self.interval)

    def _run(self) -> None:
        try:
            self.run_forever()
        except (AuthError, ConfigError, ServiceError) as exc:
            logging.error("Polling stopped: %s", exc)
            self.on_fatal(exc)

    def start(self) -> threading.Thread:
        thread = threading.Thread(target=self._run, name="meetbar-poller", daemon=True)
        thread.start()
        return thread
