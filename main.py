from __future__ import annotations

import logging

from meetbar.auth import AuthError, obtain_credentials
from meetbar.config import ConfigError, get_settings
from meetbar.gcal import ServiceError
from meetbar.poller import MeetingBoard, Poller


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")

    try:
        settings = get_settings()
        credentials = obtain_credentials(settings)
        board = MeetingBoard()
        poller = Poller(settings, board, credentials)
        poller.connect()
    except (ConfigError, AuthError, ServiceError) as exc:
        logging.error("Startup failed: %s", exc)
        return 1

    # macOS only
    from meetbar.app import MeetBarApp

    poller.start()
    MeetBarApp(board, settings.timezone).run()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
