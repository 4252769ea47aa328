from __future__ import annotations

import logging
from datetime import datetime, tzinfo
from functools import partial
from typing import Iterable, Optional

import rumps

from .browser import open_link
from .config import APP_NAME, TICK_INTERVAL
from .display import ICONS, MenuEntry, render
from .poller import MeetingBoard


def _open_entry(link: str, _sender) -> None:
    logging.info("Opening meeting %s", link)
    open_link(link)


class MeetBarApp(rumps.App):
    """Menu-bar item that re-renders the latest published meetings every tick."""

    def __init__(self, board: MeetingBoard, tz: tzinfo):
        super().__init__(APP_NAME, title=ICONS["default"], quit_button=None)
        self.board = board
        self.tz = tz
        self._version: Optional[int] = None
        self._timer = rumps.Timer(self.refresh, TICK_INTERVAL)
        self._timer.start()

    def refresh(self, _sender=None) -> None:
        snapshot = self.board.latest()
        state = render(snapshot.meetings, datetime.now(self.tz))
        self.title = state.title
        if snapshot.version != self._version:
            self._version = snapshot.version
            self._rebuild_menu(state.items)

    def _rebuild_menu(self, entries: Iterable[MenuEntry]) -> None:
        items = []
        for entry in entries:
            callback = partial(_open_entry, entry.link) if entry.link else None
            items.append(rumps.MenuItem(entry.label, callback=callback))
        items.append(rumps.separator)
        items.append(rumps.MenuItem("Quit", callback=lambda _sender: rumps.quit_application()))
        self.menu.clear()
        self.menu.update(items)
