from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence, Tuple

from .config import IMMINENT_THRESHOLD
from .models import Meeting

ICONS = {
    "empty": "🧘",
    "default": "📅",
    "soon": "⏰",
    "now": "🗣️",
}

NO_MEETINGS = "No upcoming meetings"


@dataclass(frozen=True)
class MenuEntry:
    label: str
    link: Optional[str] = None


@dataclass(frozen=True)
class MenuState:
    title: str
    items: Tuple[MenuEntry, ...]


def select_highlight(meetings: Sequence[Meeting], now: datetime) -> Optional[Meeting]:
    """Pick the meeting shown in the menu bar.

    A meeting in progress wins; otherwise the one starting soonest. Past
    meetings are never highlighted.
    """
    upcoming: Optional[Meeting] = None
    for meeting in meetings:
        if meeting.in_progress(now):
            return meeting
        if meeting.start > now and (upcoming is None or meeting.start < upcoming.start):
            upcoming = meeting
    return upcoming


def icon_for(meeting: Meeting, now: datetime) -> str:
    time_until = meeting.start - now
    if time_until <= timedelta(0):
        return ICONS["now"]
    if time_until < IMMINENT_THRESHOLD:
        return ICONS["soon"]
    return ICONS["default"]


def format_duration(delta: timedelta) -> str:
    if delta < timedelta(0):
        return "0m"
    total_minutes = int(delta.total_seconds() // 60)
    hours, minutes = divmod(total_minutes, 60)
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def format_countdown(meeting: Meeting, now: datetime) -> str:
    if meeting.start <= now:
        return f"{format_duration(meeting.end - now)} left"
    return f"in {format_duration(meeting.start - now)}"


def menu_label(meeting: Meeting) -> str:
    return f"{meeting.summary} ({meeting.start:%H:%M} - {meeting.end:%H:%M})"


def unique_labels(meetings: Sequence[Meeting]) -> List[str]:
    """Menu labels, numbered when several meetings would share one."""
    counts: Dict[str, int] = {}
    labels: List[str] = []
    for meeting in meetings:
        label = menu_label(meeting)
        counts[label] = counts.get(label, 0) + 1
        if counts[label] > 1:
            label = f"{label} #{counts[label]}"
        labels.append(label)
    return labels


def render(meetings: Sequence[Meeting], now: datetime) -> MenuState:
    if not meetings:
        return MenuState(title=ICONS["empty"], items=(MenuEntry(NO_MEETINGS),))

    items = tuple(MenuEntry(label, m.meet_link) for label, m in zip(unique_labels(meetings), meetings))
    highlight = select_highlight(meetings, now)
    if highlight is None:
        return MenuState(title=ICONS["empty"], items=items)

    title = f"{icon_for(highlight, now)} {format_countdown(highlight, now)}"
    return MenuState(title=title, items=items)
