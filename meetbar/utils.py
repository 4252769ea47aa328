from __future__ import annotations

from datetime import datetime, time, tzinfo
from typing import Optional


def parse_event_time(value: dict, tz: tzinfo) -> datetime:
    """Parse a Google ``start``/``end`` object into an aware datetime in ``tz``.

    Only ``dateTime`` values are accepted; all-day events (``date``) raise
    ``ValueError`` like any other malformed value.
    """
    raw = value.get("dateTime") if isinstance(value, dict) else None
    if not raw:
        raise ValueError(f"Missing dateTime in {value!r}")
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    parsed = datetime.fromisoformat(raw)
    if parsed.tzinfo is None:
        raise ValueError(f"dateTime {raw!r} has no UTC offset")
    return parsed.astimezone(tz)


def end_of_day(now: datetime) -> datetime:
    return datetime.combine(now.date(), time.max, tzinfo=now.tzinfo)


def extract_meet_link(event: dict) -> Optional[str]:
    link = event.get("hangoutLink")
    if link:
        return link
    conference = event.get("conferenceData") or {}
    for entry in conference.get("entryPoints", []):
        if entry.get("entryPointType") == "video" and entry.get("uri"):
            return entry["uri"]
    return None


def is_declined(event: dict) -> bool:
    for attendee in event.get("attendees", []):
        if attendee.get("self") and attendee.get("responseStatus") == "declined":
            return True
    return False
