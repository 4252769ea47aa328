from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import List, Optional

from google.auth.exceptions import RefreshError, TransportError
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from httplib2 import HttpLib2Error

from .config import MAX_RETRIES, RETRY_DELAY
from .models import Meeting
from .utils import end_of_day, extract_meet_link, is_declined, parse_event_time


class ServiceError(Exception):
    pass


class AuthenticationExpired(Exception):
    """The calendar rejected the credentials and they cannot be refreshed."""


def build_service(creds: Credentials, retries: int = MAX_RETRIES, delay: float = RETRY_DELAY):
    last_exc: Optional[Exception] = None
    for attempt in range(1, retries + 1):
        try:
            return build("calendar", "v3", credentials=creds, cache_discovery=False)
        except (HttpError, HttpLib2Error, TransportError, OSError) as exc:
            last_exc = exc
            logging.warning("Attempt %d: Failed to create calendar service: %s", attempt, exc)
            if attempt < retries:
                time.sleep(delay)
    raise ServiceError(f"Failed to create calendar service after {retries} attempts: {last_exc}")


def _list_events(service, calendar_id: str, time_min: datetime, time_max: datetime) -> List[dict]:
    items: List[dict] = []
    page_token = None
    while True:
        events_result = (
            service.events()
            .list(
                calendarId=calendar_id,
                timeMin=time_min.isoformat(),
                timeMax=time_max.isoformat(),
                singleEvents=True,
                orderBy="startTime",
                pageToken=page_token,
            )
            .execute()
        )
        items.extend(events_result.get("items", []))
        page_token = events_result.get("nextPageToken")
        if not page_token:
            return items


def fetch_upcoming(service, now: datetime, calendar_id: str = "primary") -> List[Meeting]:
    """Return today's remaining video meetings, sorted by start time.

    ``now`` must be timezone-aware; its zone defines the end of the day and
    the zone the returned timestamps are expressed in. Provider failures
    yield an empty list, except authentication failures which raise
    :class:`AuthenticationExpired`.
    """
    try:
        items = _list_events(service, calendar_id, now, end_of_day(now))
    except RefreshError as exc:
        raise AuthenticationExpired(str(exc)) from exc
    except HttpError as exc:
        if exc.resp.status == 401:
            raise AuthenticationExpired(str(exc)) from exc
        logging.error("Failed to retrieve events: %s", exc)
        return []
    except (HttpLib2Error, TransportError, OSError) as exc:
        logging.error("Failed to retrieve events: %s", exc)
        return []
    except Exception:
        logging.exception("Failed to retrieve events")
        return []

    meetings: List[Meeting] = []
    for event in items:
        link = extract_meet_link(event)
        if not link or is_declined(event):
            continue
        summary = event.get("summary", "")
        try:
            start = parse_event_time(event.get("start"), now.tzinfo)
            end = parse_event_time(event.get("end"), now.tzinfo)
        except ValueError as exc:
            logging.warning("Error parsing time for event %s: %s", summary, exc)
            continue
        meetings.append(Meeting(summary=summary, start=start, end=end, meet_link=link))

    meetings.sort(key=lambda m: m.start)
    return meetings
