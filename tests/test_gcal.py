from __future__ import annotations

from datetime import datetime, timezone
from http.client import IncompleteRead
from unittest.mock import MagicMock

import httplib2
import pytest
from google.auth.exceptions import RefreshError
from googleapiclient.errors import HttpError

from conftest import make_event
from meetbar import gcal
from meetbar.gcal import AuthenticationExpired, ServiceError, build_service, fetch_upcoming

NOW = datetime(2026, 10, 18, 9, 0, tzinfo=timezone.utc)


def fake_service(*pages: dict) -> MagicMock:
    service = MagicMock()
    service.events.return_value.list.return_value.execute.side_effect = list(pages)
    return service


def http_error(status: int) -> HttpError:
    return HttpError(resp=httplib2.Response({"status": status}), content=b"")


class TestFetchUpcoming:
    def test_queries_primary_calendar_until_end_of_day(self):
        service = fake_service({"items": []})

        fetch_upcoming(service, NOW)

        kwargs = service.events.return_value.list.call_args.kwargs
        assert kwargs["calendarId"] == "primary"
        assert kwargs["timeMin"] == "2026-10-18T09:00:00+00:00"
        assert kwargs["timeMax"].startswith("2026-10-18T23:59:59")
        assert kwargs["singleEvents"] is True
        assert kwargs["orderBy"] == "startTime"

    def test_output_sorted_by_start(self):
        service = fake_service(
            {
                "items": [
                    make_event("Late", "2026-10-18T15:00:00Z", "2026-10-18T15:30:00Z"),
                    make_event("Early", "2026-10-18T10:00:00Z", "2026-10-18T10:30:00Z"),
                    make_event("Middle", "2026-10-18T13:00:00+02:00", "2026-10-18T13:30:00+02:00"),
                ]
            }
        )

        meetings = fetch_upcoming(service, NOW)

        assert [m.summary for m in meetings] == ["Early", "Middle", "Late"]
        assert all(m.start.tzinfo == timezone.utc for m in meetings)

    def test_events_without_video_link_are_dropped(self):
        service = fake_service(
            {
                "items": [
                    make_event("Lunch", "2026-10-18T12:00:00Z", "2026-10-18T13:00:00Z", link=None),
                    make_event("Standup", "2026-10-18T10:00:00Z", "2026-10-18T10:15:00Z"),
                ]
            }
        )

        meetings = fetch_upcoming(service, NOW)

        assert [m.summary for m in meetings] == ["Standup"]

    def test_conference_entry_point_is_used_as_link(self):
        event = make_event(
            "Zoom",
            "2026-10-18T10:00:00Z",
            "2026-10-18T10:30:00Z",
            link=None,
            conferenceData={
                "entryPoints": [
                    {"entryPointType": "phone", "uri": "tel:+1-555"},
                    {"entryPointType": "video", "uri": "https://zoom.us/j/123"},
                ]
            },
        )
        meetings = fetch_upcoming(fake_service({"items": [event]}), NOW)

        assert meetings[0].meet_link == "https://zoom.us/j/123"

    def test_declined_events_are_dropped(self):
        declined = make_event(
            "Declined",
            "2026-10-18T10:00:00Z",
            "2026-10-18T10:30:00Z",
            attendees=[
                {"email": "me@example.com", "self": True, "responseStatus": "declined"},
                {"email": "other@example.com", "responseStatus": "accepted"},
            ],
        )
        other_declined = make_event(
            "Someone else declined",
            "2026-10-18T11:00:00Z",
            "2026-10-18T11:30:00Z",
            attendees=[
                {"email": "me@example.com", "self": True, "responseStatus": "accepted"},
                {"email": "other@example.com", "responseStatus": "declined"},
            ],
        )

        meetings = fetch_upcoming(fake_service({"items": [declined, other_declined]}), NOW)

        assert [m.summary for m in meetings] == ["Someone else declined"]

    def test_malformed_start_skips_only_that_event(self):
        service = fake_service(
            {
                "items": [
                    make_event("Broken", "not-a-time", "2026-10-18T10:30:00Z"),
                    make_event("Fine", "2026-10-18T11:00:00Z", "2026-10-18T11:30:00Z"),
                    {"summary": "All day", "start": {"date": "2026-10-18"}, "end": {"date": "2026-10-19"},
                     "hangoutLink": "https://meet.google.com/x"},
                ]
            }
        )

        meetings = fetch_upcoming(service, NOW)

        assert [m.summary for m in meetings] == ["Fine"]

    def test_follows_pagination(self):
        service = fake_service(
            {"items": [make_event("One", "2026-10-18T10:00:00Z", "2026-10-18T10:30:00Z")], "nextPageToken": "p2"},
            {"items": [make_event("Two", "2026-10-18T11:00:00Z", "2026-10-18T11:30:00Z")]},
        )

        meetings = fetch_upcoming(service, NOW)

        assert [m.summary for m in meetings] == ["One", "Two"]
        assert service.events.return_value.list.call_args.kwargs["pageToken"] == "p2"

    def test_provider_error_yields_empty_list(self):
        service = MagicMock()
        service.events.return_value.list.return_value.execute.side_effect = http_error(503)

        assert fetch_upcoming(service, NOW) == []

    def test_transport_error_yields_empty_list(self):
        service = MagicMock()
        service.events.return_value.list.return_value.execute.side_effect = TimeoutError("timed out")

        assert fetch_upcoming(service, NOW) == []

    @pytest.mark.parametrize("error", [http_error(401), RefreshError("invalid_grant")])
    def test_authentication_failures_raise(self, error):
        service = MagicMock()
        service.events.return_value.list.return_value.execute.side_effect = error

        with pytest.raises(AuthenticationExpired):
            fetch_upcoming(service, NOW)


class TestBuildService:
    def test_retries_then_gives_up(self, monkeypatch):
        calls = []
        sleeps = []

        def failing_build(*args, **kwargs):
            calls.append(kwargs)
            raise OSError("network down")

        monkeypatch.setattr(gcal, "build", failing_build)
        monkeypatch.setattr(gcal.time, "sleep", sleeps.append)

        with pytest.raises(ServiceError):
            build_service(MagicMock(), retries=3, delay=5)

        assert len(calls) == 3
        assert sleeps == [5, 5]

    def test_returns_service_after_transient_failure(self, monkeypatch):
        service = object()
        results = [OSError("flaky"), service]

        def flaky_build(*args, **kwargs):
            result = results.pop(0)
            if isinstance(result, Exception):
                raise result
            return result

        monkeypatch.setattr(gcal, "build", flaky_build)
        monkeypatch.setattr(gcal.time, "sleep", lambda _: None)

        assert build_service(MagicMock()) is service


class TestUnexpectedProviderFailures:
    @pytest.mark.parametrize("error", [IncompleteRead(b""), ValueError("garbled JSON body")])
    def test_yield_empty_list(self, error):
        service = MagicMock()
        service.events.return_value.list.return_value.execute.side_effect = error

        assert fetch_upcoming(service, NOW) == []
