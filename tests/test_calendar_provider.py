"""Tests for CalendarProvider ABC and GoogleCalendarProvider."""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import pytest

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from frontdesk.calendar_providers.base import (
    CalendarEvent,
    CalendarProvider,
    TimeSlot,
)


# ── TimeSlot / CalendarEvent dataclass tests ────────────────────────


class TestDataclasses:
    def test_timeslot_overlap_is_half_open(self):
        now = datetime(2026, 3, 11, 10, 0, tzinfo=timezone.utc)
        slot = TimeSlot(start=now, end=now + timedelta(hours=1))
        after = TimeSlot(start=now + timedelta(hours=1), end=now + timedelta(hours=2))
        inside = TimeSlot(start=now + timedelta(minutes=30), end=now + timedelta(minutes=45))
        assert slot.overlaps(inside)
        assert not slot.overlaps(after)
        assert not after.overlaps(slot)

    def test_calendar_event_defaults(self):
        now = datetime.now(tz=timezone.utc)
        event = CalendarEvent(
            summary="Test",
            start=now,
            end=now + timedelta(minutes=30),
        )
        assert event.description == ""
        assert event.attendees == []
        assert event.location == ""
        assert event.reminder_minutes == {}


# ── ABC contract tests ─────────────────────────────────────────────


class TestCalendarProviderABC:
    def test_cannot_instantiate(self):
        """CalendarProvider is abstract and can't be instantiated directly."""
        with pytest.raises(TypeError):
            CalendarProvider()

    def test_concrete_implementation(self):
        class MockProvider(CalendarProvider):
            async def query_busy(self, calendar_id, start, end):
                return []
            async def create_event(self, calendar_id, event):
                return {}

        assert isinstance(MockProvider(), CalendarProvider)


# ── GoogleCalendarProvider tests (mocked API) ──────────────────────


class TestGoogleCalendarProvider:
    @pytest.fixture
    def mock_provider(self):
        """Create a GoogleCalendarProvider with mocked Google APIs."""
        with patch(
            "frontdesk.calendar_providers.google.Credentials"
        ) as mock_creds, patch(
            "frontdesk.calendar_providers.google.build"
        ) as mock_build:
            mock_creds.from_service_account_file.return_value = MagicMock()

            from frontdesk.calendar_providers.google import GoogleCalendarProvider

            provider = GoogleCalendarProvider(
                service_account_path="/fake/path.json"
            )
            provider._service = mock_build.return_value
            return provider

    def test_requires_service_account(self, monkeypatch):
        monkeypatch.delenv("GOOGLE_SERVICE_ACCOUNT_JSON", raising=False)
        from frontdesk.calendar_providers.google import GoogleCalendarProvider

        with pytest.raises(ValueError):
            GoogleCalendarProvider()

    async def test_query_busy_empty_calendar(self, mock_provider):
        start = datetime(2026, 3, 11, 9, 0, tzinfo=timezone.utc)
        end = datetime(2026, 3, 12, 18, 0, tzinfo=timezone.utc)

        mock_provider._service.freebusy.return_value.query.return_value.execute.return_value = {
            "calendars": {"primary": {"busy": []}}
        }

        assert await mock_provider.query_busy("primary", start, end) == []

    async def test_query_busy_parses_intervals(self, mock_provider):
        start = datetime(2026, 3, 11, 9, 0, tzinfo=timezone.utc)
        end = datetime(2026, 3, 12, 18, 0, tzinfo=timezone.utc)

        mock_provider._service.freebusy.return_value.query.return_value.execute.return_value = {
            "calendars": {
                "primary": {
                    "busy": [
                        {"start": "2026-03-12T14:00:00Z", "end": "2026-03-12T15:00:00Z"},
                        {"start": "2026-03-11T10:00:00+00:00", "end": "2026-03-11T11:00:00+00:00"},
                    ]
                }
            }
        }

        busy = await mock_provider.query_busy("primary", start, end)

        assert len(busy) == 2
        assert busy[0].start == datetime(2026, 3, 11, 10, 0, tzinfo=timezone.utc)
        assert busy[1].end == datetime(2026, 3, 12, 15, 0, tzinfo=timezone.utc)

        body = mock_provider._service.freebusy.return_value.query.call_args.kwargs["body"]
        assert body["items"] == [{"id": "primary"}]
        assert body["timeMin"] == start.isoformat()

    async def test_query_busy_calendar_error_raises(self, mock_provider):
        mock_provider._service.freebusy.return_value.query.return_value.execute.return_value = {
            "calendars": {"primary": {"errors": [{"reason": "notFound"}]}}
        }
        now = datetime.now(tz=timezone.utc)
        with pytest.raises(RuntimeError):
            await mock_provider.query_busy("primary", now, now + timedelta(hours=1))

    async def test_create_event(self, mock_provider):
        now = datetime(2026, 3, 11, 15, 0, tzinfo=timezone.utc)
        event = CalendarEvent(
            summary="haircut - Ann",
            start=now,
            end=now + timedelta(minutes=60),
            attendees=["ann@example.com"],
            location="Luna Hair Studio",
            time_zone="America/New_York",
            reminder_minutes={"popup": 60, "email": 1440},
        )

        insert = mock_provider._service.events.return_value.insert
        insert.return_value.execute.return_value = {
            "id": "evt_123",
            "htmlLink": "https://calendar.google.com/event/evt_123",
            "status": "confirmed",
        }

        result = await mock_provider.create_event("primary", event)

        assert result["event_id"] == "evt_123"
        assert result["html_link"] == "https://calendar.google.com/event/evt_123"

        kwargs = insert.call_args.kwargs
        assert kwargs["calendarId"] == "primary"
        assert kwargs["sendUpdates"] == "all"
        body = kwargs["body"]
        assert body["start"]["timeZone"] == "America/New_York"
        assert body["attendees"] == [{"email": "ann@example.com"}]
        assert body["reminders"]["overrides"] == [
            {"method": "popup", "minutes": 60},
            {"method": "email", "minutes": 1440},
        ]

    async def test_create_event_without_attendees(self, mock_provider):
        now = datetime(2026, 3, 11, 15, 0, tzinfo=timezone.utc)
        event = CalendarEvent(summary="trim - Bob", start=now, end=now + timedelta(minutes=30))

        insert = mock_provider._service.events.return_value.insert
        insert.return_value.execute.return_value = {"id": "evt_9"}

        result = await mock_provider.create_event("primary", event)

        assert result["event_id"] == "evt_9"
        assert insert.call_args.kwargs["sendUpdates"] == "none"
        assert "reminders" not in insert.call_args.kwargs["body"]
