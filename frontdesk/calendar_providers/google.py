"""Google Calendar provider implementation.

Uses a Google Cloud service account to interact with the Calendar API v3.
The service account JSON key path is read from the ``GOOGLE_SERVICE_ACCOUNT_JSON``
environment variable.
"""

from __future__ import annotations

import asyncio
import logging
import os
from datetime import datetime, timezone
from functools import partial
from typing import Any

from google.oauth2.service_account import Credentials
from googleapiclient.discovery import build

from .base import CalendarEvent, CalendarProvider, TimeSlot

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/calendar"]


class GoogleCalendarProvider(CalendarProvider):
    """CalendarProvider backed by Google Calendar API v3."""

    def __init__(self, service_account_path: str | None = None) -> None:
        sa_path = service_account_path or os.environ.get(
            "GOOGLE_SERVICE_ACCOUNT_JSON", ""
        )
        if not sa_path:
            raise ValueError(
                "Google service account JSON path must be provided via "
                "constructor argument or GOOGLE_SERVICE_ACCOUNT_JSON env var."
            )
        self._credentials = Credentials.from_service_account_file(
            sa_path, scopes=SCOPES
        )
        self._service = build(
            "calendar", "v3", credentials=self._credentials, cache_discovery=False
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _run_in_executor(self, func, *args, **kwargs) -> Any:
        """Run a synchronous Google API call in the default thread pool."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None, partial(func, *args, **kwargs)
        )

    @staticmethod
    def _to_rfc3339(dt: datetime) -> str:
        """Convert a datetime to an RFC 3339 string with timezone."""
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt.isoformat()

    @staticmethod
    def _parse_rfc3339(value: str) -> datetime:
        # Python < 3.11 rejects the trailing "Z" Google uses for UTC.
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"
        return datetime.fromisoformat(value)

    # ------------------------------------------------------------------
    # CalendarProvider interface
    # ------------------------------------------------------------------

    async def query_busy(
        self,
        calendar_id: str,
        start: datetime,
        end: datetime,
    ) -> list[TimeSlot]:
        """Query the Google freebusy API for busy intervals in the window."""
        body = {
            "timeMin": self._to_rfc3339(start),
            "timeMax": self._to_rfc3339(end),
            "items": [{"id": calendar_id}],
        }

        response = await self._run_in_executor(
            self._service.freebusy().query(body=body).execute
        )

        calendar = response.get("calendars", {}).get(calendar_id, {})
        if calendar.get("errors"):
            raise RuntimeError(
                f"freebusy query failed for {calendar_id}: {calendar['errors']}"
            )

        busy = [
            TimeSlot(
                start=self._parse_rfc3339(interval["start"]),
                end=self._parse_rfc3339(interval["end"]),
            )
            for interval in calendar.get("busy", [])
        ]
        busy.sort(key=lambda b: b.start)
        return busy

    async def create_event(
        self, calendar_id: str, event: CalendarEvent
    ) -> dict:
        """Insert an event into the Google Calendar.

        Sends email invitations to any attendees listed on the event.
        """
        start: dict[str, str] = {"dateTime": self._to_rfc3339(event.start)}
        end: dict[str, str] = {"dateTime": self._to_rfc3339(event.end)}
        if event.time_zone:
            start["timeZone"] = event.time_zone
            end["timeZone"] = event.time_zone

        body: dict[str, Any] = {
            "summary": event.summary,
            "start": start,
            "end": end,
        }
        if event.description:
            body["description"] = event.description
        if event.location:
            body["location"] = event.location
        if event.attendees:
            body["attendees"] = [
                {"email": addr} for addr in event.attendees
            ]
        if event.reminder_minutes:
            body["reminders"] = {
                "useDefault": False,
                "overrides": [
                    {"method": method, "minutes": minutes}
                    for method, minutes in event.reminder_minutes.items()
                ],
            }

        result = await self._run_in_executor(
            self._service.events()
            .insert(
                calendarId=calendar_id,
                body=body,
                sendUpdates="all" if event.attendees else "none",
            )
            .execute
        )

        logger.info("Created event %s on calendar %s", result["id"], calendar_id)

        return {
            "event_id": result["id"],
            "html_link": result.get("htmlLink", ""),
            "status": result.get("status", "confirmed"),
        }
