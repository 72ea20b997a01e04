"""Completion side effects for a booked call.

Once the caller has heard the spoken confirmation, ``BookingFinalizer``
writes the calendar event and sends the confirmation message.  Both are
best-effort: failures are logged and reported in the BookingOutcome, never
raised, since the spoken confirmation is what the caller relies on.
The ``appointment_persisted`` flag on the session makes this run at most
once per call.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from frontdesk.calendar_providers.base import CalendarEvent, CalendarProvider
from frontdesk.dates import extract_datetime, fallback_start
from frontdesk.messaging.base import ConfirmationSender
from frontdesk.messaging.confirmation import calendar_link, compose_confirmation
from frontdesk.models.booking import BookingOutcome, BookingPayload
from frontdesk.session import CallSession, redact_pii

logger = logging.getLogger(__name__)

DEFAULT_REMINDERS = {"popup": 60, "email": 24 * 60}


class BookingFinalizer:
    def __init__(
        self,
        provider: Optional[CalendarProvider],
        sender: Optional[ConfirmationSender],
        calendar_id: str = "primary",
        timezone: str = "UTC",
        business_name: str = "",
        assistant_name: str = "",
        default_duration: int = 60,
        fallback_weekday: int = 2,
        fallback_hour: int = 15,
    ) -> None:
        self._provider = provider
        self._sender = sender
        self._calendar_id = calendar_id
        self._timezone = timezone
        self._business_name = business_name
        self._assistant_name = assistant_name
        self._default_duration = default_duration
        self._fallback_weekday = fallback_weekday
        self._fallback_hour = fallback_hour

    def resolve_start(self, session: CallSession, reference_now: datetime | None = None) -> datetime:
        """Accepted start, else a re-parse of the time text, else the fixed default."""
        appointment = session.appointment
        if appointment.start is not None:
            return appointment.start
        parsed = extract_datetime(appointment.time, reference_now=reference_now, tz=self._timezone)
        if parsed is None:
            parsed = fallback_start(
                reference_now=reference_now,
                tz=self._timezone,
                weekday=self._fallback_weekday,
                hour=self._fallback_hour,
            )
            logger.info(
                "Requested time %r did not parse; using default %s",
                appointment.time, parsed.isoformat(),
            )
        appointment.accept_start(parsed, self._default_duration)
        return parsed

    def build_payload(self, session: CallSession, reference_now: datetime | None = None) -> BookingPayload:
        start = self.resolve_start(session, reference_now)
        return BookingPayload.from_appointment(
            session.appointment, start, default_duration=self._default_duration,
        )

    def build_event(self, payload: BookingPayload) -> CalendarEvent:
        return CalendarEvent(
            summary=f"{payload.service} - {payload.name}",
            start=payload.start,
            end=payload.end,
            description=(
                f"Booked by {payload.name} via {self._assistant_name or 'the phone'} assistant.\n"
                f"Requested: {payload.requested_time or 'n/a'}"
            ),
            attendees=[payload.email] if payload.email else [],
            location=self._business_name,
            time_zone=self._timezone,
            reminder_minutes=dict(DEFAULT_REMINDERS),
        )

    async def finalize(
        self,
        session: CallSession,
        caller: str = "",
        reference_now: datetime | None = None,
    ) -> BookingOutcome:
        """Persist the booking once; later calls for the same session are no-ops."""
        if session.appointment_persisted:
            logger.info("Booking for %s already persisted; skipping", session.id or "<ephemeral>")
            return BookingOutcome(skipped=True)
        # Set before the first await so a re-entrant turn cannot double-book.
        session.appointment_persisted = True

        payload = self.build_payload(session, reference_now)
        outcome = BookingOutcome(calendar_link=calendar_link(payload, self._business_name))

        if self._provider is None:
            logger.warning("Calendar not configured; booking for %s not synced", session.id)
        else:
            try:
                result = await self._provider.create_event(
                    calendar_id=self._calendar_id,
                    event=self.build_event(payload),
                )
                outcome.event_id = result.get("event_id", "")
                outcome.calendar_synced = True
            except Exception:
                logger.exception("Calendar create failed for call %s", session.id)

        destination = caller or session.caller or payload.phone or ""
        if self._sender is None:
            logger.info("Confirmation sender not configured; skipping message")
        elif not destination:
            logger.warning("Confirmation skipped: no destination for call %s", session.id)
        else:
            try:
                outcome.confirmation_sent = await self._sender.send(
                    compose_confirmation(payload, self._business_name), destination,
                )
            except Exception:
                logger.exception("Confirmation send failed to %s", redact_pii(destination))

        logger.info(
            "Booking finalized for %s: calendar=%s confirmation=%s",
            session.id or "<ephemeral>", outcome.calendar_synced, outcome.confirmation_sent,
        )
        return outcome
