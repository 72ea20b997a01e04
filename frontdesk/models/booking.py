"""Pydantic models for the canonical booking payload and its outcome."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from pydantic import BaseModel

from frontdesk.models.appointment import Appointment


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


class BookingPayload(BaseModel):
    """Trimmed, validated booking built from a completed appointment."""

    name: str
    service: str
    start: datetime
    end: datetime
    email: Optional[str] = None
    phone: Optional[str] = None
    gender: Optional[str] = None
    requested_time: str = ""

    @property
    def duration_minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)

    @classmethod
    def from_appointment(
        cls,
        appointment: Appointment,
        start: datetime,
        default_duration: int = 60,
    ) -> "BookingPayload":
        """Build the payload once the start time has been resolved."""
        end = appointment.end if appointment.start == start and appointment.end else None
        if end is None:
            minutes = appointment.duration_minutes or default_duration
            end = start + timedelta(minutes=minutes)
        return cls(
            name=_clean(appointment.name) or "guest",
            service=_clean(appointment.service) or "appointment",
            start=start,
            end=end,
            email=_clean(appointment.email),
            phone=_clean(appointment.phone),
            gender=_clean(appointment.gender),
            requested_time=_clean(appointment.time) or "",
        )


class BookingOutcome(BaseModel):
    """Result of the completion side effects for one call."""

    skipped: bool = False
    event_id: str = ""
    calendar_synced: bool = False
    confirmation_sent: bool = False
    calendar_link: str = ""
