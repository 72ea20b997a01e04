"""Pydantic model for the appointment being collected during a call."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Iterable, Optional

from pydantic import BaseModel


def is_filled(value: Any) -> bool:
    """A field counts as filled iff it is non-null and non-empty after trimming."""
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


class CandidateSlot(BaseModel):
    """A proposed start/end pending the caller's choice."""

    start: datetime
    end: datetime
    free: bool = True


class Appointment(BaseModel):
    """Slot-filling record embedded in a call session.

    ``time`` holds what the caller said (or an ISO timestamp when it was
    parsed); ``start``/``end`` are only set once a start time is accepted.
    """

    name: Optional[str] = None
    service: Optional[str] = None
    time: Optional[str] = None
    email: Optional[str] = None
    gender: Optional[str] = None
    phone: Optional[str] = None
    duration_minutes: Optional[int] = None

    candidate_slots: list[CandidateSlot] = []
    start: Optional[datetime] = None
    end: Optional[datetime] = None

    def is_filled(self, field: str) -> bool:
        return is_filled(getattr(self, field, None))

    def missing_fields(self, required: Iterable[str]) -> list[str]:
        return [f for f in required if not self.is_filled(f)]

    def is_complete(self, required: Iterable[str]) -> bool:
        return not self.missing_fields(required)

    def accept_start(self, start: datetime, default_duration: int = 60) -> None:
        """Fix the start time and derive the end from the service duration."""
        minutes = self.duration_minutes or default_duration
        self.start = start
        self.end = start + timedelta(minutes=minutes)

    def filled_summary(self) -> dict[str, str]:
        """Filled scalar fields, for logs and the admin API."""
        return {
            f: str(getattr(self, f))
            for f in ("name", "service", "time", "email", "gender", "phone")
            if self.is_filled(f)
        }
