"""Calendar provider abstractions and implementations."""

from .base import CalendarEvent, CalendarProvider, TimeSlot

__all__ = ["CalendarProvider", "CalendarEvent", "TimeSlot"]
