"""Abstract base class for calendar providers.

Defines the interface for reading busy intervals and creating events.
Any calendar backend (Google, Outlook, etc.) implements this ABC.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class TimeSlot:
    """A half-open ``[start, end)`` interval on a calendar."""

    start: datetime
    end: datetime

    def overlaps(self, other: "TimeSlot") -> bool:
        """True when the two intervals share any time; touching ends do not count."""
        return self.start < other.end and self.end > other.start


@dataclass
class CalendarEvent:
    """Represents a calendar event to be created."""

    summary: str
    start: datetime
    end: datetime
    description: str = ""
    attendees: list[str] = field(default_factory=list)  # email addresses
    location: str = ""
    time_zone: str = ""
    reminder_minutes: dict[str, int] = field(default_factory=dict)  # method -> minutes


class CalendarProvider(ABC):
    """Abstract calendar backend."""

    @abstractmethod
    async def query_busy(
        self,
        calendar_id: str,
        start: datetime,
        end: datetime,
    ) -> list[TimeSlot]:
        """Return the busy intervals intersecting ``[start, end)``.

        One call covers the whole window, so callers checking several
        candidate slots batch them into a single query.
        """

    @abstractmethod
    async def create_event(
        self, calendar_id: str, event: CalendarEvent
    ) -> dict:
        """Create a calendar event.

        Returns:
            Dict containing at least ``"event_id"`` and ``"html_link"``.
        """
