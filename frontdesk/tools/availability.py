"""Candidate-slot proposer.

Builds a few fixed candidate start times ("next Wednesday at 3 PM", "next
Thursday at 5 PM"), checks them against the calendar's busy intervals in
one batched query, and marks each one free or taken.  When the calendar
cannot be reached every candidate is treated as free; a human reconciles
conflicts later.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional, Sequence

from frontdesk.calendar_providers.base import CalendarProvider, TimeSlot
from frontdesk.dates import format_for_speech, next_weekday_at
from frontdesk.models.appointment import CandidateSlot

logger = logging.getLogger(__name__)

# (weekday, hour, minute), Monday = 0
DEFAULT_CANDIDATE_RULES: tuple[tuple[int, int, int], ...] = ((2, 15, 0), (3, 17, 0))

SERVICE_DURATIONS = {
    "color": 120,
    "balayage": 150,
    "treatment": 90,
    "trim": 30,
}


def service_duration(service: str | None, default: int = 60) -> int:
    """Minutes to book for ``service``; unknown services get ``default``."""
    return SERVICE_DURATIONS.get((service or "").strip().lower(), default)


def is_free(candidate: CandidateSlot, busy: Sequence[TimeSlot]) -> bool:
    slot = TimeSlot(start=candidate.start, end=candidate.end)
    return not any(slot.overlaps(b) for b in busy)


def phrase_slots(slots: Sequence[CandidateSlot]) -> str:
    """'Wednesday, March 11 at 3 PM or Thursday, March 12 at 5 PM'."""
    return " or ".join(format_for_speech(s.start) for s in slots)


class SlotProposer:
    """Propose appointment slots for a service.

    ``provider`` may be None (no calendar configured), in which case every
    candidate is reported free.
    """

    def __init__(
        self,
        provider: Optional[CalendarProvider],
        calendar_id: str = "primary",
        timezone: str = "UTC",
        default_duration: int = 60,
        rules: Sequence[tuple[int, int, int]] = DEFAULT_CANDIDATE_RULES,
    ) -> None:
        self._provider = provider
        self._calendar_id = calendar_id
        self._timezone = timezone
        self._default_duration = default_duration
        self._rules = tuple(rules)

    def candidates(self, service: str | None, reference_now: datetime | None = None) -> list[CandidateSlot]:
        """Deterministic candidate slots, all provisionally free."""
        minutes = service_duration(service, self._default_duration)
        slots = []
        for weekday, hour, minute in self._rules:
            start = next_weekday_at(
                weekday, hour, minute, reference_now=reference_now, tz=self._timezone,
            )
            slots.append(CandidateSlot(start=start, end=start + timedelta(minutes=minutes)))
        return slots

    async def propose(
        self, service: str | None, reference_now: datetime | None = None
    ) -> list[CandidateSlot]:
        """Candidates with ``free`` set from the calendar, free slots first."""
        slots = self.candidates(service, reference_now)
        if not slots:
            return []

        if self._provider is None:
            logger.info("No calendar provider; proposing %d slots unchecked", len(slots))
            return slots

        window_start = min(s.start for s in slots)
        window_end = max(s.end for s in slots)
        try:
            busy = await self._provider.query_busy(
                calendar_id=self._calendar_id,
                start=window_start,
                end=window_end,
            )
        except Exception:
            logger.warning("Availability check failed, proposing default times", exc_info=True)
            return slots

        for slot in slots:
            slot.free = is_free(slot, busy)

        logger.info(
            "Availability for %s: %d/%d candidate slots free",
            service, sum(s.free for s in slots), len(slots),
        )
        # Stable sort keeps rule order within each group.
        return sorted(slots, key=lambda s: not s.free)
