"""Tests for the candidate-slot proposer."""

from datetime import datetime, timedelta
from unittest.mock import AsyncMock
from zoneinfo import ZoneInfo

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from frontdesk.calendar_providers.base import CalendarProvider, TimeSlot
from frontdesk.models.appointment import CandidateSlot
from frontdesk.tools.availability import SlotProposer, is_free, phrase_slots, service_duration

TZ = "America/New_York"
NOW = datetime(2026, 3, 9, 10, 0, tzinfo=ZoneInfo(TZ))


def at(hour, minute=0):
    return datetime(2026, 3, 11, hour, minute, tzinfo=ZoneInfo(TZ))


def make_provider(busy=None, error=None):
    provider = AsyncMock(spec=CalendarProvider)
    if error is not None:
        provider.query_busy.side_effect = error
    else:
        provider.query_busy.return_value = busy or []
    return provider


class TestOverlap:
    def test_inner_busy_interval_blocks(self):
        candidate = CandidateSlot(start=at(10), end=at(11))
        assert is_free(candidate, [TimeSlot(start=at(10, 30), end=at(10, 45))]) is False

    def test_touching_interval_is_free(self):
        candidate = CandidateSlot(start=at(10), end=at(11))
        assert is_free(candidate, [TimeSlot(start=at(11), end=at(12))]) is True

    def test_busy_ending_at_start_is_free(self):
        candidate = CandidateSlot(start=at(10), end=at(11))
        assert is_free(candidate, [TimeSlot(start=at(9), end=at(10))]) is True


class TestDurations:
    def test_known_services(self):
        assert service_duration("color") == 120
        assert service_duration("Balayage") == 150
        assert service_duration("trim") == 30

    def test_unknown_uses_default(self):
        assert service_duration("haircut", default=45) == 45
        assert service_duration(None) == 60


class TestPropose:
    def test_candidates_follow_rules(self):
        proposer = SlotProposer(None, timezone=TZ)
        slots = proposer.candidates("haircut", NOW)
        assert [s.start.strftime("%a %H:%M") for s in slots] == ["Wed 15:00", "Thu 17:00"]
        assert all(s.end - s.start == timedelta(minutes=60) for s in slots)

    async def test_one_batched_query(self):
        provider = make_provider()
        proposer = SlotProposer(provider, calendar_id="cal", timezone=TZ)

        slots = await proposer.propose("haircut", NOW)

        provider.query_busy.assert_awaited_once()
        kwargs = provider.query_busy.call_args.kwargs
        assert kwargs["calendar_id"] == "cal"
        assert kwargs["start"] == slots[0].start
        assert kwargs["end"] == slots[1].end
        assert all(s.free for s in slots)

    async def test_busy_slot_sorted_last(self):
        wed = datetime(2026, 3, 11, 15, 0, tzinfo=ZoneInfo(TZ))
        provider = make_provider(busy=[TimeSlot(start=wed, end=wed + timedelta(minutes=30))])
        proposer = SlotProposer(provider, timezone=TZ)

        slots = await proposer.propose("haircut", NOW)

        assert [s.free for s in slots] == [True, False]
        assert slots[0].start.strftime("%A") == "Thursday"

    async def test_query_failure_is_optimistic(self):
        provider = make_provider(error=RuntimeError("calendar down"))
        proposer = SlotProposer(provider, timezone=TZ)

        slots = await proposer.propose("haircut", NOW)

        assert len(slots) == 2
        assert all(s.free for s in slots)

    async def test_no_provider_all_free(self):
        slots = await SlotProposer(None, timezone=TZ).propose("trim", NOW)
        assert all(s.free for s in slots)
        assert slots[0].end - slots[0].start == timedelta(minutes=30)


class TestPhrasing:
    def test_joined_with_or(self):
        slots = SlotProposer(None, timezone=TZ).candidates("haircut", NOW)
        assert phrase_slots(slots) == "Wednesday, March 11 at 3 PM or Thursday, March 12 at 5 PM"
