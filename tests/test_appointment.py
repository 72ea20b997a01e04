"""Tests for the Appointment slot-filling model."""

from datetime import datetime, timedelta, timezone

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from frontdesk.models.appointment import Appointment, is_filled


class TestIsFilled:
    def test_values(self):
        assert is_filled("Ann")
        assert not is_filled(None)
        assert not is_filled("")
        assert not is_filled("   ")
        assert is_filled(0)


class TestAppointment:
    def test_missing_in_required_order(self):
        appt = Appointment(service="haircut")
        assert appt.missing_fields(("name", "service", "time")) == ["name", "time"]
        assert not appt.is_complete(("name", "service", "time"))

    def test_complete(self):
        appt = Appointment(name="Ann", service="haircut", time="tomorrow")
        assert appt.is_complete(("name", "service", "time"))
        assert not appt.is_complete(("name", "service", "time", "email"))

    def test_accept_start_uses_duration(self):
        start = datetime(2026, 3, 11, 15, 0, tzinfo=timezone.utc)
        appt = Appointment(duration_minutes=150)
        appt.accept_start(start)
        assert appt.end - appt.start == timedelta(minutes=150)

    def test_accept_start_default_duration(self):
        start = datetime(2026, 3, 11, 15, 0, tzinfo=timezone.utc)
        appt = Appointment()
        appt.accept_start(start, default_duration=45)
        assert appt.end == start + timedelta(minutes=45)

    def test_filled_summary_skips_empty(self):
        appt = Appointment(name="Ann", email="  ")
        assert appt.filled_summary() == {"name": "Ann"}
