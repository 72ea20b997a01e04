"""Data models for the front desk."""

from .appointment import Appointment, CandidateSlot, is_filled
from .booking import BookingOutcome, BookingPayload

__all__ = ["Appointment", "BookingOutcome", "BookingPayload", "CandidateSlot", "is_filled"]
