"""Calendar-facing tools used by the conversation and call flow."""

from .availability import SlotProposer, service_duration
from .booking import BookingFinalizer

__all__ = ["BookingFinalizer", "SlotProposer", "service_duration"]
