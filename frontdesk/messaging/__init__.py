"""Outbound confirmation messaging."""

from .base import ConfirmationSender
from .confirmation import calendar_link, compose_confirmation

__all__ = ["ConfirmationSender", "calendar_link", "compose_confirmation"]
