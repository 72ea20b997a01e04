"""Confirmation message text and the add-to-calendar link it carries."""

from __future__ import annotations

from urllib.parse import urlencode

from frontdesk.dates import format_for_speech
from frontdesk.models.booking import BookingPayload

GOOGLE_RENDER_URL = "https://calendar.google.com/calendar/render"


def _google_stamp(dt) -> str:
    return dt.strftime("%Y%m%dT%H%M%S")


def calendar_link(payload: BookingPayload, business_name: str) -> str:
    """Google Calendar 'TEMPLATE' link the caller can tap to save the booking."""
    params = {
        "action": "TEMPLATE",
        "text": f"{business_name} - {payload.service}",
        "dates": f"{_google_stamp(payload.start)}/{_google_stamp(payload.end)}",
        "details": f"{payload.service.capitalize()} appointment for {payload.name} at {business_name}",
        "location": business_name,
    }
    if payload.start.tzinfo is not None:
        params["ctz"] = str(payload.start.tzinfo)
    return f"{GOOGLE_RENDER_URL}?{urlencode(params)}"


def compose_confirmation(payload: BookingPayload, business_name: str) -> str:
    return "\n".join([
        f"{business_name} confirmation",
        f"{payload.name}, your {payload.service} is booked for {format_for_speech(payload.start)}.",
        f"Add to calendar: {calendar_link(payload, business_name)}",
    ])
