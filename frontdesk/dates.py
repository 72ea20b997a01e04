"""Natural-language date/time extraction for caller speech.

``extract_datetime`` turns phrases like "tomorrow at 3pm" or "next
Wednesday" into an aware datetime in the business time zone, preferring
future dates.  It returns None when nothing usable is found; callers pick
their own fallback (usually ``fallback_start``).
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

import dateparser
from dateparser.search import search_dates

log = logging.getLogger("frontdesk.dates")

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

_WEEKDAY_RE = re.compile(r"\b(" + "|".join(WEEKDAYS) + r")\b", re.IGNORECASE)
_RELATIVE_RE = re.compile(r"\b(today|tonight|tomorrow)\b", re.IGNORECASE)
_CLOCK_RE = re.compile(
    r"\b\d{1,2}(?::\d{2})?\s*(?:am|pm|a\.m\.|p\.m\.|o'clock)"
    r"|\b\d{1,2}:\d{2}\b|\bnoon\b|\bmidnight\b",
    re.IGNORECASE,
)
_AT_HOUR_RE = re.compile(r"\bat\s+\d{1,2}\b", re.IGNORECASE)
# A month name with no day number after it ("I may be free", "march on in").
_BARE_MONTH_RE = re.compile(
    r"\b(?:jan|january|feb|february|mar|march|apr|april|may|jun|june|jul|july|aug|august"
    r"|sep|sept|september|oct|october|nov|november|dec|december)\b(?!\s*\d)",
    re.IGNORECASE,
)

DEFAULT_HOUR = 12


def _zone(tz: str | None) -> ZoneInfo:
    return ZoneInfo(tz or "UTC")


def _reference(reference_now: datetime | None, zone: ZoneInfo) -> datetime:
    if reference_now is None:
        return datetime.now(tz=zone)
    if reference_now.tzinfo is None:
        return reference_now.replace(tzinfo=zone)
    return reference_now.astimezone(zone)


def _parse_iso(text: str, zone: ZoneInfo) -> Optional[datetime]:
    try:
        dt = datetime.fromisoformat(text)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=zone)
    return dt


def _has_clock_time(text: str) -> bool:
    return bool(_CLOCK_RE.search(text) or _AT_HOUR_RE.search(text))


def _anchored(fragment: str) -> bool:
    """A search hit is trusted only when it names a day or a clock time."""
    if _BARE_MONTH_RE.search(fragment):
        return False
    return bool(
        _WEEKDAY_RE.search(fragment)
        or _RELATIVE_RE.search(fragment)
        or _CLOCK_RE.search(fragment)
    )


def extract_datetime(
    text: str | None,
    reference_now: datetime | None = None,
    tz: str | None = None,
    default_hour: int = DEFAULT_HOUR,
) -> Optional[datetime]:
    """Best-effort parse of a spoken date/time, biased toward the future.

    ISO-8601 input is passed through unchanged (after validation) so the
    canonical ``isoformat()`` output round-trips.  A phrase that names a
    day but no time of day lands at ``default_hour``.  Stray month words
    ("I may be free") and bare day numbers ("the 20th") are not guessed
    at; those return None.
    """
    if not text or not text.strip():
        return None
    text = text.strip()
    zone = _zone(tz)

    iso = _parse_iso(text, zone)
    if iso is not None:
        return iso

    now = _reference(reference_now, zone)
    parser_settings = {
        "PREFER_DATES_FROM": "future",
        "RELATIVE_BASE": now.replace(tzinfo=None),
        "RETURN_AS_TIMEZONE_AWARE": False,
    }

    parsed = None
    fragment = text
    if not _BARE_MONTH_RE.search(text):
        parsed = dateparser.parse(text, languages=["en"], settings=parser_settings)
    if parsed is None:
        found = search_dates(text, languages=["en"], settings=parser_settings) or []
        hit = next(((frag, dt) for frag, dt in found if _anchored(frag)), None)
        if hit is not None:
            fragment, parsed = hit
    if parsed is None:
        log.debug("No usable date in %r", text)
        return None

    result = parsed.replace(tzinfo=zone)
    if not _has_clock_time(fragment):
        result = result.replace(hour=default_hour, minute=0, second=0, microsecond=0)

    # A bare weekday always means the next occurrence, never today-in-the-past.
    if result <= now and _WEEKDAY_RE.search(fragment):
        result += timedelta(days=7)
    if result < now:
        log.debug("Discarding past datetime %s for %r", result.isoformat(), text)
        return None
    return result


def to_canonical(dt: datetime) -> str:
    """Machine-parseable form accepted back by ``extract_datetime``."""
    return dt.isoformat()


def next_weekday_at(
    weekday: int,
    hour: int,
    minute: int = 0,
    reference_now: datetime | None = None,
    tz: str | None = None,
) -> datetime:
    """Next ``weekday`` (Monday = 0) strictly after today, at ``hour:minute``."""
    zone = _zone(tz)
    now = _reference(reference_now, zone)
    days_ahead = (weekday - now.weekday()) % 7 or 7
    day = now + timedelta(days=days_ahead)
    return day.replace(hour=hour, minute=minute, second=0, microsecond=0)


def fallback_start(
    reference_now: datetime | None = None,
    tz: str | None = None,
    weekday: int = 2,
    hour: int = 15,
) -> datetime:
    """Deterministic default used when a requested time never parses."""
    return next_weekday_at(weekday, hour, 0, reference_now=reference_now, tz=tz)


def format_for_speech(dt: datetime) -> str:
    """'Wednesday, March 11 at 3 PM', as read aloud by TTS."""
    hour = dt.strftime("%I").lstrip("0") or "12"
    clock = hour if dt.minute == 0 else f"{hour}:{dt.minute:02d}"
    return f"{dt:%A}, {dt:%B} {dt.day} at {clock} {dt:%p}"
