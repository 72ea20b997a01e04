"""Normalization of fields extracted from caller speech."""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Optional

from frontdesk.dates import extract_datetime, to_canonical

_NON_DIGITS = re.compile(r"\D")

# Assistant output keys that map onto differently named appointment fields.
FIELD_ALIASES = {"datetime": "time", "date_time": "time", "phone_number": "phone"}


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    if not value or value.lower() in {"null", "none", "n/a"}:
        return None
    return value


def normalize_email(value: Any) -> Optional[str]:
    value = _text(value)
    return value.lower() if value else None


def normalize_name(value: Any) -> Optional[str]:
    value = _text(value)
    if not value:
        return None
    return " ".join(token[:1].upper() + token[1:].lower() for token in value.split())


def normalize_phone(value: Any, default_country_code: str = "1") -> Optional[str]:
    """Canonical ``+<digits>`` form; 10-digit numbers get the default country code."""
    value = _text(value)
    if not value:
        return None
    if value.lower().startswith("whatsapp:"):
        value = value.split(":", 1)[1]
    digits = _NON_DIGITS.sub("", value)
    if not digits:
        return None
    if len(digits) == 10:
        return f"+{default_country_code}{digits}"
    return f"+{digits}"


def normalize_datetime(
    value: Any,
    reference_now: datetime | None = None,
    tz: str | None = None,
) -> Optional[str]:
    """Absolute ISO timestamp, or None when the value does not parse."""
    value = _text(value)
    if not value:
        return None
    dt = extract_datetime(value, reference_now=reference_now, tz=tz)
    return to_canonical(dt) if dt else None


def normalize_fields(
    raw: dict[str, Any],
    reference_now: datetime | None = None,
    tz: str | None = None,
    default_country_code: str = "1",
) -> dict[str, str]:
    """Normalize an assistant extraction; unparseable or empty values are dropped."""
    out: dict[str, str] = {}
    for key, value in (raw or {}).items():
        key = FIELD_ALIASES.get(key, key)
        if key == "email":
            norm = normalize_email(value)
        elif key == "name":
            norm = normalize_name(value)
        elif key == "phone":
            norm = normalize_phone(value, default_country_code)
        elif key == "time":
            norm = normalize_datetime(value, reference_now=reference_now, tz=tz)
        elif key in ("service", "gender"):
            norm = _text(value)
            norm = norm.lower() if norm else None
        else:
            continue
        if norm:
            out[key] = norm
    return out
