"""ConversationPolicy interface shared by the keyword and assistant policies."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Sequence
from zoneinfo import ZoneInfo

from frontdesk.dates import format_for_speech
from frontdesk.models.appointment import Appointment
from frontdesk.session import CallSession, Intent

FALLBACK_REPLY = (
    "I'm sorry, I had trouble understanding that. "
    "Could you please repeat what you need?"
)


@dataclass
class TurnResult:
    """One turn's outcome: exactly one reply, and whether the call ends."""

    reply: str
    end_call: bool = False
    intent: Optional[Intent] = None


def ensure_reply(text: str | None, fallback: str = FALLBACK_REPLY) -> str:
    """Never hand blank text to the synthesizer."""
    text = (text or "").strip()
    return text or fallback


def describe_time(appointment: Appointment) -> str:
    if appointment.start is not None:
        return format_for_speech(appointment.start)
    return appointment.time or "your requested time"


class ConversationPolicy(ABC):
    """Turns one caller utterance into one reply, mutating the session."""

    name: str = ""

    def __init__(
        self,
        required_fields: Sequence[str],
        timezone: str = "UTC",
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self.required_fields = tuple(required_fields)
        self._timezone = timezone
        self._now_fn = now

    def now(self) -> datetime:
        if self._now_fn is not None:
            return self._now_fn()
        return datetime.now(tz=ZoneInfo(self._timezone))

    def is_complete(self, session: CallSession) -> bool:
        return session.appointment.is_complete(self.required_fields)

    @abstractmethod
    async def handle_turn(self, session: CallSession, utterance: str) -> TurnResult:
        """Process a non-empty utterance and return the reply."""
