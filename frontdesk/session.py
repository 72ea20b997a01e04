"""Per-call session state and the store that owns it.

Each inbound call (keyed by the telephony call SID) gets a CallSession that:
  1. Holds the Appointment being collected
  2. Keeps a bounded conversation history for the assistant collaborator
  3. Remembers the last intent so multi-turn flows stay sticky
  4. Carries the appointment_persisted guard for the completion side effects

Sessions live in a SessionStore.  The in-memory store is the default; a
deployment that spreads calls across processes swaps in another
implementation of the same interface.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, Optional

from pydantic import BaseModel, Field

from frontdesk.config import APPOINTMENT_FIELDS
from frontdesk.models.appointment import Appointment, is_filled

log = logging.getLogger("frontdesk.session")

HISTORY_LIMIT = 12


def redact_pii(value: str) -> str:
    """Mask PII for logging: show first 3 and last 2 chars only."""
    if not value or len(value) <= 5:
        return "***"
    return value[:3] + "***" + value[-2:]


class CallStage(str, Enum):
    GREETING = "greeting"
    COLLECTING = "collecting"
    COMPLETE = "complete"


class Intent(str, Enum):
    GREETING = "greeting"
    BOOKING = "booking"
    INFO = "info"
    CANCEL = "cancel"
    MESSAGE = "message"
    FALLBACK = "fallback"


class Message(BaseModel):
    role: str  # "user" | "assistant"
    content: str


class CallSession(BaseModel):
    """Mutable state for a single call."""

    id: str = ""
    caller: str = ""
    stage: CallStage = CallStage.GREETING
    appointment: Appointment = Field(default_factory=Appointment)
    history: list[Message] = []
    last_intent: Optional[Intent] = None
    appointment_persisted: bool = False
    turn_count: int = 0
    created_at: float = Field(default_factory=time.time)
    last_seen: float = Field(default_factory=time.time)

    @property
    def is_ephemeral(self) -> bool:
        """Sessions without a call id are never stored."""
        return not self.id

    def append_message(self, role: str, text: str, limit: int = HISTORY_LIMIT) -> None:
        """Append to history, dropping the oldest entries beyond ``limit``."""
        self.history.append(Message(role=role, content=text))
        if len(self.history) > limit:
            del self.history[: len(self.history) - limit]

    def merge_appointment_fields(self, partial: dict[str, Any]) -> list[str]:
        """Overwrite appointment fields with the truthy values in ``partial``.

        Keys outside the appointment schema are ignored.  Returns the
        names of the fields that were written.
        """
        written = []
        for key, value in partial.items():
            if key not in APPOINTMENT_FIELDS or not is_filled(value):
                continue
            setattr(self.appointment, key, value)
            written.append(key)
        return written

    def to_dict(self, detail: bool = False) -> dict[str, Any]:
        """Serialize session state for the admin API."""
        d: dict[str, Any] = {
            "call_id": self.id,
            "caller": redact_pii(self.caller),
            "stage": self.stage.value,
            "turn_count": self.turn_count,
            "last_intent": self.last_intent.value if self.last_intent else None,
            "filled_fields": sorted(self.appointment.filled_summary()),
            "appointment_persisted": self.appointment_persisted,
            "idle_seconds": round(time.time() - self.last_seen, 1),
        }
        if detail:
            d["history"] = [m.model_dump() for m in self.history]
            d["candidate_slots"] = [
                s.model_dump(mode="json") for s in self.appointment.candidate_slots
            ]
        return d


class SessionStore(ABC):
    """Maps call ids to CallSessions.

    ``get_or_create`` and ``delete`` are idempotent.  Empty call ids give
    a fresh session that is never stored.
    """

    def __init__(self, history_limit: int = HISTORY_LIMIT) -> None:
        self.history_limit = history_limit

    @abstractmethod
    def get(self, call_id: str) -> CallSession | None:
        """Return the stored session, or None."""

    @abstractmethod
    def get_or_create(self, call_id: str | None, caller: str = "") -> CallSession:
        """Return the session for ``call_id``, creating it if needed."""

    @abstractmethod
    def delete(self, call_id: str | None) -> None:
        """Remove the session; a no-op when absent."""

    @abstractmethod
    def all(self) -> dict[str, CallSession]:
        """Snapshot of the stored sessions."""

    @abstractmethod
    def reap_idle(self, max_idle_seconds: float, now: float | None = None) -> int:
        """Delete sessions idle longer than ``max_idle_seconds``; return how many."""

    def append_message(self, session: CallSession, role: str, text: str) -> None:
        session.append_message(role, text, limit=self.history_limit)

    def merge_appointment_fields(self, session: CallSession, partial: dict[str, Any]) -> list[str]:
        return session.merge_appointment_fields(partial)

    def __len__(self) -> int:
        return len(self.all())


class InMemorySessionStore(SessionStore):
    """Single-process store backed by a dict."""

    def __init__(
        self,
        history_limit: int = HISTORY_LIMIT,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(history_limit)
        self._clock = clock
        self._sessions: dict[str, CallSession] = {}

    def get(self, call_id: str) -> CallSession | None:
        if not call_id:
            return None
        return self._sessions.get(call_id)

    def get_or_create(self, call_id: str | None, caller: str = "") -> CallSession:
        now = self._clock()
        if not call_id:
            return CallSession(caller=caller or "", created_at=now, last_seen=now)

        session = self._sessions.get(call_id)
        if session is None:
            session = CallSession(id=call_id, caller=caller or "", created_at=now, last_seen=now)
            self._sessions[call_id] = session
            log.info("Session created: %s (caller=%s)", call_id, redact_pii(caller))
        else:
            session.last_seen = now
            if caller and not session.caller:
                session.caller = caller
        return session

    def delete(self, call_id: str | None) -> None:
        if not call_id:
            return
        if self._sessions.pop(call_id, None) is not None:
            log.info("Session deleted: %s", call_id)

    def all(self) -> dict[str, CallSession]:
        return dict(self._sessions)

    def reap_idle(self, max_idle_seconds: float, now: float | None = None) -> int:
        now = self._clock() if now is None else now
        expired = [
            call_id for call_id, s in self._sessions.items()
            if now - s.last_seen > max_idle_seconds
        ]
        for call_id in expired:
            self._sessions.pop(call_id, None)
        if expired:
            log.info("Reaped %d idle session(s)", len(expired))
        return len(expired)
