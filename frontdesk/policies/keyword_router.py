"""Rule-based keyword intent router.

Intents are picked by substring match against fixed vocabularies, in
priority order: booking words, info words, cancel words, message words,
and finally a mention of a known service (which also starts a booking).
Once a booking has started it stays sticky until service, time and name
are all filled, so short answers like "Thursday" or "Ann" are read as
continuations.

The booking sub-flow asks for one missing field per turn, in the fixed
order service → time → name.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Callable, Optional, Sequence

from frontdesk.dates import WEEKDAYS, extract_datetime, to_canonical
from frontdesk.models.appointment import CandidateSlot
from frontdesk.normalize import normalize_name
from frontdesk.policies.base import ConversationPolicy, TurnResult, describe_time
from frontdesk.session import HISTORY_LIMIT, CallSession, CallStage, Intent
from frontdesk.tools.availability import SlotProposer, phrase_slots, service_duration

log = logging.getLogger("frontdesk.policies.keyword")

BOOKING_FIELDS = ("service", "time", "name")

BOOKING_WORDS = ("book", "appointment", "schedule", "reserve")
INFO_WORDS = ("price", "cost", "service", "hours", "open")
CANCEL_WORDS = ("cancel", "reschedule", "change", "move")
MESSAGE_WORDS = ("message", "voicemail")

SERVICES = ("haircut", "color", "balayage", "trim", "blowout", "treatment", "cut")

INFO_REPLY = (
    "We offer haircuts, color treatments, and blowouts. Prices start at sixty five "
    "dollars and we are open from 9 AM to 7 PM Tuesday through Saturday. "
    "Would you like to book a slot?"
)
CANCEL_REPLY = (
    "I can help with cancellations or reschedules. Please tell me the name on the "
    "appointment and the time you would like to change."
)
MESSAGE_REPLY = (
    "Sure, please tell me your name, number, and what this is regarding, "
    "and I will pass the message along."
)
FALLBACK_INTENT_REPLY = (
    "I want to make sure I get this right. Could you rephrase or tell me if you "
    "want to book, ask a question, or leave a message?"
)
ASK_SERVICE = (
    "Absolutely. Which service would you like to schedule? "
    "We offer haircuts, color sessions, and blowouts."
)
ASK_NAME = "Perfect. What name should I put on that appointment?"

_ORDINALS = {"first": 0, "earlier": 0, "second": 1, "later": 1}
_RELATIVE_DAYS = ("today", "tonight", "tomorrow", "week", "month")
_DAY_OF_MONTH = re.compile(r"\b\d{1,2}(?:st|nd|rd|th)\b")

_NAME_PREFIX = re.compile(
    r"^(?:(?:yes|yeah|sure|ok|okay)[,.!]?\s+)?"
    r"(?:my name is|my name's|the name is|name's|this is|it's|it is|i'm|i am|call me)\s+",
    re.IGNORECASE,
)


def _contains(text: str, words: Sequence[str]) -> bool:
    return any(w in text for w in words)


def detect_service(text: str) -> Optional[str]:
    text = text.lower()
    return next((s for s in SERVICES if s in text), None)


def detect_intent(utterance: str, session: CallSession) -> Intent:
    if (
        session.last_intent is Intent.BOOKING
        and not session.appointment.is_complete(BOOKING_FIELDS)
    ):
        return Intent.BOOKING

    text = (utterance or "").lower()
    if _contains(text, BOOKING_WORDS):
        return Intent.BOOKING
    if _contains(text, INFO_WORDS):
        return Intent.INFO
    if _contains(text, CANCEL_WORDS):
        return Intent.CANCEL
    if _contains(text, MESSAGE_WORDS):
        return Intent.MESSAGE
    if detect_service(text):
        return Intent.BOOKING
    return Intent.FALLBACK


def match_candidate(text: str, slots: Sequence[CandidateSlot]) -> Optional[CandidateSlot]:
    """Which proposed slot the caller picked, by weekday, ordinal or hour."""
    if not slots:
        return None
    text = text.lower()

    for slot in slots:
        if slot.start.strftime("%A").lower() in text:
            return slot

    # Another weekday was named; nothing else in the sentence picks a slot.
    if any(day in text for day in WEEKDAYS):
        return None

    for word, index in _ORDINALS.items():
        if re.search(rf"\b{word}\b", text) and index < len(slots):
            return slots[index]

    if any(day in text for day in _RELATIVE_DAYS) or _DAY_OF_MONTH.search(text):
        return None

    for slot in slots:
        hour = slot.start.strftime("%I").lstrip("0")
        minute = slot.start.minute
        if minute:
            pattern = rf"\b{hour}:{minute:02d}\b"
        else:
            pattern = rf"\b{hour}\b(?!:(?!00)\d\d)"
        if re.search(pattern, text):
            return slot
    return None


def extract_name(text: str) -> str:
    """'My name is ann lee.' → 'Ann Lee'."""
    cleaned = _NAME_PREFIX.sub("", (text or "").strip()).strip(" .,!?")
    return normalize_name(cleaned) or ""


class KeywordRouterPolicy(ConversationPolicy):
    name = "keyword"

    def __init__(
        self,
        proposer: SlotProposer,
        timezone: str = "UTC",
        default_duration: int = 60,
        history_limit: int = HISTORY_LIMIT,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        super().__init__(BOOKING_FIELDS, timezone=timezone, now=now)
        self._proposer = proposer
        self._default_duration = default_duration
        self._history_limit = history_limit

    async def handle_turn(self, session: CallSession, utterance: str) -> TurnResult:
        session.append_message("user", utterance, limit=self._history_limit)
        result = await self._route(session, utterance)
        session.append_message("assistant", result.reply, limit=self._history_limit)
        return result

    async def _route(self, session: CallSession, utterance: str) -> TurnResult:
        if self.is_complete(session):
            return self._confirm(session)

        intent = detect_intent(utterance, session)
        log.info("Call %s intent: %s", session.id or "<ephemeral>", intent.value)

        if intent is Intent.BOOKING:
            return await self._booking(session, utterance)
        if intent is Intent.INFO:
            session.last_intent = Intent.INFO
            return TurnResult(INFO_REPLY, intent=intent)
        if intent is Intent.CANCEL:
            session.last_intent = Intent.CANCEL
            return TurnResult(CANCEL_REPLY, intent=intent)
        if intent is Intent.MESSAGE:
            session.last_intent = Intent.MESSAGE
            return TurnResult(MESSAGE_REPLY, intent=intent)
        return TurnResult(FALLBACK_INTENT_REPLY, intent=Intent.FALLBACK)

    async def _booking(self, session: CallSession, utterance: str) -> TurnResult:
        session.last_intent = Intent.BOOKING
        appointment = session.appointment
        text = (utterance or "").strip()

        if not appointment.is_filled("service"):
            service = detect_service(text)
            if not service:
                return TurnResult(ASK_SERVICE, intent=Intent.BOOKING)

            appointment.service = service
            appointment.duration_minutes = service_duration(service, self._default_duration)

            slots = await self._proposer.propose(service, self.now())
            free = [s for s in slots if s.free]
            if free:
                appointment.candidate_slots = free
                return TurnResult(
                    f"Great, a {service}. I can offer {phrase_slots(free)}. Which works for you?",
                    intent=Intent.BOOKING,
                )
            return TurnResult(
                f"Thanks. I don't see those exact slots free for a {service}. "
                "What day and time generally works for you?",
                intent=Intent.BOOKING,
            )

        if not appointment.is_filled("time"):
            chosen = match_candidate(text, appointment.candidate_slots)
            start = chosen.start if chosen else extract_datetime(
                text, reference_now=self.now(), tz=self._timezone,
            )
            if start is not None:
                appointment.time = to_canonical(start)
                appointment.accept_start(start, self._default_duration)
            else:
                # Kept verbatim; re-parsed when the calendar event is built.
                appointment.time = text or "unspecified time"
            return TurnResult(ASK_NAME, intent=Intent.BOOKING)

        if not appointment.is_filled("name"):
            appointment.name = extract_name(text) or "guest"

        return self._confirm(session)

    def _confirm(self, session: CallSession) -> TurnResult:
        appointment = session.appointment
        if appointment.start is None:
            start = extract_datetime(appointment.time, reference_now=self.now(), tz=self._timezone)
            if start is not None:
                appointment.accept_start(start, self._default_duration)

        session.stage = CallStage.COMPLETE
        return TurnResult(
            f"Amazing, {appointment.name}. I have you down for a {appointment.service} "
            f"on {describe_time(appointment)}. You will get a confirmation shortly.",
            end_call=True,
            intent=Intent.BOOKING,
        )
