"""LLM-assisted structured extraction policy.

Each turn makes one assistant call with the running history, the current
appointment and the new utterance.  The assistant's reply is spoken; its
``collected`` fields are normalized and merged into the appointment.  When
every required field is filled, a confirmation clause is appended and the
turn ends the call.

If the assistant fails (timeout, malformed output, missing credentials)
the caller hears a fixed apology and nothing is merged.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Sequence

from frontdesk.assistant import AssistantClient, AssistantError
from frontdesk.dates import extract_datetime
from frontdesk.normalize import normalize_fields
from frontdesk.policies.base import (
    ConversationPolicy,
    TurnResult,
    describe_time,
    ensure_reply,
)
from frontdesk.session import HISTORY_LIMIT, CallSession, CallStage, Intent
from frontdesk.tools.availability import service_duration

log = logging.getLogger("frontdesk.policies.llm")

APOLOGY = (
    "I'm sorry, I'm having a little trouble right now. "
    "Could you please say that again?"
)

FIELD_LABELS = {
    "name": "name",
    "email": "email address",
    "service": "service",
    "gender": "gender",
    "time": "appointment date and time",
    "phone": "phone number",
}

SYSTEM_PROMPT = """\
You are {assistant}, the friendly front-desk assistant for {business}. Collect \
the caller's appointment details ({fields}). Keep replies under two sentences, \
confirm what you heard, and politely ask for whichever detail is missing. \
Mention the hours (Tuesday to Saturday, 9am to 7pm) when it helps, and never \
promise availability; just say it will be confirmed.

Replies are read aloud by text-to-speech. Never say "null", "none" or "not set".

Today is {today}. Times are in the {timezone} time zone.

Already collected: {collected}
Still needed: {missing}. Ask for "{next_field}" next.

You MUST respond with valid JSON only, in exactly this shape:
{{"reply": "your spoken reply", "collected": {{"name": null, "email": null, \
"service": null, "gender": null, "datetime": null, "phone": null}}, "notes": ""}}

"datetime" is an ISO 8601 timestamp. Only fill "collected" values you actually \
heard in the caller's latest message; use null for the rest."""


class AssistantPolicy(ConversationPolicy):
    name = "assistant"

    def __init__(
        self,
        assistant: AssistantClient,
        required_fields: Sequence[str] = ("name", "service", "time"),
        business_name: str = "",
        assistant_name: str = "",
        timezone: str = "UTC",
        default_country_code: str = "1",
        default_duration: int = 60,
        history_limit: int = HISTORY_LIMIT,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        super().__init__(required_fields, timezone=timezone, now=now)
        self._assistant = assistant
        self._business_name = business_name
        self._assistant_name = assistant_name
        self._country_code = default_country_code
        self._default_duration = default_duration
        self._history_limit = history_limit

    def render_system_prompt(self, session: CallSession) -> str:
        appointment = session.appointment
        collected = appointment.filled_summary()
        missing = appointment.missing_fields(self.required_fields)
        return SYSTEM_PROMPT.format(
            assistant=self._assistant_name or "the assistant",
            business=self._business_name or "the studio",
            fields=", ".join(FIELD_LABELS.get(f, f) for f in self.required_fields),
            today=f"{self.now():%A, %B %d, %Y}",
            timezone=self._timezone,
            collected=", ".join(f"{k}={v}" for k, v in collected.items()) or "nothing yet",
            missing=", ".join(missing) or "nothing",
            next_field=missing[0] if missing else "confirmation",
        )

    def confirmation_clause(self, session: CallSession) -> str:
        appointment = session.appointment
        parts = [f"I have you down for a {appointment.service or 'visit'} on {describe_time(appointment)}"]
        if appointment.name:
            parts.append(f"under the name {appointment.name}")
        clause = " ".join(parts) + "."
        if appointment.email:
            clause += f" We will send the details to {appointment.email}."
        return clause

    async def handle_turn(self, session: CallSession, utterance: str) -> TurnResult:
        session.append_message("user", utterance, limit=self._history_limit)
        prior = [m.model_dump() for m in session.history[:-1]]

        try:
            result = await self._assistant.complete(
                self.render_system_prompt(session), prior, utterance,
            )
        except AssistantError as e:
            log.warning("Assistant failed for call %s: %s", session.id or "<ephemeral>", e)
            session.append_message("assistant", APOLOGY, limit=self._history_limit)
            return TurnResult(APOLOGY, intent=session.last_intent)

        now = self.now()
        fields = normalize_fields(
            result.collected,
            reference_now=now,
            tz=self._timezone,
            default_country_code=self._country_code,
        )
        written = session.merge_appointment_fields(fields)
        appointment = session.appointment

        if "service" in written:
            appointment.duration_minutes = service_duration(
                appointment.service, self._default_duration,
            )
        if appointment.is_filled("time") and ("time" in written or appointment.start is None):
            start = extract_datetime(appointment.time, reference_now=now, tz=self._timezone)
            if start is not None:
                appointment.accept_start(start, self._default_duration)
        elif "service" in written and appointment.start is not None:
            # new service, new duration
            appointment.accept_start(appointment.start, self._default_duration)
        if written:
            session.last_intent = Intent.BOOKING
            log.info("Call %s collected: %s", session.id or "<ephemeral>", ", ".join(written))

        reply = ensure_reply(result.reply)
        end_call = False
        if self.is_complete(session):
            reply = f"{reply} {self.confirmation_clause(session)}"
            session.stage = CallStage.COMPLETE
            end_call = True

        session.append_message("assistant", reply, limit=self._history_limit)
        return TurnResult(reply, end_call=end_call, intent=session.last_intent)
