"""Call-flow controller: one webhook turn in, one TwiML document out.

Turn lifecycle:
  1. Look up (or create) the CallSession for the call SID
  2. Empty speech → fixed "didn't catch that" re-prompt, session untouched
  3. Otherwise the conversation policy produces exactly one reply
  4. The reply is synthesized and parked in the AudioCache
  5. Either Play + Gather (keep listening) or Play + closing line + Hangup
  6. On a call-ending turn the booking side effects run once and the
     session is deleted

Nothing here raises to the webhook: policy errors and synthesis errors
each become a spoken fixed line followed by a hangup.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from frontdesk import twiml
from frontdesk.policies.base import ConversationPolicy, ensure_reply
from frontdesk.session import CallSession, CallStage, SessionStore, redact_pii
from frontdesk.speech import (
    AudioCache,
    SpeechError,
    SpeechNotConfigured,
    SpeechProviderError,
    SpeechSynthesizer,
)
from frontdesk.tools.booking import BookingFinalizer

log = logging.getLogger("frontdesk.call_flow")

DIDNT_CATCH = "I did not catch that. Could you please repeat your request?"
NOT_CONFIGURED_LINE = "Hi, we are experiencing technical difficulties. Please try again shortly."
PROVIDER_TROUBLE_LINE = (
    "Sorry, our voice system is having trouble right now. "
    "Please call back in a few minutes."
)
SOMETHING_WRONG_LINE = "Sorry, something went wrong while processing your request."


def greeting_line(business_name: str, assistant_name: str) -> str:
    return (
        f"Hi, you have reached {business_name}. I am {assistant_name}, "
        "the virtual assistant. How can I help you today?"
    )


def closing_line(business_name: str) -> str:
    return f"Thank you for calling {business_name}. Goodbye!"


def speech_error_line(error: SpeechError) -> str:
    """The fixed line spoken (by the telephony voice) when synthesis fails."""
    if isinstance(error, SpeechNotConfigured):
        return NOT_CONFIGURED_LINE
    if isinstance(error, SpeechProviderError):
        return PROVIDER_TROUBLE_LINE
    return SOMETHING_WRONG_LINE


@dataclass
class TurnOutcome:
    """What one webhook turn produced."""

    twiml: str
    reply: str
    end_call: bool = False
    audio_id: Optional[str] = None
    # Set on a booking turn whose side effects the caller must still run.
    pending_booking: Optional[CallSession] = None


class CallFlowController:
    def __init__(
        self,
        store: SessionStore,
        policy: ConversationPolicy,
        synthesizer: SpeechSynthesizer,
        audio_cache: AudioCache,
        finalizer: Optional[BookingFinalizer] = None,
        business_name: str = "",
        assistant_name: str = "",
        language: str = "en-US",
    ) -> None:
        self.store = store
        self.policy = policy
        self.synthesizer = synthesizer
        self.audio_cache = audio_cache
        self.finalizer = finalizer
        self.business_name = business_name
        self.assistant_name = assistant_name
        self.language = language

    def _audio_url(self, base_url: str, audio_id: str) -> str:
        return f"{base_url.rstrip('/')}/audio/{audio_id}"

    def _action_url(self, base_url: str) -> str:
        return f"{base_url.rstrip('/')}/process-speech"

    async def _speak(self, text: str) -> str:
        """Synthesize and cache ``text``; returns the audio id."""
        audio = await self.synthesizer.synthesize(text)
        return self.audio_cache.put(audio.data, audio.mime_type).id

    def _fail(self, call_id: str, line: str) -> TurnOutcome:
        self.store.delete(call_id)
        return TurnOutcome(twiml=twiml.say_and_hangup(line), reply=line, end_call=True)

    async def start_call(self, call_id: str, caller: str, base_url: str) -> TurnOutcome:
        """Greet the caller and start listening."""
        session = self.store.get_or_create(call_id, caller)
        session.stage = CallStage.GREETING
        log.info("Call started: %s from %s", call_id or "<ephemeral>", redact_pii(caller))

        greeting = greeting_line(self.business_name, self.assistant_name)
        try:
            audio_id = await self._speak(greeting)
        except SpeechError as e:
            log.error("Greeting synthesis failed for %s: %s", call_id, e)
            return self._fail(call_id, speech_error_line(e))
        except Exception:
            log.exception("Greeting failed for %s", call_id)
            return self._fail(call_id, SOMETHING_WRONG_LINE)

        return TurnOutcome(
            twiml=twiml.gather_and_play(
                self._audio_url(base_url, audio_id), self._action_url(base_url), self.language,
            ),
            reply=greeting,
            audio_id=audio_id,
        )

    async def handle_speech(
        self,
        call_id: str,
        caller: str,
        speech: str | None,
        base_url: str,
        defer_side_effects: bool = False,
    ) -> TurnOutcome:
        """Process one recognized utterance.

        With ``defer_side_effects`` the booking is not finalized here;
        the outcome's ``pending_booking`` carries the session for
        :meth:`complete_booking`.
        """
        utterance = (speech or "").strip()
        session = self.store.get_or_create(call_id, caller)

        if not utterance:
            log.info("Empty speech result for %s; re-prompting", call_id or "<ephemeral>")
            return await self._reply(session, DIDNT_CATCH, end_call=False, base_url=base_url)

        session.stage = CallStage.COLLECTING
        session.turn_count += 1
        log.info("Call %s turn %d: %r", call_id or "<ephemeral>", session.turn_count, utterance)

        try:
            result = await self.policy.handle_turn(session, utterance)
        except Exception:
            log.exception("Turn failed for call %s", call_id)
            return self._fail(call_id, SOMETHING_WRONG_LINE)

        outcome = await self._reply(
            session, ensure_reply(result.reply), end_call=result.end_call, base_url=base_url,
        )
        if not (outcome.end_call and outcome.audio_id):
            return outcome

        self.store.delete(call_id)
        if self.finalizer is None:
            log.warning("No booking finalizer configured; call %s not persisted", call_id)
        elif defer_side_effects:
            outcome.pending_booking = session
        else:
            await self.complete_booking(session, caller)
        return outcome

    async def _reply(
        self,
        session: CallSession,
        text: str,
        end_call: bool,
        base_url: str,
    ) -> TurnOutcome:
        try:
            audio_id = await self._speak(text)
        except SpeechError as e:
            log.error("Synthesis failed for call %s: %s", session.id, e)
            return self._fail(session.id, speech_error_line(e))
        except Exception:
            log.exception("Synthesis crashed for call %s", session.id)
            return self._fail(session.id, SOMETHING_WRONG_LINE)

        audio_url = self._audio_url(base_url, audio_id)
        if end_call:
            document = twiml.play_and_hangup(audio_url, closing_line(self.business_name))
        else:
            document = twiml.gather_and_play(audio_url, self._action_url(base_url), self.language)
        return TurnOutcome(twiml=document, reply=text, end_call=end_call, audio_id=audio_id)

    async def complete_booking(self, session: CallSession, caller: str = "") -> None:
        """Run the booking side effects; never raises."""
        if self.finalizer is None:
            return
        try:
            await self.finalizer.finalize(session, caller=caller)
        except Exception:
            log.exception("Booking finalization failed for call %s", session.id)
