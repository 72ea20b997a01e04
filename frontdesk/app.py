"""FastAPI application: Twilio voice webhooks for the front-desk assistant.

Endpoints:

  POST /incoming-call         Twilio webhook: greet the caller, start a speech Gather
  POST /process-speech        Twilio Gather action: one caller utterance → one reply
  GET  /audio/{audio_id}      Synthesized reply audio, fetched by Twilio's <Play>
  GET  /health                Health check
  GET  /api/sessions          Active call sessions (admin)
  GET  /api/sessions/{id}     One call session with its history (admin)

The call flow:
  1. Incoming call hits POST /incoming-call
  2. The greeting is synthesized, cached, and returned as <Gather><Play>
  3. Twilio recognizes the caller's speech and posts SpeechResult to /process-speech
  4. The conversation policy replies; the loop continues until a booking
     completes, then the reply is played with a closing line and the call hangs up
"""

from __future__ import annotations

# Load .env into os.environ early; provider SDKs read it directly.
from dotenv import load_dotenv
load_dotenv()

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)-20s %(levelname)-7s %(message)s",
)

from fastapi import BackgroundTasks, Depends, FastAPI, Form, Request
from fastapi.responses import JSONResponse, Response

from frontdesk.assistant import OpenRouterAssistant
from frontdesk.auth import require_admin_token
from frontdesk.calendar_providers.google import GoogleCalendarProvider
from frontdesk.call_flow import CallFlowController, TurnOutcome
from frontdesk.config import Settings, settings as default_settings
from frontdesk.messaging.whatsapp import TwilioWhatsAppSender
from frontdesk.policies import AssistantPolicy, ConversationPolicy, KeywordRouterPolicy
from frontdesk.session import InMemorySessionStore
from frontdesk.speech import AudioCache
from frontdesk.speech.elevenlabs import ElevenLabsSynthesizer
from frontdesk.tools import BookingFinalizer, SlotProposer

log = logging.getLogger("frontdesk.app")

_START_TIME = time.time()


def build_policy(
    settings: Settings,
    proposer: SlotProposer,
    assistant: Optional[OpenRouterAssistant] = None,
) -> ConversationPolicy:
    """The conversation policy named by CONVERSATION_POLICY."""
    if settings.conversation_policy == "assistant":
        return AssistantPolicy(
            assistant or OpenRouterAssistant(
                api_key=settings.openrouter_api_key,
                model=settings.openrouter_model,
                url=settings.openrouter_url,
                timeout_seconds=settings.assistant_timeout_seconds,
                temperature=settings.assistant_temperature,
            ),
            required_fields=settings.required_field_set,
            business_name=settings.business_name,
            assistant_name=settings.assistant_name,
            timezone=settings.calendar_timezone,
            default_country_code=settings.default_country_code,
            default_duration=settings.default_duration_minutes,
            history_limit=settings.history_limit,
        )
    return KeywordRouterPolicy(
        proposer,
        timezone=settings.calendar_timezone,
        default_duration=settings.default_duration_minutes,
        history_limit=settings.history_limit,
    )


def build_controller(settings: Settings) -> CallFlowController:
    """Wire the production collaborators from settings.

    Calendar and messaging are optional: when their credentials are
    missing the call still works, slots are proposed unchecked, and the
    booking is only confirmed by voice.
    """
    provider = None
    try:
        provider = GoogleCalendarProvider(settings.google_service_account_json or None)
    except (ValueError, OSError) as e:
        log.warning("Google Calendar unavailable, running without calendar: %s", e)

    sender = None
    try:
        sender = TwilioWhatsAppSender(
            account_sid=settings.twilio_account_sid,
            auth_token=settings.twilio_auth_token,
            from_number=settings.twilio_phone_number,
            demo_number=settings.demo_whatsapp_number,
            default_country_code=settings.default_country_code,
        )
    except ValueError as e:
        log.warning("Confirmation messages disabled: %s", e)

    proposer = SlotProposer(
        provider,
        calendar_id=settings.google_calendar_id,
        timezone=settings.calendar_timezone,
        default_duration=settings.default_duration_minutes,
    )
    finalizer = BookingFinalizer(
        provider,
        sender,
        calendar_id=settings.google_calendar_id,
        timezone=settings.calendar_timezone,
        business_name=settings.business_name,
        assistant_name=settings.assistant_name,
        default_duration=settings.default_duration_minutes,
        fallback_weekday=settings.fallback_weekday,
        fallback_hour=settings.fallback_hour,
    )
    synthesizer = ElevenLabsSynthesizer(
        api_key=settings.elevenlabs_api_key,
        voice_id=settings.elevenlabs_voice_id,
        model_id=settings.elevenlabs_model_id,
        output_format=settings.elevenlabs_output_format,
        stability=settings.tts_stability,
        similarity_boost=settings.tts_similarity_boost,
        timeout_seconds=settings.tts_timeout_seconds,
        max_bytes=settings.max_audio_bytes,
    )
    return CallFlowController(
        store=InMemorySessionStore(history_limit=settings.history_limit),
        policy=build_policy(settings, proposer),
        synthesizer=synthesizer,
        audio_cache=AudioCache(ttl_seconds=settings.audio_ttl_seconds),
        finalizer=finalizer,
        business_name=settings.business_name,
        assistant_name=settings.assistant_name,
        language=settings.speech_language,
    )


async def _sweep_loop(controller: CallFlowController, settings: Settings) -> None:
    """Evict expired audio and reap sessions abandoned by a hang-up."""
    interval = min(settings.audio_sweep_interval_seconds, settings.session_sweep_interval_seconds)
    while True:
        await asyncio.sleep(interval)
        try:
            controller.audio_cache.sweep()
            controller.store.reap_idle(settings.session_idle_ttl_seconds)
        except Exception:
            log.exception("Sweep failed")


def _base_url(request: Request, settings: Settings) -> str:
    """Public URL Twilio should use to reach us (audio and Gather action)."""
    if settings.public_base_url:
        return settings.public_base_url.rstrip("/")
    host = request.headers.get("x-forwarded-host") or request.headers.get("host", "localhost:8080")
    scheme = request.headers.get("x-forwarded-proto") or request.url.scheme
    return f"{scheme}://{host}"


def _twiml_response(outcome: TurnOutcome) -> Response:
    return Response(content=outcome.twiml, media_type="application/xml")


def create_app(
    settings: Optional[Settings] = None,
    controller: Optional[CallFlowController] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or default_settings
    for warning in settings.validate_startup():
        log.warning(warning)
    controller = controller or build_controller(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        task = asyncio.create_task(_sweep_loop(controller, settings))
        log.info(
            "Front desk ready: %s (policy=%s)",
            settings.business_name, settings.conversation_policy,
        )
        try:
            yield
        finally:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    app = FastAPI(
        title="Voice Front Desk",
        description="Phone receptionist that books appointments over Twilio voice",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.controller = controller

    # ── Health check ───────────────────────────────────────────

    @app.get("/health")
    async def health() -> JSONResponse:
        uptime = round(time.time() - _START_TIME, 1)
        return JSONResponse({"status": "ok", "uptime": uptime})

    # ── Twilio voice webhooks ──────────────────────────────────

    @app.post("/incoming-call")
    async def incoming_call(
        request: Request,
        call_sid: str = Form(default="", alias="CallSid"),
        caller: str = Form(default="", alias="From"),
    ) -> Response:
        """Greeting turn: <Gather> wrapping the greeting audio."""
        outcome = await controller.start_call(call_sid, caller, _base_url(request, settings))
        return _twiml_response(outcome)

    @app.post("/process-speech")
    async def process_speech(
        request: Request,
        background_tasks: BackgroundTasks,
        call_sid: str = Form(default="", alias="CallSid"),
        caller: str = Form(default="", alias="From"),
        speech: str = Form(default="", alias="SpeechResult"),
    ) -> Response:
        """Gather action: one utterance in, one TwiML reply out.

        Booking side effects run after the hang-up TwiML is sent.
        """
        outcome = await controller.handle_speech(
            call_sid, caller, speech, _base_url(request, settings),
            defer_side_effects=True,
        )
        if outcome.pending_booking is not None:
            background_tasks.add_task(controller.complete_booking, outcome.pending_booking, caller)
        return _twiml_response(outcome)

    # ── Audio retrieval ────────────────────────────────────────

    @app.get("/audio/{audio_id}")
    async def get_audio(audio_id: str) -> Response:
        entry = controller.audio_cache.get(audio_id)
        if entry is None:
            return Response(content="Audio not found", status_code=404, media_type="text/plain")
        return Response(
            content=entry.data,
            media_type=entry.mime_type,
            headers={"Cache-Control": "no-store"},
        )

    # ── Admin: session inspection ──────────────────────────────

    @app.get("/api/sessions", dependencies=[Depends(require_admin_token)])
    async def list_sessions():
        sessions = controller.store.all()
        return JSONResponse({
            "sessions": [s.to_dict() for s in sessions.values()],
            "count": len(sessions),
        })

    @app.get("/api/sessions/{call_id}", dependencies=[Depends(require_admin_token)])
    async def get_session(call_id: str):
        session = controller.store.get(call_id)
        if not session:
            return JSONResponse({"error": "Session not found"}, status_code=404)
        return JSONResponse(session.to_dict(detail=True))

    return app


# ── Module-level app instance for uvicorn ──────────────────────

app = create_app()


if __name__ == "__main__":
    import uvicorn

    log_config = uvicorn.config.LOGGING_CONFIG
    log_config["formatters"]["default"]["fmt"] = (
        "%(asctime)s %(name)-12s %(levelname)-8s %(message)s"
    )

    uvicorn.run(
        "frontdesk.app:app",
        host=default_settings.host,
        port=default_settings.port,
        reload=default_settings.debug,
        log_config=log_config,
    )
