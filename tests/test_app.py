"""HTTP-level tests for the webhook, audio and admin routes."""

from datetime import datetime
from unittest.mock import AsyncMock
from zoneinfo import ZoneInfo

import pytest
from fastapi.testclient import TestClient

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from frontdesk.app import build_policy, create_app
from frontdesk.call_flow import CallFlowController
from frontdesk.config import Settings
from frontdesk.policies import AssistantPolicy, KeywordRouterPolicy
from frontdesk.session import InMemorySessionStore
from frontdesk.speech import AudioCache, SpeechSynthesizer, SynthesizedAudio
from frontdesk.tools.availability import SlotProposer
from frontdesk.tools.booking import BookingFinalizer

TZ = "America/New_York"
NOW = datetime(2026, 3, 9, 10, 0, tzinfo=ZoneInfo(TZ))


class EchoSynthesizer(SpeechSynthesizer):
    async def synthesize(self, text):
        return SynthesizedAudio(data=b"ID3" + text.encode(), mime_type="audio/mpeg")


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        public_base_url="https://desk.example.com",
        admin_api_key="",
        debug=True,
    )


@pytest.fixture
def finalizer():
    return AsyncMock(spec=BookingFinalizer)


@pytest.fixture
def controller(finalizer):
    return CallFlowController(
        store=InMemorySessionStore(),
        policy=KeywordRouterPolicy(SlotProposer(None, timezone=TZ), timezone=TZ, now=lambda: NOW),
        synthesizer=EchoSynthesizer(),
        audio_cache=AudioCache(),
        finalizer=finalizer,
        business_name="Luna Hair Studio",
        assistant_name="Luna",
    )


@pytest.fixture
def client(settings, controller, monkeypatch):
    monkeypatch.setattr("frontdesk.auth.settings", settings)
    return TestClient(create_app(settings=settings, controller=controller))


class TestHealth:
    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"


class TestVoiceWebhooks:
    def test_incoming_call_returns_gather(self, client, controller):
        resp = client.post("/incoming-call", data={"CallSid": "CA1", "From": "+15551234567"})

        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("application/xml")
        assert "<Gather" in resp.text
        assert 'action="https://desk.example.com/process-speech"' in resp.text
        assert "https://desk.example.com/audio/" in resp.text
        assert controller.store.get("CA1").caller == "+15551234567"

    def test_empty_speech_result(self, client, controller):
        client.post("/incoming-call", data={"CallSid": "CA1", "From": "+15551234567"})

        resp = client.post("/process-speech", data={"CallSid": "CA1", "From": "+15551234567"})

        assert resp.status_code == 200
        assert "<Gather" in resp.text
        assert controller.store.get("CA1").turn_count == 0

    def test_full_call(self, client, controller, finalizer):
        form = {"CallSid": "CA1", "From": "+15551234567"}
        client.post("/incoming-call", data=form)
        client.post("/process-speech", data={**form, "SpeechResult": "I'd like a haircut"})
        client.post("/process-speech", data={**form, "SpeechResult": "the first one"})
        resp = client.post("/process-speech", data={**form, "SpeechResult": "My name is Ann"})

        assert "<Hangup />" in resp.text
        assert "Goodbye!" in resp.text
        assert controller.store.get("CA1") is None
        finalizer.finalize.assert_awaited_once()
        assert finalizer.finalize.call_args.kwargs["caller"] == "+15551234567"

    def test_base_url_from_forwarded_headers(self, controller):
        settings = Settings(_env_file=None, public_base_url="")
        client = TestClient(create_app(settings=settings, controller=controller))

        resp = client.post(
            "/incoming-call",
            data={"CallSid": "CA2"},
            headers={"x-forwarded-proto": "https", "x-forwarded-host": "abc.ngrok.io"},
        )

        assert "https://abc.ngrok.io/audio/" in resp.text


class TestAudio:
    def test_serves_cached_audio(self, client, controller):
        entry = controller.audio_cache.put(b"ID3data", "audio/mpeg")

        resp = client.get(f"/audio/{entry.id}")

        assert resp.status_code == 200
        assert resp.content == b"ID3data"
        assert resp.headers["content-type"] == "audio/mpeg"
        assert resp.headers["cache-control"] == "no-store"

    def test_unknown_audio_404(self, client):
        resp = client.get("/audio/does-not-exist")
        assert resp.status_code == 404
        assert resp.text == "Audio not found"

    def test_expired_audio_404(self, client, controller):
        clock = {"now": 0.0}
        controller.audio_cache = AudioCache(ttl_seconds=300, clock=lambda: clock["now"])
        entry = controller.audio_cache.put(b"ID3data")
        clock["now"] = 301.0

        assert client.get(f"/audio/{entry.id}").status_code == 404


class TestAdminSessions:
    def test_list_sessions(self, client, controller):
        controller.store.get_or_create("CA1", "+15551234567")

        resp = client.get("/api/sessions")

        assert resp.status_code == 200
        body = resp.json()
        assert body["count"] == 1
        assert body["sessions"][0]["call_id"] == "CA1"
        assert body["sessions"][0]["caller"] == "+15***67"

    def test_session_detail(self, client, controller):
        session = controller.store.get_or_create("CA1")
        session.append_message("user", "hello")

        resp = client.get("/api/sessions/CA1")

        assert resp.json()["history"] == [{"role": "user", "content": "hello"}]

    def test_unknown_session_404(self, client):
        assert client.get("/api/sessions/nope").status_code == 404


class TestBuildPolicy:
    def test_keyword_by_default(self):
        settings = Settings(_env_file=None)
        policy = build_policy(settings, SlotProposer(None))
        assert isinstance(policy, KeywordRouterPolicy)

    def test_assistant_policy(self):
        settings = Settings(
            _env_file=None,
            conversation_policy="assistant",
            required_fields="name,service,time,email",
        )
        policy = build_policy(settings, SlotProposer(None))
        assert isinstance(policy, AssistantPolicy)
        assert policy.required_fields == ("name", "service", "time", "email")
