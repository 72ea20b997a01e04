"""Application configuration via environment variables."""

from __future__ import annotations

import logging

from pydantic_settings import BaseSettings

log = logging.getLogger("frontdesk.config")

POLICIES = {"keyword", "assistant"}
APPOINTMENT_FIELDS = ("name", "service", "time", "email", "gender", "phone")


class Settings(BaseSettings):
    # Business
    business_name: str = "Luna Hair Studio"
    assistant_name: str = "Luna"
    speech_language: str = "en-US"
    calendar_timezone: str = "America/New_York"
    public_base_url: str = ""

    # Conversation
    conversation_policy: str = "keyword"
    required_fields: str = "name,service,time"
    history_limit: int = 12
    default_duration_minutes: int = 60
    default_country_code: str = "1"
    fallback_weekday: int = 2  # Monday = 0
    fallback_hour: int = 15

    # ElevenLabs speech synthesis
    elevenlabs_api_key: str = ""
    elevenlabs_voice_id: str = ""
    elevenlabs_model_id: str = "eleven_turbo_v2"
    elevenlabs_output_format: str = "mp3_44100_128"
    tts_stability: float = 0.6
    tts_similarity_boost: float = 0.8
    tts_timeout_seconds: float = 15.0
    max_audio_bytes: int = 5 * 1024 * 1024

    # Audio cache
    audio_ttl_seconds: float = 300.0
    audio_sweep_interval_seconds: float = 60.0

    # Sessions
    session_idle_ttl_seconds: float = 1800.0
    session_sweep_interval_seconds: float = 60.0

    # LLM assistant (OpenRouter)
    openrouter_api_key: str = ""
    openrouter_model: str = "gpt-4.1-nano"
    openrouter_url: str = "https://openrouter.ai/api/v1/chat/completions"
    assistant_timeout_seconds: float = 15.0
    assistant_temperature: float = 0.3

    # Twilio messaging
    twilio_account_sid: str = ""
    twilio_auth_token: str = ""
    twilio_phone_number: str = ""
    demo_whatsapp_number: str = ""

    # Google Calendar
    google_service_account_json: str = ""
    google_calendar_id: str = "primary"

    # Admin auth
    admin_api_key: str = ""

    # Server
    host: str = "127.0.0.1"
    port: int = 8080
    debug: bool = False

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @property
    def required_field_set(self) -> tuple[str, ...]:
        """Parsed ``required_fields``, in configured order."""
        return tuple(f.strip() for f in self.required_fields.split(",") if f.strip())

    def validate_startup(self) -> list[str]:
        """Validate configuration at startup. Returns warnings, raises on errors."""
        warnings: list[str] = []

        if self.conversation_policy not in POLICIES:
            raise ValueError(
                f"CONVERSATION_POLICY must be one of {sorted(POLICIES)}, "
                f"got {self.conversation_policy!r}."
            )

        unknown = [f for f in self.required_field_set if f not in APPOINTMENT_FIELDS]
        if unknown:
            raise ValueError(f"REQUIRED_FIELDS contains unknown fields: {unknown}")
        if not self.required_field_set:
            raise ValueError("REQUIRED_FIELDS must name at least one field.")

        if not self.elevenlabs_api_key or not self.elevenlabs_voice_id:
            warnings.append(
                "ELEVENLABS_API_KEY / ELEVENLABS_VOICE_ID not set. "
                "Every call will end with the technical-difficulties line."
            )

        if self.conversation_policy == "assistant" and not self.openrouter_api_key:
            warnings.append(
                "OPENROUTER_API_KEY not set. The assistant policy will only "
                "produce its fallback apology."
            )

        if not (self.twilio_account_sid and self.twilio_auth_token and self.twilio_phone_number):
            warnings.append("Twilio credentials incomplete. Confirmation messages are disabled.")

        if not self.google_service_account_json:
            warnings.append(
                "GOOGLE_SERVICE_ACCOUNT_JSON not set. Calendar sync is disabled "
                "and all proposed slots are treated as free."
            )

        if not self.admin_api_key:
            if self.debug:
                warnings.append("ADMIN_API_KEY not set. Admin APIs are open (DEBUG=true).")
            else:
                warnings.append(
                    "ADMIN_API_KEY not set. Admin APIs are locked in production."
                )

        return warnings


settings = Settings()
