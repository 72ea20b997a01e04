"""Tests for settings parsing and startup validation."""

import pytest

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from frontdesk.config import Settings


def make(**kwargs):
    return Settings(_env_file=None, **kwargs)


class TestRequiredFields:
    def test_default(self):
        assert make().required_field_set == ("name", "service", "time")

    def test_whitespace_and_blanks(self):
        assert make(required_fields=" name , email,, ").required_field_set == ("name", "email")


class TestValidateStartup:
    def test_unknown_policy_raises(self):
        with pytest.raises(ValueError, match="CONVERSATION_POLICY"):
            make(conversation_policy="magic").validate_startup()

    def test_unknown_field_raises(self):
        with pytest.raises(ValueError, match="unknown fields"):
            make(required_fields="name,shoe_size").validate_startup()

    def test_empty_fields_raises(self):
        with pytest.raises(ValueError):
            make(required_fields=" , ").validate_startup()

    def test_missing_credentials_are_warnings(self):
        warnings = make(
            elevenlabs_api_key="",
            twilio_account_sid="",
            google_service_account_json="",
            admin_api_key="",
        ).validate_startup()
        text = " ".join(warnings)
        assert "ELEVENLABS_API_KEY" in text
        assert "Twilio" in text
        assert "GOOGLE_SERVICE_ACCOUNT_JSON" in text
        assert "ADMIN_API_KEY" in text

    def test_assistant_policy_warns_without_key(self):
        warnings = make(conversation_policy="assistant", openrouter_api_key="").validate_startup()
        assert any("OPENROUTER_API_KEY" in w for w in warnings)

    def test_fully_configured_has_no_warnings(self):
        warnings = make(
            elevenlabs_api_key="k",
            elevenlabs_voice_id="v",
            twilio_account_sid="AC",
            twilio_auth_token="t",
            twilio_phone_number="+1555",
            google_service_account_json="/sa.json",
            admin_api_key="secret",
        ).validate_startup()
        assert warnings == []
