"""
Unit tests for settings loading and environment overrides.
"""

import pytest
from pydantic import ValidationError

from voice_companion.core.settings import ProviderConfig
from voice_companion.core.settings import Settings
from voice_companion.core.settings import apply_env_overrides
from voice_companion.core.settings import get_settings
from voice_companion.core.settings import reload_settings


class TestSettingsDefaults:
    def test_default_priorities(self):
        settings = Settings()

        assert settings.generation.priority_order == ["groq", "gemini", "openai"]
        assert settings.synthesis.priority_order == ["elevenlabs", "openai"]
        assert settings.conversation.context_window == 5
        assert settings.conversation.generation_deadline == 30.0
        assert settings.recognition.quiet_period_ms == 800
        assert settings.recognition.restart_delay_ms == 300
        assert settings.synthesis_tuning.restop_delay_ms == 10

    def test_language_lookup(self):
        settings = Settings(conversation={"language": "fr"})
        assert settings.language_name == "French"
        assert settings.locale == "fr-FR"

    def test_unknown_language_falls_back_to_english(self):
        settings = Settings(conversation={"language": "xx"})
        assert settings.language_name == "English"

    def test_context_window_must_be_positive(self):
        with pytest.raises(ValidationError):
            Settings(conversation={"context_window": 0})


class TestCredentials:
    def test_blank_credential_is_missing(self):
        config = ProviderConfig(credentials={"groq": "  ", "openai": "sk-test"})

        assert config.credential("groq") is None
        assert config.credential("openai") == "sk-test"
        assert config.credential("gemini") is None

    def test_credentials_are_masked_when_dumped(self):
        settings = Settings(generation={"credentials": {"groq": "gsk-secret"}})
        dumped = settings.to_dict()

        assert "gsk-secret" not in str(dumped)
        assert "gsk-secret" not in repr(settings)


class TestEnvironmentOverrides:
    def test_api_key_routes_to_families(self):
        data = {}
        applied = apply_env_overrides(
            data, {"VCE_OPENAI_API_KEY": "sk-1", "VCE_ELEVENLABS_API_KEY": "el-1", "HOME": "/root"}
        )

        assert sorted(applied) == ["VCE_ELEVENLABS_API_KEY", "VCE_OPENAI_API_KEY"]
        assert data["generation"]["credentials"] == {"openai": "sk-1"}
        assert data["synthesis"]["credentials"] == {"openai": "sk-1", "elevenlabs": "el-1"}

    def test_nested_override(self):
        data = {"conversation": {"language": "en"}}
        apply_env_overrides(
            data,
            {"VCE_CONVERSATION__LANGUAGE": "de", "VCE_GENERATION__PRIORITY_ORDER": "ollama, groq"},
        )

        settings = Settings.model_validate(data)
        assert settings.conversation.language == "de"
        assert settings.generation.priority_order == ["ollama", "groq"]

    def test_config_path_variable_is_not_a_setting(self):
        data = {}
        assert apply_env_overrides(data, {"VCE_CONFIG": "/tmp/x.yaml"}) == []
        assert data == {}


class TestSettingsFile:
    def test_from_yaml_file(self, tmp_path, monkeypatch):
        config_file = tmp_path / "settings.yaml"
        config_file.write_text(
            "conversation:\n  language: es\n  agent_mode: false\nrecognition:\n  quiet_period_ms: 500\n"
        )
        monkeypatch.setenv("VCE_GROQ_API_KEY", "gsk-env")

        settings = Settings.from_env(config_path=config_file)

        assert settings.conversation.language == "es"
        assert settings.conversation.agent_mode is False
        assert settings.recognition.quiet_period_ms == 500
        assert settings.generation.credential("groq") == "gsk-env"

    def test_missing_file_uses_defaults(self, tmp_path):
        settings = Settings.from_env(config_path=tmp_path / "absent.yaml")
        assert settings.conversation.language == "en"

    def test_invalid_yaml_uses_defaults(self, tmp_path):
        config_file = tmp_path / "broken.yaml"
        config_file.write_text("conversation: [unclosed\n")

        settings = Settings.from_env(config_path=config_file)
        assert settings.conversation.session_id == "default"


class TestGlobalSettings:
    @pytest.fixture(autouse=True)
    def fresh_cache(self, monkeypatch):
        monkeypatch.setattr("voice_companion.core.settings._settings", None)

    def test_get_settings_is_cached(self, tmp_path):
        config_file = tmp_path / "settings.yaml"
        config_file.write_text("conversation:\n  language: de\n")

        first = get_settings(config_file)
        config_file.write_text("conversation:\n  language: fr\n")

        assert get_settings() is first
        assert first.conversation.language == "de"

    def test_reload_replaces_cached_settings(self, tmp_path):
        config_file = tmp_path / "settings.yaml"
        config_file.write_text("conversation:\n  language: de\n")
        first = get_settings(config_file)
        config_file.write_text("conversation:\n  language: fr\n")

        reloaded = reload_settings(config_file)

        assert reloaded is not first
        assert reloaded.conversation.language == "fr"
        assert get_settings() is reloaded
