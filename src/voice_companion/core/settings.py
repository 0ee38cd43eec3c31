"""
Settings management for the voice companion engine.
"""

import logging
import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel
from pydantic import Field
from pydantic import SecretStr

logger = logging.getLogger(__name__)

ENV_PREFIX = "VCE_"

# Language code -> (display name, recognition/synthesis locale)
LANGUAGES: dict[str, tuple[str, str]] = {
    "en": ("English", "en-US"),
    "es": ("Spanish", "es-ES"),
    "fr": ("French", "fr-FR"),
    "de": ("German", "de-DE"),
    "hi": ("Hindi", "hi-IN"),
    "zh": ("Chinese", "zh-CN"),
    "ja": ("Japanese", "ja-JP"),
    "pt": ("Portuguese", "pt-BR"),
    "ar": ("Arabic", "ar-SA"),
}

DEFAULT_ELEVENLABS_VOICES: dict[str, str] = {
    "en": "EXAVITQu4vr4xnSDxMaL",
    "es": "VR6AewLTigWG4xSOukaG",
    "fr": "cgSgspJ2msm6clMCkdW9",
    "de": "iP95p4xoKVk53GoZ742B",
    "hi": "pFZP5JQG7iQjIQuC4Bku",
    "zh": "XB0fDUnXU5powFXDhCwa",
    "ja": "jBpfuIE2acCO8z3wKNLl",
    "pt": "yoZ06aMxZJJ28mfd3POQ",
    "ar": "onwK4e9ZLuTAKqWW03F9",
}

# Which provider family each credential env var feeds
_CREDENTIAL_FAMILIES: dict[str, tuple[str, ...]] = {
    "groq": ("generation",),
    "gemini": ("generation",),
    "cohere": ("generation",),
    "huggingface": ("generation",),
    "openai": ("generation", "synthesis"),
    "elevenlabs": ("synthesis",),
}


class ProviderConfig(BaseModel):
    """Priority order and credentials for one provider family."""

    priority_order: list[str] = Field(default_factory=list, description="Provider ids, first tried first")
    credentials: dict[str, SecretStr] = Field(default_factory=dict, description="Per-provider secrets")
    models: dict[str, list[str]] = Field(
        default_factory=dict, description="Optional per-provider model list override"
    )

    def credential(self, provider: str) -> Optional[str]:
        """Return the plain secret for a provider, or None when unset or blank."""
        secret = self.credentials.get(provider)
        if secret is None:
            return None
        value = secret.get_secret_value().strip()
        return value or None


class ConversationSettings(BaseModel):
    session_id: str = Field(default="default", description="Transcript cache key")
    context_window: int = Field(default=5, ge=1, description="Messages of history sent with each prompt")
    generation_deadline: float = Field(default=30.0, gt=0, description="Overall generation deadline (s)")
    language: str = Field(default="en", description="Conversation language code")
    agent_mode: bool = Field(default=True, description="Allow the assistant to act on the page")
    auto_speak: bool = Field(default=True, description="Speak replies outside voice mode too")


class RecognitionSettings(BaseModel):
    quiet_period_ms: int = Field(default=800, ge=0, description="Silence after a final result before submit")
    restart_delay_ms: int = Field(default=300, ge=0, description="Delay before restarting ended capture")


class SynthesisTuning(BaseModel):
    restop_delay_ms: int = Field(default=10, ge=0, description="Delay before the second stop request")
    speech_rate: float = Field(default=0.95, ge=0.25, le=4.0, description="Speaking speed")
    elevenlabs_model: str = Field(default="eleven_multilingual_v2")
    elevenlabs_voices: dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_ELEVENLABS_VOICES))
    openai_model: str = Field(default="tts-1-hd")
    openai_voice: str = Field(default="nova")


class ActionSettings(BaseModel):
    click_dwell_ms: int = Field(default=500, ge=0, description="Emphasis time before clicking")
    scroll_dwell_ms: int = Field(default=2000, ge=0, description="Emphasis time for scroll targets")
    highlight_dwell_ms: int = Field(default=3000, ge=0, description="Emphasis time for highlights")
    auto_emphasize: bool = Field(default=True, description="Emphasize page content that a reply explains")


class HttpSettings(BaseModel):
    connect_timeout: float = Field(default=5.0, gt=0)
    read_timeout: float = Field(default=30.0, gt=0)
    write_timeout: float = Field(default=30.0, gt=0)
    pool_timeout: float = Field(default=5.0, gt=0)
    max_connections: int = Field(default=10, ge=1)
    max_keepalive_connections: int = Field(default=5, ge=0)
    ollama_host: str = Field(default="http://127.0.0.1:11434", description="Local Ollama server URL")


class StorageSettings(BaseModel):
    transcript_dir: Optional[Path] = Field(
        default=None, description="Transcript cache directory (platform cache dir when unset)"
    )


class Settings(BaseModel):
    """Engine settings with YAML file and environment variable support."""

    generation: ProviderConfig = Field(
        default_factory=lambda: ProviderConfig(priority_order=["groq", "gemini", "openai"])
    )
    synthesis: ProviderConfig = Field(
        default_factory=lambda: ProviderConfig(priority_order=["elevenlabs", "openai"])
    )
    conversation: ConversationSettings = Field(default_factory=ConversationSettings)
    recognition: RecognitionSettings = Field(default_factory=RecognitionSettings)
    synthesis_tuning: SynthesisTuning = Field(default_factory=SynthesisTuning)
    actions: ActionSettings = Field(default_factory=ActionSettings)
    http: HttpSettings = Field(default_factory=HttpSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)

    @property
    def language_name(self) -> str:
        return LANGUAGES.get(self.conversation.language, LANGUAGES["en"])[0]

    @property
    def locale(self) -> str:
        return LANGUAGES.get(self.conversation.language, LANGUAGES["en"])[1]

    @classmethod
    def from_env(
        cls,
        env_key: str = "VCE_CONFIG",
        default_path: str = "configs/base.yaml",
        config_path: Optional[Path] = None,
    ) -> "Settings":
        """Load settings from a YAML config file, then apply environment overrides."""
        config_path = Path(config_path) if config_path else Path(os.getenv(env_key, default_path))

        data: dict[str, Any] = {}

        if config_path.exists():
            try:
                with open(config_path, encoding="utf-8") as f:
                    file_data = yaml.safe_load(f) or {}
                data.update(file_data)
                logger.info(f"Loaded config from {config_path}")
            except (OSError, yaml.YAMLError) as e:
                logger.warning(f"Failed to load config from {config_path}: {e}")
        else:
            logger.info(f"Config file {config_path} not found, using defaults")

        applied = apply_env_overrides(data, os.environ)
        if applied:
            # Names only; values may be secrets
            logger.info(f"Applied environment overrides: {applied}")

        return cls.model_validate(data)

    def to_dict(self) -> dict[str, Any]:
        """Convert settings to a dictionary with secrets masked."""
        return self.model_dump(mode="json")


def apply_env_overrides(data: dict[str, Any], environ) -> list[str]:
    """
    Merge VCE_ environment variables into a raw settings dict.

    Two forms are understood:
        VCE_<PROVIDER>_API_KEY      credential for every family using that provider
        VCE_<SECTION>__<FIELD>      nested scalar override, e.g. VCE_CONVERSATION__LANGUAGE=fr

    Args:
        data: Raw settings dict, modified in place
        environ: Mapping of environment variables

    Returns:
        list[str]: Names of the variables that were applied
    """
    applied = []
    for key, value in environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        name = key[len(ENV_PREFIX):].lower()
        if name == "config":
            continue

        if name.endswith("_api_key"):
            provider = name[: -len("_api_key")]
            for family in _CREDENTIAL_FAMILIES.get(provider, ()):
                section = data.setdefault(family, {})
                section.setdefault("credentials", {})[provider] = value
            applied.append(key)
        elif "__" in name:
            section, field = name.split("__", 1)
            target = data.setdefault(section, {})
            if isinstance(target, dict):
                if field == "priority_order":
                    target[field] = [p.strip() for p in value.split(",") if p.strip()]
                else:
                    target[field] = value
                applied.append(key)
    return applied


# Global settings instance
_settings: Optional[Settings] = None


def get_settings(config_path: Optional[Path] = None) -> Settings:
    """Get global settings instance, loading it on first use."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env(config_path=config_path)
    return _settings


def reload_settings(config_path: Optional[Path] = None) -> Settings:
    """Reload settings from environment and config."""
    global _settings
    _settings = Settings.from_env(config_path=config_path)
    return _settings
