"""
Voice-synthesis provider adapters.

Remote providers turn text into encoded audio bytes; playback is left to the
synthesis pipeline's single playback handle. On-device synthesis is not a
provider here: it is the pipeline's terminal fallback.
"""

import logging
from typing import Optional, Protocol

import httpx

from voice_companion.core.errors import ProviderUnavailable
from voice_companion.core.settings import ProviderConfig
from voice_companion.core.settings import SynthesisTuning

logger = logging.getLogger(__name__)

# Ids that name the on-device fallback; it is always tried last anyway
ON_DEVICE_IDS = frozenset({"ondevice", "on_device", "webspeech", "browser"})


class SynthesisProvider(Protocol):
    name: str

    async def synthesize(self, text: str) -> bytes: ...


class ElevenLabsProvider:
    name = "elevenlabs"

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: Optional[str],
        tuning: Optional[SynthesisTuning] = None,
        language: str = "en",
    ):
        self.client = client
        self.api_key = api_key
        self.tuning = tuning or SynthesisTuning()
        self.language = language
        self.logger = logging.getLogger(__name__)

    @property
    def voice_id(self) -> str:
        voices = self.tuning.elevenlabs_voices
        return voices.get(self.language) or voices.get("en") or next(iter(voices.values()))

    async def synthesize(self, text: str) -> bytes:
        if not self.api_key:
            raise ProviderUnavailable(self.name, "no credential configured")

        try:
            response = await self.client.post(
                f"https://api.elevenlabs.io/v1/text-to-speech/{self.voice_id}",
                headers={"Accept": "audio/mpeg", "xi-api-key": self.api_key},
                json={
                    "text": text,
                    "model_id": self.tuning.elevenlabs_model,
                    "voice_settings": {"stability": 0.5, "similarity_boost": 0.75},
                },
            )
        except httpx.HTTPError as e:
            raise ProviderUnavailable(self.name, type(e).__name__) from e

        if response.status_code != 200 or not response.content:
            raise ProviderUnavailable(self.name, f"HTTP {response.status_code}")
        return response.content


class OpenAISpeechProvider:
    name = "openai"

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: Optional[str],
        tuning: Optional[SynthesisTuning] = None,
        language: str = "en",
    ):
        self.client = client
        self.api_key = api_key
        self.tuning = tuning or SynthesisTuning()
        self.language = language

    async def synthesize(self, text: str) -> bytes:
        if not self.api_key:
            raise ProviderUnavailable(self.name, "no credential configured")

        try:
            response = await self.client.post(
                "https://api.openai.com/v1/audio/speech",
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={
                    "model": self.tuning.openai_model,
                    "voice": self.tuning.openai_voice,
                    "input": text,
                    "speed": self.tuning.speech_rate,
                },
            )
        except httpx.HTTPError as e:
            raise ProviderUnavailable(self.name, type(e).__name__) from e

        if response.status_code != 200 or not response.content:
            raise ProviderUnavailable(self.name, f"HTTP {response.status_code}")
        return response.content


SYNTHESIS_PROVIDERS = {
    "elevenlabs": ElevenLabsProvider,
    "openai": OpenAISpeechProvider,
}


def build_synthesis_providers(
    config: ProviderConfig,
    client: httpx.AsyncClient,
    tuning: Optional[SynthesisTuning] = None,
    language: str = "en",
) -> list[SynthesisProvider]:
    """Instantiate remote synthesis providers in priority order."""
    providers: list[SynthesisProvider] = []
    for provider_id in config.priority_order:
        if provider_id in ON_DEVICE_IDS:
            continue
        provider_cls = SYNTHESIS_PROVIDERS.get(provider_id)
        if provider_cls is None:
            logger.warning(f"Unknown synthesis provider '{provider_id}' ignored")
            continue
        providers.append(
            provider_cls(client, config.credential(provider_id), tuning=tuning, language=language)
        )
    return providers
