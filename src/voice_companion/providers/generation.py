"""
Text-generation provider adapters.

Every adapter exposes the same capability: ``await provider.generate(prompt)``
returns non-empty text or raises ProviderUnavailable. Adapters hold no
conversation state; each tries its own model list in order before giving up.
"""

import logging
from typing import Any, Optional, Protocol

import httpx

from voice_companion.core.errors import ProviderUnavailable
from voice_companion.core.settings import HttpSettings
from voice_companion.core.settings import ProviderConfig

logger = logging.getLogger(__name__)

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 250

DEFAULT_MODELS: dict[str, list[str]] = {
    "groq": [
        "llama-3.3-70b-versatile",
        "llama-3.1-8b-instant",
        "gemma2-9b-it",
    ],
    "openai": ["gpt-4o", "gpt-4-turbo", "gpt-3.5-turbo"],
    "gemini": ["gemini-1.5-pro-latest", "gemini-1.5-flash-latest"],
    "cohere": ["command-r-plus", "command-r"],
    "huggingface": [
        "mistralai/Mixtral-8x7B-Instruct-v0.1",
        "mistralai/Mistral-7B-Instruct-v0.2",
    ],
    "ollama": ["hermes3:3b"],
}


class GenerationProvider(Protocol):
    name: str

    async def generate(self, prompt: str) -> str: ...


class HTTPGenerationProvider:
    """Shared request loop for HTTP-backed generation providers."""

    name = "http"
    requires_credential = True

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: Optional[str] = None,
        models: Optional[list[str]] = None,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ):
        self.client = client
        self.api_key = api_key
        self.models = list(models or DEFAULT_MODELS.get(self.name, []))
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.logger = logging.getLogger(__name__)

    async def generate(self, prompt: str) -> str:
        if self.requires_credential and not self.api_key:
            raise ProviderUnavailable(self.name, "no credential configured")

        for model in self.models:
            url, headers, payload = self._build_request(model, prompt)
            try:
                response = await self.client.post(url, headers=headers, json=payload)
            except httpx.HTTPError as e:
                self.logger.warning(f"{self.name}/{model} request failed: {type(e).__name__}")
                continue

            if response.status_code != 200:
                self.logger.warning(f"{self.name}/{model} returned HTTP {response.status_code}")
                continue

            try:
                data = response.json()
            except ValueError:
                self.logger.warning(f"{self.name}/{model} returned a non-JSON body")
                continue

            text = self._extract_text(data)
            if text and text.strip():
                self.logger.debug(f"{self.name}/{model} produced {len(text)} chars")
                return text

            self.logger.warning(f"{self.name}/{model} returned an empty completion")

        raise ProviderUnavailable(self.name, "all models failed")

    def _build_request(self, model: str, prompt: str) -> tuple[str, dict[str, str], dict[str, Any]]:
        raise NotImplementedError

    def _extract_text(self, data: Any) -> Optional[str]:
        raise NotImplementedError


class OpenAIChatProvider(HTTPGenerationProvider):
    """OpenAI chat-completions API."""

    name = "openai"
    base_url = "https://api.openai.com/v1"

    def _build_request(self, model, prompt):
        headers = {"Authorization": f"Bearer {self.api_key}"}
        payload = {
            "model": model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        return f"{self.base_url}/chat/completions", headers, payload

    def _extract_text(self, data):
        try:
            return data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            return None


class GroqProvider(OpenAIChatProvider):
    """Groq exposes an OpenAI-compatible chat-completions API."""

    name = "groq"
    base_url = "https://api.groq.com/openai/v1"


class GeminiProvider(HTTPGenerationProvider):
    name = "gemini"

    def _build_request(self, model, prompt):
        url = f"https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
        # Header auth keeps the key out of logged request URLs
        headers = {"x-goog-api-key": self.api_key}
        payload = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": self.temperature,
                "maxOutputTokens": self.max_tokens,
            },
        }
        return url, headers, payload

    def _extract_text(self, data):
        try:
            return data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            return None


class CohereProvider(HTTPGenerationProvider):
    name = "cohere"

    def _build_request(self, model, prompt):
        headers = {"Authorization": f"Bearer {self.api_key}"}
        payload = {
            "model": model,
            "prompt": prompt,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }
        return "https://api.cohere.ai/v1/generate", headers, payload

    def _extract_text(self, data):
        try:
            return data["generations"][0]["text"]
        except (KeyError, IndexError, TypeError):
            return None


class HuggingFaceProvider(HTTPGenerationProvider):
    name = "huggingface"

    def _build_request(self, model, prompt):
        headers = {"Authorization": f"Bearer {self.api_key}"}
        payload = {
            "inputs": prompt,
            "parameters": {
                "max_new_tokens": self.max_tokens,
                "temperature": self.temperature,
                "return_full_text": False,
            },
        }
        return f"https://api-inference.huggingface.co/models/{model}", headers, payload

    def _extract_text(self, data):
        try:
            return data[0]["generated_text"]
        except (KeyError, IndexError, TypeError):
            return None


class OllamaProvider(HTTPGenerationProvider):
    """Local Ollama server; needs no credential."""

    name = "ollama"
    requires_credential = False

    def __init__(self, client: httpx.AsyncClient, host: str = "http://127.0.0.1:11434", **kwargs):
        super().__init__(client, **kwargs)
        self.host = host.rstrip("/")

    def _build_request(self, model, prompt):
        payload = {
            "model": model,
            "messages": [{"role": "user", "content": prompt}],
            "stream": False,
            "options": {"temperature": self.temperature, "num_predict": self.max_tokens},
        }
        return f"{self.host}/api/chat", {}, payload

    def _extract_text(self, data):
        try:
            return data["message"]["content"]
        except (KeyError, TypeError):
            return None


GENERATION_PROVIDERS: dict[str, type[HTTPGenerationProvider]] = {
    "groq": GroqProvider,
    "openai": OpenAIChatProvider,
    "gemini": GeminiProvider,
    "cohere": CohereProvider,
    "huggingface": HuggingFaceProvider,
    "ollama": OllamaProvider,
}


def build_generation_providers(
    config: ProviderConfig, client: httpx.AsyncClient, http_settings: Optional[HttpSettings] = None
) -> list[GenerationProvider]:
    """
    Instantiate generation providers in priority order.

    Args:
        config: Generation family configuration
        client: Shared HTTP client
        http_settings: HTTP settings (for the Ollama host)

    Returns:
        list: Providers in the configured priority order; unknown ids are skipped
    """
    http_settings = http_settings or HttpSettings()
    providers: list[GenerationProvider] = []
    for provider_id in config.priority_order:
        provider_cls = GENERATION_PROVIDERS.get(provider_id)
        if provider_cls is None:
            logger.warning(f"Unknown generation provider '{provider_id}' ignored")
            continue
        kwargs: dict[str, Any] = {
            "api_key": config.credential(provider_id),
            "models": config.models.get(provider_id),
        }
        if provider_cls is OllamaProvider:
            kwargs["host"] = http_settings.ollama_host
        providers.append(provider_cls(client, **kwargs))
    return providers
