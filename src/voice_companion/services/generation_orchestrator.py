"""
Generation orchestrator: prompt assembly plus priority-ordered provider fallback.

Providers are tried in the configured order under one overall deadline. A
provider that raises, times out or answers with unusable text is skipped.
When every provider fails the deterministic fallback responder answers, so
a turn always produces a reply.
"""

import asyncio
import logging
from collections.abc import Callable
from typing import Any, Optional, Sequence

from voice_companion.core.errors import AllProvidersFailed
from voice_companion.core.errors import ProviderUnavailable
from voice_companion.core.errors import StaleCancellation
from voice_companion.models.schemas import Message
from voice_companion.models.schemas import PageContext
from voice_companion.providers.generation import GenerationProvider
from voice_companion.services.circuit_breaker import CircuitBreaker
from voice_companion.services.error_handler import error_handler
from voice_companion.services.fallback_responder import fallback_reply
from voice_companion.services.prompt_builder import build_prompt
from voice_companion.services.route_index import RouteIndex
from voice_companion.voice.coordinator import CancellationToken

FALLBACK_PROVIDER = "fallback"
REPLACEMENT_CHAR = "\ufffd"


def is_well_formed(text: Optional[str]) -> bool:
    """Non-empty text that survived decoding intact."""
    return bool(text and text.strip()) and REPLACEMENT_CHAR not in text


class GenerationOrchestrator:
    """Turns a transcript into reply text using the first provider that answers."""

    def __init__(
        self,
        providers: Sequence[GenerationProvider],
        deadline: float = 30.0,
        route_index: Optional[RouteIndex] = None,
        language_name: str = "English",
        render_marker: Optional[Callable[[dict[str, Any]], str]] = None,
        failure_threshold: int = 3,
        recovery_timeout: float = 60.0,
    ):
        """
        Initialize the orchestrator.

        Args:
            providers: Providers in priority order
            deadline: Overall time limit for one generation, in seconds
            route_index: Known routes included in the prompt
            language_name: Reply language
            render_marker: Directive marker renderer; None disables agent actions
            failure_threshold: Failures before a provider's circuit opens
            recovery_timeout: Seconds before an open circuit allows a trial call
        """
        self.providers = list(providers)
        self.deadline = deadline
        self.route_index = route_index
        self.language_name = language_name
        self.render_marker = render_marker
        self.logger = logging.getLogger(__name__)

        self.breakers = {
            p.name: CircuitBreaker(p.name, failure_threshold, recovery_timeout) for p in self.providers
        }
        self.last_provider: Optional[str] = None

    def build_prompt(
        self, transcript: str, history: list[Message], page: Optional[PageContext]
    ) -> str:
        return build_prompt(
            transcript,
            history,
            page,
            route_index=self.route_index,
            language_name=self.language_name,
            render_marker=self.render_marker,
        )

    async def generate(
        self,
        transcript: str,
        history: list[Message],
        page: Optional[PageContext] = None,
        token: Optional[CancellationToken] = None,
    ) -> str:
        """
        Produce reply text for a transcript.

        Args:
            transcript: The user's utterance
            history: Context window preceding the utterance
            page: Live page snapshot
            token: Cancellation token of the turn

        Returns:
            str: Reply text; never empty

        Raises:
            StaleCancellation: If the token was invalidated while waiting
        """
        prompt = self.build_prompt(transcript, history, page)
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.deadline
        attempted: list[str] = []

        for provider in self.providers:
            remaining = deadline - loop.time()
            if remaining <= 0:
                self.logger.warning(f"Generation deadline of {self.deadline}s exceeded")
                break

            attempted.append(provider.name)
            text = await self._attempt(provider, prompt, remaining)
            self._check_token(token)

            if text is None:
                continue
            if not is_well_formed(text):
                self.logger.info(f"Discarding malformed reply from {provider.name}")
                continue

            self.last_provider = provider.name
            self.logger.info(f"Reply generated by {provider.name}")
            return text.strip()

        self._check_token(token)
        self.logger.warning(str(AllProvidersFailed("generation", attempted)))
        self.last_provider = FALLBACK_PROVIDER
        return fallback_reply(transcript)

    async def _attempt(self, provider: GenerationProvider, prompt: str, timeout: float) -> Optional[str]:
        breaker = self.breakers.setdefault(provider.name, CircuitBreaker(provider.name))
        try:
            return await asyncio.wait_for(breaker.execute(provider.generate, prompt), timeout=timeout)
        except asyncio.TimeoutError:
            breaker.record_failure()
            self.logger.warning(f"Provider {provider.name} timed out after {timeout:.1f}s")
        except ProviderUnavailable as e:
            self.logger.info(str(e))
        except Exception as e:
            error_handler.log_error(e, {"provider": provider.name}, logging.WARNING)
        return None

    @staticmethod
    def _check_token(token: Optional[CancellationToken]) -> None:
        if token is not None and token.cancelled:
            raise StaleCancellation(f"generation result for token #{token.id} discarded")
