"""
Voice synthesis pipeline with a single shared playback handle.

Remote providers are tried in priority order; the first one that returns
audio is played. On-device synthesis is the terminal fallback. stop() halts
playback immediately and once more shortly after, because some platforms
resume audio that was queued just before the first stop.
"""

import asyncio
import logging
from collections.abc import Callable
from typing import Optional, Sequence

from voice_companion.core.errors import ProviderUnavailable
from voice_companion.platform import AudioPlayer
from voice_companion.platform import OnDeviceSynthesizer
from voice_companion.providers.synthesis import SynthesisProvider
from voice_companion.services.circuit_breaker import CircuitBreaker
from voice_companion.voice.coordinator import CancellationToken

ON_DEVICE = "ondevice"


class SynthesisPipeline:
    """Speaks reply text through the first available synthesis path."""

    def __init__(
        self,
        providers: Sequence[SynthesisProvider] = (),
        player: Optional[AudioPlayer] = None,
        on_device: Optional[OnDeviceSynthesizer] = None,
        restop_delay: float = 0.01,
    ):
        """
        Initialize the pipeline.

        Args:
            providers: Remote synthesis providers in priority order
            player: The playback handle for remote audio; None skips remote providers
            on_device: Local synthesizer used when every remote provider fails
            restop_delay: Seconds between the first and the second halt in stop()
        """
        self.providers = list(providers)
        self.player = player
        self.on_device = on_device
        self.restop_delay = restop_delay
        self.logger = logging.getLogger(__name__)

        self.breakers = {p.name: CircuitBreaker(p.name) for p in self.providers}
        self.last_provider: Optional[str] = None

        self._generation = 0
        self._finished: Optional[asyncio.Future] = None
        self._pending_restop: Optional[asyncio.Task] = None

    @property
    def is_speaking(self) -> bool:
        return self._finished is not None and not self._finished.done()

    async def speak(self, text: str, token: Optional[CancellationToken] = None) -> None:
        """
        Speak text and return when playback finishes or is stopped.

        Being stopped is indistinguishable from finishing. An empty text, or
        having no usable path at all, returns immediately.

        Args:
            text: Display text of the reply
            token: Token of the speaking operation
        """
        text = text.strip()
        if not text:
            return

        await self.stop()
        generation = self._generation

        if self.player is not None:
            for provider in self.providers:
                audio = await self._synthesize(provider, text)
                if self._is_stale(generation, token):
                    self.logger.debug("Discarding synthesized audio for a stopped reply")
                    return
                if audio is None:
                    continue

                player = self.player
                if await self._play(provider.name, lambda done: player.play(audio, done)):
                    return
                if self._is_stale(generation, token):
                    return

        if self.on_device is None or not self.on_device.available:
            self.logger.info("No synthesis path available, reply stays text-only")
            self.last_provider = None
            return

        on_device = self.on_device
        await self._play(ON_DEVICE, lambda done: on_device.speak(text, done))

    def stop(self) -> asyncio.Task:
        """
        Force-stop playback.

        The first halt happens before this returns; the returned task
        completes after the second halt.
        """
        self._generation += 1
        self._halt()
        if self._finished is not None and not self._finished.done():
            self._finished.set_result(None)

        self._pending_restop = asyncio.ensure_future(self._restop())
        return self._pending_restop

    async def _restop(self) -> None:
        await asyncio.sleep(self.restop_delay)
        self._halt()

    def _halt(self) -> None:
        if self.player is not None:
            for step in (self.player.pause, lambda: self.player.seek(0), self.player.clear_source):
                try:
                    step()
                except Exception as e:
                    self.logger.debug(f"Playback halt step failed: {e}")

        if self.on_device is not None and self.on_device.available:
            try:
                self.on_device.cancel()
            except Exception as e:
                self.logger.debug(f"On-device cancel failed: {e}")

    def _is_stale(self, generation: int, token: Optional[CancellationToken]) -> bool:
        return generation != self._generation or (token is not None and token.cancelled)

    async def _synthesize(self, provider: SynthesisProvider, text: str) -> Optional[bytes]:
        breaker = self.breakers.setdefault(provider.name, CircuitBreaker(provider.name))
        try:
            return await breaker.execute(provider.synthesize, text)
        except ProviderUnavailable as e:
            self.logger.info(str(e))
        except Exception as e:
            self.logger.warning(f"Synthesis provider {provider.name} failed: {type(e).__name__}: {e}")
        return None

    async def _play(self, name: str, start: Callable[[Callable[[], None]], None]) -> bool:
        loop = asyncio.get_running_loop()
        finished = loop.create_future()

        def on_finished() -> None:
            if not finished.done():
                finished.set_result(None)

        self._finished = finished
        try:
            start(on_finished)
        except Exception as e:
            self.logger.warning(f"Playback via {name} failed to start: {e}")
            self._finished = None
            return False

        self.last_provider = name
        self.logger.debug(f"Speaking via {name}")
        try:
            await finished
        except asyncio.CancelledError:
            self._halt()
            raise
        finally:
            if self._finished is finished:
                self._finished = None
        return True
