"""
Platform capabilities the engine drives but does not implement.

Adapters for a real microphone, speaker, speech engine or browser page
implement these protocols. Callbacks handed to an adapter must be invoked on
the event loop thread; adapters backed by threads should hop over with
``loop.call_soon_threadsafe``.
"""

from collections.abc import Callable
from typing import Protocol

from voice_companion.models.schemas import PageContext


class RecognitionListener(Protocol):
    def on_result(self, text: str, is_final: bool) -> None: ...

    def on_end(self) -> None: ...

    def on_error(self, code: str) -> None: ...


class RecognitionBackend(Protocol):
    """Continuous speech-to-text capture."""

    def start(self, listener: RecognitionListener) -> None: ...

    def stop(self) -> None: ...


class AudioPlayer(Protocol):
    """The single shared playback handle for fetched audio."""

    def play(self, audio: bytes, on_finished: Callable[[], None]) -> None: ...

    def pause(self) -> None: ...

    def seek(self, position: float) -> None: ...

    def clear_source(self) -> None: ...


class OnDeviceSynthesizer(Protocol):
    """Local text-to-speech; needs no credential."""

    @property
    def available(self) -> bool: ...

    def speak(self, text: str, on_finished: Callable[[], None]) -> None: ...

    def cancel(self) -> None: ...


class PageElement(Protocol):
    label: str

    async def scroll_into_view(self) -> None: ...

    async def set_emphasis(self, on: bool) -> None: ...

    async def click(self) -> None: ...


class Page(Protocol):
    """The live page the assistant acts on."""

    async def navigate(self, path: str) -> None: ...

    async def controls(self) -> list[PageElement]:
        """Clickable controls in document order."""
        ...

    async def query_selector(self, selector: str) -> list[PageElement]: ...

    async def snapshot(self) -> PageContext: ...
