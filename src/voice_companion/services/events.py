"""
Outbound event streams consumed by UI collaborators.
"""

import logging
from collections.abc import Callable
from typing import Generic
from typing import TypeVar

from voice_companion.models.schemas import StatusEvent
from voice_companion.models.schemas import Toast
from voice_companion.models.schemas import TranscriptEvent

T = TypeVar("T")

logger = logging.getLogger(__name__)


class EventStream(Generic[T]):
    """
    Synchronous publish/subscribe stream.

    A failing listener is logged and skipped; it never breaks the publisher
    or the other listeners.
    """

    def __init__(self, name: str):
        self.name = name
        self._listeners: list[Callable[[T], None]] = []
        self.last: T | None = None

    def subscribe(self, listener: Callable[[T], None]) -> Callable[[], None]:
        """Register a listener; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def publish(self, event: T) -> None:
        self.last = event
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(f"Listener on '{self.name}' stream failed")


class EngineEvents:
    """The three outbound streams of the engine."""

    def __init__(self):
        self.transcript: EventStream[TranscriptEvent] = EventStream("transcript")
        self.status: EventStream[StatusEvent] = EventStream("status")
        self.toasts: EventStream[Toast] = EventStream("toast")
