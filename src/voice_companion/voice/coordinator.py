"""
Interruption coordinator: the conversation phase state machine.

The coordinator is the single owner of the engine phase and of the one
active cancellation token. Other components never set the phase directly;
they request a transition with a TurnEvent and learn whether it was legal.
"""

import asyncio
import itertools
import logging
from collections.abc import Callable
from enum import Enum
from typing import Any, Optional

from voice_companion.models.schemas import Phase
from voice_companion.models.schemas import StatusEvent
from voice_companion.services.events import EngineEvents

STATUS_MESSAGES: dict[Phase, str] = {
    Phase.IDLE: "ready",
    Phase.LISTENING: "listening",
    Phase.SENDING: "sending",
    Phase.GENERATING: "thinking — press to interrupt",
    Phase.SPEAKING: "AI speaking — press to interrupt",
}

# Phases during which an operation holds the active token
BUSY_PHASES = frozenset({Phase.GENERATING, Phase.SPEAKING})
INTERRUPTIBLE_PHASES = BUSY_PHASES
TURN_PHASES = frozenset({Phase.SENDING, Phase.GENERATING, Phase.SPEAKING})


class TurnEvent(Enum):
    START_LISTENING = "start_listening"
    SUBMIT = "submit"
    REQUEST_ISSUED = "request_issued"
    REPLY_READY = "reply_ready"
    SPEECH_FINISHED = "speech_finished"
    TURN_FAILED = "turn_failed"
    STOP = "stop"


# None as target means "the resting phase": Listening in voice mode, else Idle
_TRANSITIONS: dict[tuple[Phase, TurnEvent], Optional[Phase]] = {
    (Phase.IDLE, TurnEvent.START_LISTENING): Phase.LISTENING,
    (Phase.LISTENING, TurnEvent.START_LISTENING): Phase.LISTENING,
    (Phase.LISTENING, TurnEvent.SUBMIT): Phase.SENDING,
    (Phase.IDLE, TurnEvent.SUBMIT): Phase.SENDING,
    (Phase.SENDING, TurnEvent.REQUEST_ISSUED): Phase.GENERATING,
    (Phase.GENERATING, TurnEvent.REPLY_READY): Phase.SPEAKING,
    (Phase.SPEAKING, TurnEvent.SPEECH_FINISHED): None,
    (Phase.SENDING, TurnEvent.TURN_FAILED): None,
    (Phase.GENERATING, TurnEvent.TURN_FAILED): None,
    (Phase.SPEAKING, TurnEvent.TURN_FAILED): None,
}


class CancellationToken:
    """
    Correlates one asynchronous operation with the coordinator.

    Invalidating a token cancels the tasks bound to it, except the task doing
    the invalidating: a turn that hands over from generation to speech must
    not cancel itself.
    """

    _ids = itertools.count(1)

    def __init__(self):
        self.id = next(self._ids)
        self._cancelled = False
        self._tasks: list[asyncio.Task] = []

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def bind(self, task: asyncio.Task) -> None:
        if self._cancelled:
            task.cancel()
            return
        self._tasks.append(task)

    def invalidate(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True

        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None

        for task in self._tasks:
            if task is not current and not task.done():
                task.cancel()
        self._tasks.clear()

    def __repr__(self) -> str:
        state = "cancelled" if self._cancelled else "active"
        return f"<CancellationToken #{self.id} {state}>"


class InterruptionCoordinator:
    """
    Owns EngineState: the phase and the active cancellation token.

    Invariants:
        - at most one token is active; issuing a token invalidates the old one
        - leaving Generating/Speaking for any other phase invalidates the token
        - interrupt() sets Listening before recognition is resumed
    """

    def __init__(
        self,
        events: Optional[EngineEvents] = None,
        stop_synthesis: Optional[Callable[[], Any]] = None,
        resume_listening: Optional[Callable[[], Any]] = None,
    ):
        """
        Initialize the coordinator in the Idle phase.

        Args:
            events: Engine event streams; status updates are published here
            stop_synthesis: Called by interrupt() to force-stop playback
            resume_listening: Called by interrupt() after the phase is Listening
        """
        self.events = events or EngineEvents()
        self._stop_synthesis = stop_synthesis or (lambda: None)
        self._resume_listening = resume_listening or (lambda: None)
        self.logger = logging.getLogger(__name__)

        self._phase = Phase.IDLE
        self._active_token: Optional[CancellationToken] = None
        self.voice_mode = False
        self.interrupt_count = 0

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def active_token(self) -> Optional[CancellationToken]:
        return self._active_token

    @property
    def resting_phase(self) -> Phase:
        return Phase.LISTENING if self.voice_mode else Phase.IDLE

    def can_transition(self, event: TurnEvent) -> bool:
        return event == TurnEvent.STOP or (self._phase, event) in _TRANSITIONS

    def transition(self, event: TurnEvent) -> bool:
        """
        Apply a turn event.

        Args:
            event: The event that happened

        Returns:
            bool: False when the event is not legal in the current phase
        """
        if not self.can_transition(event):
            self.logger.debug(f"Ignoring {event.value} in phase {self._phase.value}")
            return False

        if event == TurnEvent.STOP:
            self._invalidate_active()
            target = Phase.IDLE
        else:
            target = _TRANSITIONS[(self._phase, event)] or self.resting_phase

        self._set_phase(target)
        return True

    def issue_token(self) -> CancellationToken:
        """Invalidate the active token, if any, and make a fresh one active."""
        self._invalidate_active()
        self._active_token = CancellationToken()
        return self._active_token

    def is_current(self, token: Optional[CancellationToken]) -> bool:
        return token is not None and token is self._active_token and not token.cancelled

    def interrupt(self) -> bool:
        """
        Cut the current reply short and go straight back to listening.

        Valid only while Generating or Speaking. Runs synchronously, in order:
        invalidate the token (aborting generation), force-stop synthesis, set
        the phase to Listening, then resume recognition.

        Returns:
            bool: True if an interrupt happened
        """
        if self._phase not in INTERRUPTIBLE_PHASES:
            self.logger.debug(f"Interrupt ignored in phase {self._phase.value}")
            return False

        self.logger.info(f"Interrupt during {self._phase.value}")
        self.interrupt_count += 1

        self._invalidate_active()
        self._stop_synthesis()
        self._set_phase(Phase.LISTENING)
        self._resume_listening()
        return True

    def report(self, message: str) -> None:
        """Publish a one-line status message without changing phase."""
        self.events.status.publish(StatusEvent(phase=self._phase, message=message))

    def _invalidate_active(self) -> None:
        if self._active_token is not None:
            self._active_token.invalidate()
            self._active_token = None

    def _set_phase(self, target: Phase) -> None:
        previous = self._phase
        if previous in BUSY_PHASES and target not in BUSY_PHASES:
            self._invalidate_active()

        self._phase = target
        if previous != target:
            self.logger.debug(f"Phase {previous.value} -> {target.value}")
            self.events.status.publish(StatusEvent(phase=target, message=STATUS_MESSAGES[target]))
