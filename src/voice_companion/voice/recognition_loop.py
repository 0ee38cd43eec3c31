"""
Continuous speech recognition with silence-based utterance detection.

The loop accumulates final recognition results and submits the utterance
once no new final result has arrived for the quiet period. Capture that ends
on its own is restarted after a short delay, unless an error stopped it.
"""

import asyncio
import logging
from collections.abc import Callable
from typing import Optional

from voice_companion.core.errors import RecognitionError
from voice_companion.models.schemas import TranscriptEvent
from voice_companion.platform import RecognitionBackend
from voice_companion.services.error_handler import ErrorHandler
from voice_companion.services.error_handler import error_handler as default_error_handler
from voice_companion.services.events import EventStream


class RecognitionLoop:
    """
    Drives a RecognitionBackend and turns its results into utterances.

    The loop is also the RecognitionListener handed to the backend.
    """

    def __init__(
        self,
        backend: RecognitionBackend,
        on_utterance: Callable[[str], None],
        transcripts: Optional[EventStream[TranscriptEvent]] = None,
        on_status: Optional[Callable[[str], None]] = None,
        quiet_period: float = 0.8,
        restart_delay: float = 0.3,
        error_handler: Optional[ErrorHandler] = None,
    ):
        """
        Initialize the loop.

        Args:
            backend: Platform speech-to-text capability
            on_utterance: Called with the accumulated text after the quiet period
            transcripts: Stream receiving partial and final transcript updates
            on_status: Receives one-line error status messages
            quiet_period: Seconds of silence after a final result before submitting
            restart_delay: Seconds before restarting capture that ended on its own
            error_handler: Maps recognition error codes to status messages
        """
        self.backend = backend
        self.on_utterance = on_utterance
        self.transcripts = transcripts
        self.on_status = on_status or (lambda message: None)
        self.quiet_period = quiet_period
        self.restart_delay = restart_delay
        self.error_handler = error_handler or default_error_handler
        self.logger = logging.getLogger(__name__)

        self._wanted = False
        self._capturing = False
        self._halted_code: Optional[str] = None
        self._finals: list[str] = []
        self._interim = ""
        self._quiet_timer: Optional[asyncio.TimerHandle] = None
        self._restart_timer: Optional[asyncio.TimerHandle] = None

    @property
    def is_capturing(self) -> bool:
        return self._capturing

    @property
    def halted(self) -> bool:
        """True after a non-benign error, until reset()."""
        return self._halted_code is not None

    @property
    def transcript(self) -> str:
        return " ".join(part for part in [*self._finals, self._interim] if part)

    def start(self) -> bool:
        """
        Begin (or keep) capturing.

        Returns:
            bool: False if a previous error halted the loop
        """
        if self.halted:
            self.logger.info(f"Recognition halted by '{self._halted_code}', not restarting")
            return False
        if self._wanted and self._capturing:
            return True

        self._wanted = True
        self._cancel_restart()
        self._clear_transcript()
        return self._start_capture()

    def stop(self) -> None:
        """Stop capturing and drop any partial utterance; no restart follows."""
        self._wanted = False
        self._cancel_restart()
        self._clear_transcript()
        if self._capturing:
            self._capturing = False
            try:
                self.backend.stop()
            except Exception as e:
                self.logger.debug(f"Recognition backend stop failed: {e}")

    def flush(self) -> bool:
        """Submit the pending utterance now instead of waiting for silence."""
        if not self.transcript:
            return False
        self._submit()
        return True

    def reset(self) -> None:
        """Clear a halting error; used when voice mode is toggled on again."""
        self._halted_code = None

    # RecognitionListener

    def on_result(self, text: str, is_final: bool) -> None:
        if not self._wanted:
            return

        text = text.strip()
        if is_final:
            if text:
                self._finals.append(text)
            self._interim = ""
            self._arm_quiet_timer()
        else:
            self._interim = text
            # Interim results only extend a pending silence window
            if self._quiet_timer is not None:
                self._arm_quiet_timer()

        if self.transcripts is not None:
            self.transcripts.publish(TranscriptEvent(text=self.transcript, is_final=is_final))

    def on_end(self) -> None:
        self._capturing = False
        if not self._wanted or self.halted:
            return
        loop = asyncio.get_running_loop()
        self._cancel_restart()
        self._restart_timer = loop.call_later(self.restart_delay, self._restart)

    def on_error(self, code: str) -> None:
        if self.error_handler.is_benign_recognition_code(code):
            self.logger.debug(f"Ignoring benign recognition error '{code}'")
            return

        self._halted_code = code
        self._cancel_restart()
        self.error_handler.log_error(RecognitionError(code), {"capturing": self._capturing}, logging.WARNING)
        self.on_status(self.error_handler.recognition_status(code))

    # Internals

    def _start_capture(self) -> bool:
        if self._capturing:
            return True
        try:
            self.backend.start(self)
        except RecognitionError as e:
            self.on_error(e.code)
            return False
        self._capturing = True
        return True

    def _restart(self) -> None:
        self._restart_timer = None
        if self._wanted and not self.halted and not self._capturing:
            self.logger.debug("Restarting recognition after capture ended")
            self._start_capture()

    def _arm_quiet_timer(self) -> None:
        self._cancel_quiet_timer()
        loop = asyncio.get_running_loop()
        self._quiet_timer = loop.call_later(self.quiet_period, self._submit)

    def _submit(self) -> None:
        text = self.transcript
        self._clear_transcript()
        if text:
            self.logger.info(f"Utterance detected ({len(text)} chars)")
            self.on_utterance(text)

    def _clear_transcript(self) -> None:
        self._cancel_quiet_timer()
        self._finals = []
        self._interim = ""

    def _cancel_quiet_timer(self) -> None:
        if self._quiet_timer is not None:
            self._quiet_timer.cancel()
            self._quiet_timer = None

    def _cancel_restart(self) -> None:
        if self._restart_timer is not None:
            self._restart_timer.cancel()
            self._restart_timer = None
