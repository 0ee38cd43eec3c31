"""
Voice manager: the engine facade.

VoiceManager wires recognition, generation, directive execution and
synthesis around the interruption coordinator and exposes the user-facing
operations: voice mode toggling, push-to-interrupt, typed submission and
conversation reset.
"""

import asyncio
import logging
from typing import Optional, Sequence

import httpx

from voice_companion.core.errors import StaleCancellation
from voice_companion.core.http import create_async_client
from voice_companion.core.settings import Settings
from voice_companion.core.settings import get_settings
from voice_companion.models.schemas import PageContext
from voice_companion.models.schemas import ParsedReply
from voice_companion.models.schemas import Phase
from voice_companion.models.schemas import Role
from voice_companion.platform import AudioPlayer
from voice_companion.platform import OnDeviceSynthesizer
from voice_companion.platform import Page
from voice_companion.platform import RecognitionBackend
from voice_companion.providers.generation import GenerationProvider
from voice_companion.providers.generation import build_generation_providers
from voice_companion.providers.synthesis import SynthesisProvider
from voice_companion.providers.synthesis import build_synthesis_providers
from voice_companion.services.action_executor import ActionExecutor
from voice_companion.services.conversation_session import ConversationSession
from voice_companion.services.conversation_session import TranscriptStore
from voice_companion.services.directive_parser import DirectiveParser
from voice_companion.services.error_handler import error_handler
from voice_companion.services.events import EngineEvents
from voice_companion.services.generation_orchestrator import GenerationOrchestrator
from voice_companion.services.route_index import RouteIndex
from voice_companion.voice.coordinator import BUSY_PHASES
from voice_companion.voice.coordinator import CancellationToken
from voice_companion.voice.coordinator import InterruptionCoordinator
from voice_companion.voice.coordinator import TurnEvent
from voice_companion.voice.recognition_loop import RecognitionLoop
from voice_companion.voice.synthesis_pipeline import SynthesisPipeline


class VoiceManager:
    """Hands-free voice conversation engine for one chat surface."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        generation_providers: Sequence[GenerationProvider] = (),
        synthesis_providers: Sequence[SynthesisProvider] = (),
        recognition_backend: Optional[RecognitionBackend] = None,
        player: Optional[AudioPlayer] = None,
        on_device: Optional[OnDeviceSynthesizer] = None,
        page: Optional[Page] = None,
        session: Optional[ConversationSession] = None,
        route_index: Optional[RouteIndex] = None,
        events: Optional[EngineEvents] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the engine from already-built collaborators.

        Args:
            settings: Engine settings
            generation_providers: Text-generation providers in priority order
            synthesis_providers: Remote synthesis providers in priority order
            recognition_backend: Speech capture; None allows typed input only
            player: Playback handle for remote audio
            on_device: Local synthesizer fallback
            page: Live page for context and directives; None disables actions
            session: Conversation log; in-memory when omitted
            route_index: Known routes; the default sitemap when omitted
            events: Outbound event streams
            http_client: Client to close in aclose(), when the manager owns it
        """
        self.settings = settings or Settings()
        self.events = events or EngineEvents()
        self.page = page
        self.route_index = route_index or RouteIndex.default()
        self.session = session or ConversationSession(
            self.settings.conversation.session_id,
            context_size=self.settings.conversation.context_window,
        )
        self.logger = logging.getLogger(__name__)
        self._http_client = http_client

        conversation = self.settings.conversation
        self.parser = DirectiveParser()
        self.generator = GenerationOrchestrator(
            generation_providers,
            deadline=conversation.generation_deadline,
            route_index=self.route_index,
            language_name=self.settings.language_name,
            render_marker=self.parser.render if conversation.agent_mode else None,
        )
        self.synthesis = SynthesisPipeline(
            synthesis_providers,
            player=player,
            on_device=on_device,
            restop_delay=self.settings.synthesis_tuning.restop_delay_ms / 1000,
        )
        self.coordinator = InterruptionCoordinator(
            self.events,
            stop_synthesis=self.synthesis.stop,
            resume_listening=self._resume_listening,
        )
        self.recognition: Optional[RecognitionLoop] = None
        if recognition_backend is not None:
            self.recognition = RecognitionLoop(
                recognition_backend,
                on_utterance=self._on_utterance,
                transcripts=self.events.transcript,
                on_status=self.coordinator.report,
                quiet_period=self.settings.recognition.quiet_period_ms / 1000,
                restart_delay=self.settings.recognition.restart_delay_ms / 1000,
            )
        self.executor: Optional[ActionExecutor] = None
        if page is not None:
            self.executor = ActionExecutor(page, self.events.toasts, self.route_index, self.settings.actions)

        self._turn_task: Optional[asyncio.Task] = None

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        *,
        recognition_backend: Optional[RecognitionBackend] = None,
        player: Optional[AudioPlayer] = None,
        on_device: Optional[OnDeviceSynthesizer] = None,
        page: Optional[Page] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> "VoiceManager":
        """Build providers, the transcript store and a shared HTTP client from settings."""
        settings = settings or get_settings()
        client = http_client or create_async_client(settings.http)
        generation = build_generation_providers(settings.generation, client, settings.http)
        synthesis = build_synthesis_providers(
            settings.synthesis, client, settings.synthesis_tuning, settings.conversation.language
        )
        session = ConversationSession(
            settings.conversation.session_id,
            store=TranscriptStore(settings.storage.transcript_dir),
            context_size=settings.conversation.context_window,
        )
        return cls(
            settings,
            generation_providers=generation,
            synthesis_providers=synthesis,
            recognition_backend=recognition_backend,
            player=player,
            on_device=on_device,
            page=page,
            session=session,
            http_client=client if http_client is None else None,
        )

    @property
    def phase(self) -> Phase:
        return self.coordinator.phase

    @property
    def voice_mode(self) -> bool:
        return self.coordinator.voice_mode

    @property
    def turn_task(self) -> Optional[asyncio.Task]:
        return self._turn_task

    # Voice mode

    def enable_voice_mode(self) -> None:
        """Turn on hands-free mode; clears any earlier recognition error."""
        self.coordinator.voice_mode = True
        if self.recognition is not None:
            self.recognition.reset()
        self.logger.info("Voice mode enabled")
        if self.phase == Phase.IDLE:
            self.start_listening()

    def disable_voice_mode(self) -> None:
        """Turn off hands-free mode, silencing any reply in progress."""
        self.coordinator.voice_mode = False
        if self.recognition is not None:
            self.recognition.stop()
        if self.phase in BUSY_PHASES:
            self.synthesis.stop()
        self.coordinator.transition(TurnEvent.STOP)
        self.logger.info("Voice mode disabled")

    def toggle_voice_mode(self) -> bool:
        if self.voice_mode:
            self.disable_voice_mode()
        else:
            self.enable_voice_mode()
        return self.voice_mode

    def start_listening(self) -> bool:
        if not self.coordinator.transition(TurnEvent.START_LISTENING):
            return False
        self._resume_listening()
        return True

    # Key handling

    def key_down(self) -> None:
        """Press of the talk key: interrupt a reply, or start listening."""
        if self.phase in BUSY_PHASES:
            self.interrupt()
        elif self.voice_mode and self.phase == Phase.IDLE:
            self.start_listening()

    def key_up(self) -> None:
        self.submit_if_listening()

    def submit_if_listening(self) -> bool:
        """Submit what was heard so far without waiting for silence."""
        if self.phase != Phase.LISTENING or self.recognition is None:
            return False
        return self.recognition.flush()

    def interrupt(self) -> bool:
        return self.coordinator.interrupt()

    # Turns

    def submit_text(self, text: str) -> bool:
        """
        Submit a typed message.

        Returns:
            bool: False when the engine is busy with another turn
        """
        return self._submit(text)

    async def send_text(self, text: str) -> Optional[str]:
        """Submit typed text and wait for the turn; returns the reply display text."""
        if not self._submit(text):
            return None
        await self.wait_for_turn()
        last = self.session.messages[-1] if len(self.session) else None
        return last.display_text if last is not None and last.role == Role.ASSISTANT else None

    async def wait_for_turn(self) -> None:
        task = self._turn_task
        if task is None:
            return
        try:
            await asyncio.shield(task)
        except asyncio.CancelledError:
            if not task.cancelled():
                raise

    def clear_conversation(self) -> None:
        self.session.clear()

    def _on_utterance(self, text: str) -> None:
        self._submit(text)

    def _submit(self, text: str) -> bool:
        text = text.strip()
        if not text:
            return False
        if not self.coordinator.transition(TurnEvent.SUBMIT):
            self.logger.info(f"Dropping utterance received while {self.phase.value}")
            return False

        if self.recognition is not None:
            self.recognition.stop()

        token = self.coordinator.issue_token()
        task = asyncio.create_task(self._run_turn(text, token))
        token.bind(task)
        self._turn_task = task
        return True

    def _resume_listening(self) -> None:
        if self.recognition is not None and self.voice_mode:
            self.recognition.start()

    async def _page_context(self) -> Optional[PageContext]:
        if self.page is None:
            return None
        try:
            return await self.page.snapshot()
        except Exception as e:
            error_handler.log_error(e, {"stage": "page snapshot"}, logging.WARNING)
            return None

    async def _run_turn(self, text: str, token: CancellationToken) -> None:
        current = token
        try:
            self.session.append_user(text)
            self._advance(TurnEvent.REQUEST_ISSUED, token)

            page = await self._page_context()
            raw = await self.generator.generate(
                text, self.session.history_before_last(), page, token
            )
            self._ensure_current(token)

            reply = self.parser.parse(raw)
            self.session.append_assistant(reply.display_text, reply.raw_text)
            await self._execute(reply)
            self._ensure_current(token)

            # Status listeners run inside the transition and may interrupt
            self._advance(TurnEvent.REPLY_READY, token)
            current = self.coordinator.issue_token()
            current.bind(asyncio.current_task())

            if self.voice_mode or self.settings.conversation.auto_speak:
                await self.synthesis.speak(reply.display_text, current)
            self._ensure_current(current)

            self.coordinator.transition(TurnEvent.SPEECH_FINISHED)
            self._resume_listening()
        except StaleCancellation as e:
            self.logger.debug(f"Turn abandoned: {e}")
        except Exception as e:
            error_handler.log_error(e, {"phase": self.phase.value})
            if self.coordinator.is_current(current):
                self.coordinator.transition(TurnEvent.TURN_FAILED)
                self._resume_listening()

    async def _execute(self, reply: ParsedReply) -> None:
        if self.executor is None or not self.settings.conversation.agent_mode:
            if reply.directives:
                self.logger.info(f"Skipping {len(reply.directives)} directive(s): agent actions disabled")
            return
        if reply.directives:
            await self.executor.execute_all(reply.directives)
        if self.settings.actions.auto_emphasize:
            await self.executor.auto_emphasize(reply.display_text)

    def _advance(self, event: TurnEvent, token: CancellationToken) -> None:
        if not self.coordinator.transition(event):
            raise StaleCancellation(f"{event.value} rejected in phase {self.phase.value}")
        self._ensure_current(token)

    def _ensure_current(self, token: CancellationToken) -> None:
        if not self.coordinator.is_current(token):
            raise StaleCancellation(f"token #{token.id} is no longer current")

    async def aclose(self) -> None:
        """Stop everything and release owned resources."""
        if self.recognition is not None:
            self.recognition.stop()
        self.coordinator.transition(TurnEvent.STOP)

        task = self._turn_task
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

        await self.synthesis.stop()
        if self.executor is not None:
            await self.executor.aclose()
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None
