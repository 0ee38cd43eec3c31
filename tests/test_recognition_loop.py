"""
Unit tests for the continuous recognition loop.

Timers run on the real event loop with millisecond quiet periods.
"""

import asyncio

import pytest

from tests.mock_platform import MockRecognitionBackend
from voice_companion.services.events import EventStream
from voice_companion.voice.recognition_loop import RecognitionLoop

QUIET = 0.05
RESTART = 0.01


@pytest.fixture
def backend():
    return MockRecognitionBackend()


@pytest.fixture
def utterances():
    return []


@pytest.fixture
def statuses():
    return []


@pytest.fixture
def transcripts():
    stream = EventStream("transcript")
    stream.received = []
    stream.subscribe(stream.received.append)
    return stream


@pytest.fixture
def loop_under_test(backend, utterances, statuses, transcripts):
    return RecognitionLoop(
        backend,
        on_utterance=utterances.append,
        transcripts=transcripts,
        on_status=statuses.append,
        quiet_period=QUIET,
        restart_delay=RESTART,
    )


class TestUtteranceDetection:
    @pytest.mark.asyncio
    async def test_finals_submitted_after_quiet_period(self, loop_under_test, backend, utterances):
        loop_under_test.start()
        backend.say("next")
        backend.say("question")

        await asyncio.sleep(QUIET / 2)
        assert utterances == []

        await asyncio.sleep(QUIET * 2)
        assert utterances == ["next question"]
        assert loop_under_test.transcript == ""

    @pytest.mark.asyncio
    async def test_interim_resets_pending_timer(self, loop_under_test, backend, utterances):
        loop_under_test.start()
        backend.say("explain")
        await asyncio.sleep(QUIET * 0.6)
        backend.say("cach", final=False)

        await asyncio.sleep(QUIET * 0.6)
        assert utterances == []

        await asyncio.sleep(QUIET * 1.5)
        assert utterances == ["explain cach"]

    @pytest.mark.asyncio
    async def test_interim_alone_does_not_submit(self, loop_under_test, backend, utterances):
        loop_under_test.start()
        backend.say("hel", final=False)

        await asyncio.sleep(QUIET * 2)
        assert utterances == []
        assert loop_under_test.transcript == "hel"

    @pytest.mark.asyncio
    async def test_flush_submits_immediately(self, loop_under_test, backend, utterances):
        loop_under_test.start()
        backend.say("show the answer")

        assert loop_under_test.flush() is True
        assert utterances == ["show the answer"]
        assert loop_under_test.flush() is False

        await asyncio.sleep(QUIET * 2)
        assert utterances == ["show the answer"]

    @pytest.mark.asyncio
    async def test_transcript_events(self, loop_under_test, backend, transcripts):
        loop_under_test.start()
        backend.say("what is", final=False)
        backend.say("what is DNS")

        assert [(e.text, e.is_final) for e in transcripts.received] == [
            ("what is", False),
            ("what is DNS", True),
        ]
        loop_under_test.stop()


class TestRestartAndErrors:
    @pytest.mark.asyncio
    async def test_restarts_after_natural_end(self, loop_under_test, backend):
        loop_under_test.start()
        backend.end()
        assert not loop_under_test.is_capturing

        await asyncio.sleep(RESTART * 5)
        assert backend.start_count == 2
        assert loop_under_test.is_capturing

    @pytest.mark.asyncio
    async def test_no_restart_after_stop(self, loop_under_test, backend):
        loop_under_test.start()
        loop_under_test.stop()
        backend.end()

        await asyncio.sleep(RESTART * 5)
        assert backend.start_count == 1
        assert backend.stop_count == 1

    @pytest.mark.asyncio
    async def test_fatal_error_halts_restarts(self, loop_under_test, backend, statuses):
        loop_under_test.start()
        backend.fail("not-allowed")
        backend.end()

        await asyncio.sleep(RESTART * 5)
        assert backend.start_count == 1
        assert loop_under_test.halted
        assert statuses == ["Microphone permission denied. Allow access and toggle voice mode again."]
        assert loop_under_test.start() is False

        loop_under_test.reset()
        assert loop_under_test.start() is True
        assert backend.start_count == 2

    @pytest.mark.asyncio
    async def test_benign_error_is_ignored(self, loop_under_test, backend, statuses):
        loop_under_test.start()
        backend.fail("no-speech")
        backend.end()

        await asyncio.sleep(RESTART * 5)
        assert statuses == []
        assert not loop_under_test.halted
        assert backend.start_count == 2

    @pytest.mark.asyncio
    async def test_unknown_error_code_message(self, loop_under_test, backend, statuses):
        loop_under_test.start()
        backend.fail("language-not-supported")

        assert statuses == ["Speech recognition stopped (language-not-supported). Toggle voice mode to retry."]

    @pytest.mark.asyncio
    async def test_start_failure_halts(self, utterances, statuses):
        backend = MockRecognitionBackend(start_error="audio-capture")
        loop = RecognitionLoop(backend, utterances.append, on_status=statuses.append)

        assert loop.start() is False
        assert loop.halted
        assert statuses == ["No microphone found. Connect one and toggle voice mode again."]

    @pytest.mark.asyncio
    async def test_results_after_stop_are_ignored(self, loop_under_test, backend, utterances):
        loop_under_test.start()
        listener = backend.listener
        loop_under_test.stop()
        listener.on_result("late words", True)

        await asyncio.sleep(QUIET * 2)
        assert utterances == []
