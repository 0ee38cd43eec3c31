"""
Unit tests for the synthesis pipeline and its double stop.
"""

import asyncio

import pytest

from tests.mock_platform import MockAudioPlayer
from tests.mock_platform import MockOnDeviceSynthesizer
from tests.mock_platform import MockSynthesisProvider
from tests.mock_platform import wait_until
from voice_companion.voice.coordinator import CancellationToken
from voice_companion.voice.synthesis_pipeline import SynthesisPipeline


class TestProviderFallback:
    @pytest.mark.asyncio
    async def test_first_remote_provider_plays(self):
        player = MockAudioPlayer(auto_finish=True)
        first, second = MockSynthesisProvider("eleven"), MockSynthesisProvider("openai")
        pipeline = SynthesisPipeline([first, second], player=player, restop_delay=0.001)

        await pipeline.speak("Hello there")

        assert first.texts == ["Hello there"]
        assert second.texts == []
        assert player.played == [b"ID3mock"]
        assert pipeline.last_provider == "eleven"

    @pytest.mark.asyncio
    async def test_failed_provider_falls_through(self):
        player = MockAudioPlayer(auto_finish=True)
        broken, working = MockSynthesisProvider("eleven", fail=True), MockSynthesisProvider("openai", audio=b"ok")
        pipeline = SynthesisPipeline([broken, working], player=player, restop_delay=0.001)

        await pipeline.speak("Hi")

        assert player.played == [b"ok"]
        assert pipeline.last_provider == "openai"

    @pytest.mark.asyncio
    async def test_on_device_is_terminal_fallback(self):
        on_device = MockOnDeviceSynthesizer()
        pipeline = SynthesisPipeline(
            [MockSynthesisProvider("eleven", fail=True)],
            player=MockAudioPlayer(),
            on_device=on_device,
            restop_delay=0.001,
        )

        await pipeline.speak("Fallback voice")

        assert on_device.spoken == ["Fallback voice"]
        assert pipeline.last_provider == "ondevice"

    @pytest.mark.asyncio
    async def test_without_any_path_speech_is_skipped(self):
        pipeline = SynthesisPipeline(
            [], player=None, on_device=MockOnDeviceSynthesizer(available=False), restop_delay=0.001
        )

        await asyncio.wait_for(pipeline.speak("Nobody hears this"), timeout=1)

        assert pipeline.last_provider is None

    @pytest.mark.asyncio
    async def test_remote_providers_need_a_player(self):
        remote = MockSynthesisProvider("eleven")
        on_device = MockOnDeviceSynthesizer()
        pipeline = SynthesisPipeline([remote], player=None, on_device=on_device, restop_delay=0.001)

        await pipeline.speak("Local only")

        assert remote.texts == []
        assert on_device.spoken == ["Local only"]

    @pytest.mark.asyncio
    async def test_empty_text_is_not_spoken(self):
        on_device = MockOnDeviceSynthesizer()
        pipeline = SynthesisPipeline(on_device=on_device, restop_delay=0.001)

        await pipeline.speak("   ")

        assert on_device.spoken == []


class TestStop:
    @pytest.mark.asyncio
    async def test_stop_halts_twice(self):
        player = MockAudioPlayer()
        pipeline = SynthesisPipeline([MockSynthesisProvider()], player=player, restop_delay=0.005)

        speaking = asyncio.create_task(pipeline.speak("A long explanation"))
        await wait_until(lambda: player.playing)
        player.calls.clear()

        pipeline.stop()
        # First halt happens synchronously
        assert player.calls == ["pause", "seek:0", "clear"]

        await asyncio.wait_for(speaking, timeout=1)
        await asyncio.sleep(0.02)
        assert player.calls == ["pause", "seek:0", "clear", "pause", "seek:0", "clear"]
        assert not pipeline.is_speaking

    @pytest.mark.asyncio
    async def test_stop_cancels_on_device(self):
        on_device = MockOnDeviceSynthesizer(auto_finish=False)
        pipeline = SynthesisPipeline(on_device=on_device, restop_delay=0.001)

        speaking = asyncio.create_task(pipeline.speak("Speaking locally"))
        await wait_until(lambda: pipeline.is_speaking)
        cancels_before = on_device.cancel_count

        await pipeline.stop()

        await asyncio.wait_for(speaking, timeout=1)
        assert on_device.cancel_count == cancels_before + 2

    @pytest.mark.asyncio
    async def test_stale_audio_is_discarded(self):
        class SlowProvider(MockSynthesisProvider):
            async def synthesize(self, text):
                await asyncio.sleep(0.02)
                return await super().synthesize(text)

        player = MockAudioPlayer(auto_finish=True)
        pipeline = SynthesisPipeline([SlowProvider()], player=player, restop_delay=0.001)

        speaking = asyncio.create_task(pipeline.speak("Too late"))
        await asyncio.sleep(0.005)
        pipeline.stop()
        await asyncio.wait_for(speaking, timeout=1)

        assert player.played == []

    @pytest.mark.asyncio
    async def test_cancelled_token_discards_audio(self):
        player = MockAudioPlayer(auto_finish=True)
        pipeline = SynthesisPipeline([MockSynthesisProvider()], player=player, restop_delay=0.001)
        token = CancellationToken()
        token.invalidate()

        await pipeline.speak("Never played", token)

        assert player.played == []

    @pytest.mark.asyncio
    async def test_task_cancellation_halts_playback(self):
        player = MockAudioPlayer()
        pipeline = SynthesisPipeline([MockSynthesisProvider()], player=player, restop_delay=0.001)

        speaking = asyncio.create_task(pipeline.speak("Interrupted"))
        await wait_until(lambda: player.playing)
        speaking.cancel()

        with pytest.raises(asyncio.CancelledError):
            await speaking
        assert player.calls[-3:] == ["pause", "seek:0", "clear"]
        assert not pipeline.is_speaking
