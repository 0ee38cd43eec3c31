"""
Tests for the console front end and the static page it drives.
"""

import asyncio
import io
from pathlib import Path

import pytest

from tests.mock_platform import wait_until
from voice_companion.cli.console import ConsoleRecognizer
from voice_companion.cli.console import ConsoleSynthesizer
from voice_companion.cli.console import FileAudioPlayer
from voice_companion.cli.console import load_settings
from voice_companion.cli.console import parse_args
from voice_companion.services.static_page import StaticPage

CONFIG_DIR = Path(__file__).parent.parent / "configs"


class TestArguments:
    def test_defaults(self):
        args = parse_args([])
        assert args.page is None
        assert args.browser is None
        assert not args.voice
        assert not args.no_agent

    def test_overrides_reach_settings(self):
        args = parse_args(
            ["--config", str(CONFIG_DIR / "base.yaml"), "--language", "fr", "--session", "demo", "--no-agent"]
        )

        settings = load_settings(args)

        assert settings.conversation.language == "fr"
        assert settings.language_name == "French"
        assert settings.conversation.session_id == "demo"
        assert settings.conversation.agent_mode is False

    def test_unknown_language_rejected(self):
        with pytest.raises(SystemExit):
            parse_args(["--language", "xx"])

    def test_missing_config_uses_defaults(self, tmp_path):
        settings = load_settings(parse_args(["--config", str(tmp_path / "missing.yaml")]))
        assert settings.conversation.agent_mode is True


class TestStaticPageFromYaml:
    @pytest.mark.asyncio
    async def test_sample_page_loads(self):
        page = StaticPage.from_yaml(CONFIG_DIR / "sample_page.yaml")

        snapshot = await page.snapshot()

        assert snapshot.route == "/channel/system-design"
        assert snapshot.question == "How would you design a URL shortener?"
        assert "Next Question" in snapshot.visible_buttons
        assert [e.label for e in await page.query_selector("code")] == ["hash(url) mod N"]

    @pytest.mark.asyncio
    async def test_button_navigation(self):
        page = StaticPage.from_yaml(CONFIG_DIR / "sample_page.yaml")
        next_button = [c for c in await page.controls() if c.label == "Next Question"][0]

        await next_button.click()

        assert page.route == "/channel/system-design/2"
        assert page.history == ["/channel/system-design"]
        assert (await page.snapshot()).question == "How does consistent hashing work?"

    @pytest.mark.asyncio
    async def test_unknown_route_is_blank(self, sample_page):
        await sample_page.navigate("/somewhere/")

        snapshot = await sample_page.snapshot()
        assert snapshot.route == "/somewhere"
        assert snapshot.visible_buttons == []

    @pytest.mark.asyncio
    async def test_route_keys_in_data_are_ignored(self, caplog):
        page = StaticPage(
            {
                "/quiz": {
                    "title": "Quiz",
                    "data": {"route": "/elsewhere", "title": "Other", "page_type": "question", "answer": "42"},
                }
            },
            start="/quiz",
        )

        snapshot = await page.snapshot()

        assert snapshot.route == "/quiz"
        assert snapshot.title == "Quiz"
        assert snapshot.page_type == "question"
        assert snapshot.answer == "42"
        assert "Ignoring page data keys on /quiz: ['route', 'title']" in caplog.text


class TestConsoleCapabilities:
    def test_recognizer_feeds_only_while_started(self):
        received = []

        class Listener:
            def on_result(self, text, is_final):
                received.append((text, is_final))

            def on_end(self):
                pass

            def on_error(self, code):
                pass

        recognizer = ConsoleRecognizer()
        assert recognizer.feed("ignored") is False

        recognizer.start(Listener())
        assert recognizer.feed("hello there") is True
        recognizer.stop()
        assert recognizer.feed("too late") is False

        assert received == [("hello there", True)]

    @pytest.mark.asyncio
    async def test_synthesizer_prints_and_finishes(self):
        out = io.StringIO()
        finished = []
        synthesizer = ConsoleSynthesizer(out)

        synthesizer.speak("Hi", lambda: finished.append(True))

        assert out.getvalue() == "assistant> Hi\n"
        await wait_until(lambda: finished)

    @pytest.mark.asyncio
    async def test_synthesizer_cancel(self):
        finished = []
        synthesizer = ConsoleSynthesizer(io.StringIO())

        synthesizer.speak("one two three", lambda: finished.append(True))
        synthesizer.cancel()
        await asyncio.sleep(0.01)

        assert finished == []

    @pytest.mark.asyncio
    async def test_file_player_saves_audio(self, tmp_path):
        finished = []
        player = FileAudioPlayer(tmp_path / "audio")

        player.play(b"ID3data", lambda: finished.append(True))

        assert player.last_path.read_bytes() == b"ID3data"
        await wait_until(lambda: finished)
