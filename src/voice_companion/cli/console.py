#!/usr/bin/env python3
"""
Voice companion console - drive the conversation engine from a terminal.

Typed lines are sent as messages. In voice mode, typed lines stand in for
recognized speech and are submitted after the quiet period. Replies are
"spoken" by printing them word-paced, so interrupts behave as they would
with real audio.

Usage:
    voice-companion
    voice-companion --page configs/sample_page.yaml
    voice-companion --browser http://localhost:5173
    voice-companion --save-audio ./audio --language fr

Commands:
    /voice       toggle voice mode
    /interrupt   press the talk key (interrupts a reply)
    /send        release the talk key (submit what was heard)
    /clear       forget the conversation
    /status      show the current phase
    /quit        exit
"""

import argparse
import asyncio
import logging
import sys
import time
from collections.abc import Callable
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from voice_companion import __version__
from voice_companion.core.settings import LANGUAGES
from voice_companion.core.settings import Settings
from voice_companion.core.settings import reload_settings
from voice_companion.platform import RecognitionListener
from voice_companion.services.static_page import StaticPage
from voice_companion.voice.voice_manager import VoiceManager

SECONDS_PER_WORD = 0.25


class ConsoleRecognizer:
    """Recognition backend fed by typed lines."""

    def __init__(self):
        self.listener: Optional[RecognitionListener] = None

    def start(self, listener: RecognitionListener) -> None:
        self.listener = listener

    def stop(self) -> None:
        self.listener = None

    def feed(self, text: str) -> bool:
        if self.listener is None:
            return False
        self.listener.on_result(text, True)
        return True


class ConsoleSynthesizer:
    """On-device synthesizer that prints the reply and paces it like speech."""

    available = True

    def __init__(self, out=None):
        self.out = out or sys.stdout
        self._handle: Optional[asyncio.TimerHandle] = None

    def speak(self, text: str, on_finished: Callable[[], None]) -> None:
        print(f"assistant> {text}", file=self.out, flush=True)
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(len(text.split()) * SECONDS_PER_WORD, on_finished)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None


class FileAudioPlayer:
    """Playback handle that writes fetched audio to disk instead of a speaker."""

    def __init__(self, directory: Path):
        self.directory = directory
        self.directory.mkdir(parents=True, exist_ok=True)
        self.last_path: Optional[Path] = None

    def play(self, audio: bytes, on_finished: Callable[[], None]) -> None:
        self.last_path = self.directory / f"reply-{time.strftime('%Y%m%d-%H%M%S')}.mp3"
        self.last_path.write_bytes(audio)
        print(f"[audio saved to {self.last_path}]", flush=True)
        asyncio.get_running_loop().call_soon(on_finished)

    def pause(self) -> None:
        pass

    def seek(self, position: float) -> None:
        pass

    def clear_source(self) -> None:
        pass


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Voice companion console",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="Commands: /voice /interrupt /send /clear /status /quit",
    )
    parser.add_argument("--config", type=Path, help="Settings YAML (default: $VCE_CONFIG or configs/base.yaml)")
    parser.add_argument("--page", type=Path, help="Static page description (YAML)")
    parser.add_argument("--browser", metavar="URL", help="Drive a live web app with Playwright")
    parser.add_argument("--headless", action="store_true", help="Run the browser headless")
    parser.add_argument("--save-audio", type=Path, metavar="DIR", help="Write synthesized audio here")
    parser.add_argument("--language", choices=sorted(LANGUAGES), help="Conversation language")
    parser.add_argument("--session", help="Transcript session id")
    parser.add_argument("--no-agent", action="store_true", help="Do not let the assistant act on the page")
    parser.add_argument("--voice", action="store_true", help="Start in voice mode")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def load_settings(args: argparse.Namespace) -> Settings:
    settings = reload_settings(args.config)

    conversation = settings.conversation
    updates = {}
    if args.language:
        updates["language"] = args.language
    if args.session:
        updates["session_id"] = args.session
    if args.no_agent:
        updates["agent_mode"] = False
    if updates:
        settings = settings.model_copy(update={"conversation": conversation.model_copy(update=updates)})
    return settings


def print_event(prefix: str) -> Callable[[object], None]:
    def _print(event: object) -> None:
        print(f"[{prefix}] {event}", flush=True)

    return _print


async def read_line(prompt: str) -> Optional[str]:
    loop = asyncio.get_running_loop()
    try:
        return await loop.run_in_executor(None, input, prompt)
    except EOFError:
        return None


async def run(args: argparse.Namespace) -> int:
    settings = load_settings(args)

    browser = None
    page = None
    if args.browser:
        from voice_companion.services.browser_page import BrowserPage

        browser = await BrowserPage(args.browser, headless=args.headless).launch()
        page = browser
    elif args.page:
        page = StaticPage.from_yaml(args.page)

    recognizer = ConsoleRecognizer()
    manager = VoiceManager.from_settings(
        settings,
        recognition_backend=recognizer,
        player=FileAudioPlayer(args.save_audio) if args.save_audio else None,
        on_device=ConsoleSynthesizer(),
        page=page,
    )
    manager.events.status.subscribe(lambda e: print(f"[status] {e.message}", flush=True))
    manager.events.toasts.subscribe(print_event("toast"))

    print(f"Voice companion {__version__} ({settings.language_name}). Type /quit to exit.")
    if args.voice:
        manager.enable_voice_mode()

    try:
        while True:
            line = await read_line("you> ")
            if line is None:
                break
            line = line.strip()
            if not line:
                continue

            if line == "/quit":
                break
            elif line == "/voice":
                enabled = manager.toggle_voice_mode()
                print(f"Voice mode {'on' if enabled else 'off'}")
            elif line == "/interrupt":
                manager.key_down()
            elif line == "/send":
                manager.key_up()
            elif line == "/clear":
                manager.clear_conversation()
                print("Conversation cleared")
            elif line == "/status":
                print(f"Phase: {manager.phase.value}, voice mode: {manager.voice_mode}")
            elif manager.voice_mode:
                if not recognizer.feed(line):
                    print(f"(not listening while {manager.phase.value})")
            elif manager.submit_text(line):
                await manager.wait_for_turn()
            else:
                print(f"(busy: {manager.phase.value})")
    finally:
        await manager.aclose()
        if browser is not None:
            await browser.close()
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    load_dotenv()
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)

    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
