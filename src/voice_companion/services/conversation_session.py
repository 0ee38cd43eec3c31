"""
Conversation session state and transcript cache.

This module provides ConversationSession, the append-only message log with a
bounded context window, and TranscriptStore, the per-session JSON cache that
lets a conversation survive restarts and page navigation.
"""

import json
import logging
import re
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from voice_companion.core.http import CACHE_DIR
from voice_companion.models.schemas import Message

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


class TranscriptStore:
    """Key-value transcript cache: one JSON file per session id."""

    def __init__(self, directory: Optional[Path] = None):
        self.directory = Path(directory) if directory else CACHE_DIR / "transcripts"
        self.logger = logging.getLogger(__name__)

    def _path_for(self, session_id: str) -> Path:
        safe_key = _UNSAFE_KEY_CHARS.sub("_", session_id) or "default"
        return self.directory / f"{safe_key}.json"

    def load(self, session_id: str) -> list[Message]:
        """
        Load a session's messages.

        Args:
            session_id: Session identifier

        Returns:
            list[Message]: Stored messages, empty when missing or unreadable
        """
        path = self._path_for(session_id)
        if not path.exists():
            return []

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return [Message.model_validate(item) for item in data.get("messages", [])]
        except (OSError, ValueError, ValidationError, AttributeError) as e:
            self.logger.warning(f"Ignoring unreadable transcript for session {session_id}: {e}")
            return []

    def save(self, session_id: str, messages: list[Message]) -> None:
        path = self._path_for(session_id)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            payload = {
                "session_id": session_id,
                "messages": [m.model_dump(mode="json") for m in messages],
            }
            path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
        except OSError as e:
            # The in-memory log stays authoritative for this run
            self.logger.warning(f"Failed to persist transcript for session {session_id}: {e}")

    def delete(self, session_id: str) -> None:
        path = self._path_for(session_id)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            self.logger.warning(f"Failed to delete transcript for session {session_id}: {e}")


class ConversationSession:
    """
    Append-only chronological message log for one chat surface.

    The context window is derived from the log on every read and is never
    stored separately.
    """

    def __init__(
        self,
        session_id: str = "default",
        store: Optional[TranscriptStore] = None,
        context_size: int = 5,
    ):
        """
        Initialize the session, restoring any cached transcript.

        Args:
            session_id: Transcript cache key
            store: Transcript cache; None keeps the session in memory only
            context_size: Number of trailing messages in the context window
        """
        if context_size < 1:
            raise ValueError("context_size must be at least 1")

        self.session_id = session_id
        self.store = store
        self.context_size = context_size
        self.logger = logging.getLogger(__name__)

        self._messages: list[Message] = store.load(session_id) if store else []
        if self._messages:
            self.logger.info(f"Restored {len(self._messages)} messages for session {session_id}")

    @property
    def messages(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    @property
    def context_window(self) -> list[Message]:
        return self._messages[-self.context_size:]

    def history_before_last(self) -> list[Message]:
        """Context window excluding the newest message (the prompt adds it separately)."""
        return self._messages[:-1][-self.context_size:]

    def append(self, message: Message) -> Message:
        self._messages.append(message)
        if self.store:
            self.store.save(self.session_id, self._messages)
        return message

    def append_user(self, text: str) -> Message:
        return self.append(Message.user(text))

    def append_assistant(self, display_text: str, raw_text: str) -> Message:
        return self.append(Message.assistant(display_text, raw_text))

    def clear(self) -> None:
        """Explicit user action: forget the whole conversation."""
        self._messages = []
        if self.store:
            self.store.delete(self.session_id)
        self.logger.info(f"Cleared conversation for session {self.session_id}")

    def __len__(self) -> int:
        return len(self._messages)
