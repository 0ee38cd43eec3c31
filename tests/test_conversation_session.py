"""
Unit tests for ConversationSession and the transcript cache.
"""

import pytest

from voice_companion.models.schemas import Message
from voice_companion.models.schemas import Role
from voice_companion.services.conversation_session import ConversationSession
from voice_companion.services.conversation_session import TranscriptStore


class TestConversationSession:
    def test_context_window_keeps_last_k(self):
        session = ConversationSession(context_size=3)
        for i in range(5):
            session.append_user(f"message {i}")

        assert len(session) == 5
        assert [m.display_text for m in session.context_window] == ["message 2", "message 3", "message 4"]

    def test_history_before_last_excludes_newest(self):
        session = ConversationSession(context_size=2)
        session.append_user("one")
        session.append_assistant("two", "two [ACTION:{}]")
        session.append_user("three")

        assert [m.display_text for m in session.history_before_last()] == ["one", "two"]

    def test_assistant_keeps_raw_text(self):
        session = ConversationSession()
        message = session.append_assistant("Going.", 'Going. [ACTION:{"type":"navigate","path":"/"}]')

        assert message.role == Role.ASSISTANT
        assert message.display_text == "Going."
        assert "[ACTION:" in message.raw_text

    def test_messages_are_immutable(self):
        message = Message.user("hello")
        with pytest.raises(Exception):
            message.display_text = "changed"

    def test_invalid_context_size(self):
        with pytest.raises(ValueError):
            ConversationSession(context_size=0)

    def test_clear(self, transcript_dir):
        store = TranscriptStore(transcript_dir)
        session = ConversationSession("s1", store=store)
        session.append_user("hello")

        session.clear()

        assert len(session) == 0
        assert store.load("s1") == []


class TestTranscriptStore:
    def test_session_survives_restart(self, transcript_dir):
        store = TranscriptStore(transcript_dir)
        first = ConversationSession("lesson", store=store)
        first.append_user("What is a cache?")
        first.append_assistant("A fast store.", "A fast store.")

        restored = ConversationSession("lesson", store=TranscriptStore(transcript_dir))

        assert [m.display_text for m in restored.messages] == ["What is a cache?", "A fast store."]
        assert restored.messages[0].timestamp == first.messages[0].timestamp

    def test_sessions_are_isolated(self, transcript_dir):
        store = TranscriptStore(transcript_dir)
        ConversationSession("a", store=store).append_user("only in a")

        assert ConversationSession("b", store=store).messages == ()

    def test_unsafe_keys_are_sanitized(self, transcript_dir):
        store = TranscriptStore(transcript_dir)
        store.save("../../etc/passwd", [Message.user("hi")])

        assert all(path.parent == transcript_dir for path in transcript_dir.iterdir())
        assert store.load("../../etc/passwd")[0].display_text == "hi"

    def test_corrupt_file_is_ignored(self, transcript_dir):
        (transcript_dir / "broken.json").write_text("{not json")

        assert TranscriptStore(transcript_dir).load("broken") == []
