"""Tests for src.core.fast_conversation."""

from src.core.fast_conversation import is_conversation_fast
from src.data.models import StoredMessage

_NOW = 1_700_000_000.0


def _save(message_db, message_id, user_id, seconds_ago):
    message_db.save_message(StoredMessage(
        chat_id="-100",
        message_id=message_id,
        user_id=user_id,
        user_name=f"u{user_id}",
        text="...",
        timestamp=_NOW - seconds_ago,
    ))


class TestIsConversationFast:
    def test_empty_chat(self, message_db):
        assert is_conversation_fast(message_db, "-100", 1, _NOW) is False

    def test_three_others_within_a_minute(self, message_db):
        _save(message_db, 1, 2, 50)
        _save(message_db, 2, 3, 30)
        _save(message_db, 3, 2, 10)
        assert is_conversation_fast(message_db, "-100", 1, _NOW) is True

    def test_two_others_is_not_fast(self, message_db):
        _save(message_db, 1, 2, 50)
        _save(message_db, 2, 3, 30)
        assert is_conversation_fast(message_db, "-100", 1, _NOW) is False

    def test_senders_own_messages_do_not_count(self, message_db):
        _save(message_db, 1, 1, 50)
        _save(message_db, 2, 1, 30)
        _save(message_db, 3, 2, 20)
        _save(message_db, 4, 3, 10)
        assert is_conversation_fast(message_db, "-100", 1, _NOW) is False

    def test_old_messages_do_not_count(self, message_db):
        _save(message_db, 1, 2, 120)
        _save(message_db, 2, 3, 90)
        _save(message_db, 3, 2, 10)
        assert is_conversation_fast(message_db, "-100", 1, _NOW) is False

    def test_only_window_is_read(self, message_db):
        for i in range(3):
            _save(message_db, i, 2, 5)
        # Ten newer messages from the sender push the others out of the window
        for i in range(10):
            _save(message_db, 100 + i, 1, 1)
        assert is_conversation_fast(message_db, "-100", 1, _NOW) is False

    def test_custom_threshold(self, message_db):
        _save(message_db, 1, 2, 5)
        assert is_conversation_fast(message_db, "-100", 1, _NOW, threshold=1) is True
