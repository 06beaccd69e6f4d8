"""Tests for src.core.maintenance — nightly purge."""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

from src.core.maintenance import purge_expired_records
from src.data.models import StoredMessage

_NOW = datetime(2026, 6, 1, 1, 0, tzinfo=timezone.utc)


def _store(message_db, message_id, days_ago):
    message_db.save_message(StoredMessage(
        chat_id="-100", message_id=message_id, user_id=1, user_name="Anna",
        text="hej", timestamp=(_NOW - timedelta(days=days_ago)).timestamp(),
    ))


class TestPurgeExpiredRecords:
    def test_purges_both_tables(self, counter_db, message_db):
        counter_db.increment("-100", "2026-05-20", now=_NOW - timedelta(days=12))
        counter_db.increment("-100", "2026-05-31", now=_NOW - timedelta(hours=10))
        _store(message_db, 1, days_ago=120)
        _store(message_db, 2, days_ago=5)

        purged = purge_expired_records(counter_db, message_db, retention_days=90, now=_NOW)

        assert purged == {"counters": 1, "messages": 1}
        assert [m.message_id for m in message_db.recent_messages("-100")] == [2]
        assert counter_db.get_count("-100", "2026-05-31", now=_NOW) == 1

    def test_nothing_to_purge(self, counter_db, message_db):
        assert purge_expired_records(counter_db, message_db, now=_NOW) == {"counters": 0, "messages": 0}

    def test_counter_failure_does_not_block_message_purge(self, message_db):
        counter_db = MagicMock()
        counter_db.purge_expired.side_effect = RuntimeError("locked")
        _store(message_db, 1, days_ago=100)
        purged = purge_expired_records(counter_db, message_db, now=_NOW)
        assert purged == {"counters": 0, "messages": 1}

    def test_message_failure_is_absorbed(self, counter_db):
        message_db = MagicMock()
        message_db.purge_older_than.side_effect = RuntimeError("locked")
        counter_db.increment("-100", "2026-05-01", now=_NOW - timedelta(days=30))
        purged = purge_expired_records(counter_db, message_db, now=_NOW)
        assert purged == {"counters": 1, "messages": 0}

    def test_retention_cutoff(self):
        counter_db = MagicMock()
        counter_db.purge_expired.return_value = 0
        message_db = MagicMock()
        message_db.purge_older_than.return_value = 0
        purge_expired_records(counter_db, message_db, retention_days=30, now=_NOW)
        message_db.purge_older_than.assert_called_once_with((_NOW - timedelta(days=30)).timestamp())
