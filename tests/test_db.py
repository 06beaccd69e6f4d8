"""Tests for src.data.db — messages, activities and aliases (SQLite storage)."""

import re

import pytest

from src.data.db import ActivityDB, make_activity_id
from src.data.models import StoredMessage


def _msg(message_id, user_id=1, timestamp=1_700_000_000.0, chat_id="-100", text="hej"):
    return StoredMessage(
        chat_id=chat_id,
        message_id=message_id,
        user_id=user_id,
        user_name=f"user{user_id}",
        text=text,
        timestamp=timestamp,
    )


class TestMessageDB:
    def test_save_and_read_back(self, message_db):
        assert message_db.save_message(_msg(1, text="Did the dishes")) is True
        messages = message_db.recent_messages("-100")
        assert len(messages) == 1
        assert messages[0].text == "Did the dishes"
        assert messages[0].created_at

    def test_duplicate_is_ignored(self, message_db):
        assert message_db.save_message(_msg(1)) is True
        assert message_db.save_message(_msg(1, text="changed")) is False
        assert message_db.recent_messages("-100")[0].text == "hej"

    def test_recent_newest_first_and_limited(self, message_db):
        for i in range(15):
            message_db.save_message(_msg(i, timestamp=1_700_000_000.0 + i))
        recent = message_db.recent_messages("-100", limit=10)
        assert len(recent) == 10
        assert recent[0].message_id == 14
        assert recent[-1].message_id == 5

    def test_recent_is_per_chat(self, message_db):
        message_db.save_message(_msg(1, chat_id="-100"))
        message_db.save_message(_msg(2, chat_id="-200"))
        assert [m.message_id for m in message_db.recent_messages("-200")] == [2]

    def test_purge_older_than(self, message_db):
        message_db.save_message(_msg(1, timestamp=100.0))
        message_db.save_message(_msg(2, timestamp=200.0))
        assert message_db.purge_older_than(150.0) == 1
        assert [m.message_id for m in message_db.recent_messages("-100")] == [2]


class TestActivityId:
    def test_format(self):
        activity_id = make_activity_id(1_700_000_000.123)
        assert re.fullmatch(r"\d{13}[0-9A-F]{16}", activity_id)
        assert activity_id.startswith("1700000000123")

    def test_unique_for_same_instant(self):
        assert make_activity_id(1.0) != make_activity_id(1.0)

    def test_sorts_by_time(self):
        assert make_activity_id(1_600_000_000.0) < make_activity_id(1_700_000_000.0)


class TestActivityDB:
    def _add(self, activity_db, activity="dishes", timestamp=1_700_000_000.0, user_id=1, **kw):
        defaults = dict(
            chat_id="-100",
            source_message_id=10,
            user_id=user_id,
            user_name="Anna",
            activity_type="chore",
            activity=activity,
            effort="medium",
            confidence=0.92,
            timestamp=timestamp,
        )
        defaults.update(kw)
        return activity_db.add_activity(**defaults)

    def test_add_returns_record(self, activity_db):
        record = self._add(activity_db)
        assert record.activity == "dishes"
        assert record.type == "chore"
        assert record.bot_reply_id is None
        assert record.activity_id.startswith("1700000000000")

    def test_add_and_get(self, activity_db):
        record = self._add(activity_db)
        fetched = activity_db.get_activity("-100", record.activity_id)
        assert fetched is not None
        assert fetched.confidence == pytest.approx(0.92)
        assert fetched.user_name == "Anna"

    def test_get_missing(self, activity_db):
        assert activity_db.get_activity("-100", "nope") is None

    def test_refuses_none_type(self, activity_db):
        with pytest.raises(ValueError):
            self._add(activity_db, activity_type="none")

    def test_recovery_is_stored(self, activity_db):
        record = self._add(activity_db, activity="rest", activity_type="recovery", effort="low")
        assert activity_db.get_activity("-100", record.activity_id).type == "recovery"

    def test_set_bot_reply_id(self, activity_db):
        record = self._add(activity_db)
        activity_db.set_bot_reply_id("-100", record.activity_id, 777)
        assert activity_db.get_activity("-100", record.activity_id).bot_reply_id == 777

    def test_list_for_chat_newest_first(self, activity_db):
        self._add(activity_db, activity="dishes", timestamp=1000.0)
        self._add(activity_db, activity="laundry", timestamp=2000.0)
        listed = activity_db.list_for_chat("-100")
        assert [a.activity for a in listed] == ["laundry", "dishes"]

    def test_last_activity(self, activity_db):
        self._add(activity_db, activity="vacuuming", timestamp=1000.0, user_name="Anna")
        self._add(activity_db, activity="vacuuming", timestamp=3000.0, user_name="Erik")
        self._add(activity_db, activity="dishes", timestamp=4000.0)
        last = activity_db.last_activity("-100", "vacuuming")
        assert last.user_name == "Erik"
        assert last.timestamp == 3000.0

    def test_last_activity_missing(self, activity_db):
        assert activity_db.last_activity("-100", "ironing") is None

    def test_user_activities_since(self, activity_db):
        self._add(activity_db, timestamp=1000.0)
        self._add(activity_db, timestamp=2000.0)
        self._add(activity_db, timestamp=3000.0, user_id=2)
        found = activity_db.user_activities(1, "dishes", since_timestamp=1500.0)
        assert [a.timestamp for a in found] == [2000.0]

    def test_count_user_activity(self, activity_db):
        self._add(activity_db, activity="dishes", timestamp=1000.0)
        self._add(activity_db, activity="laundry", timestamp=2000.0)
        self._add(activity_db, activity="dishes", timestamp=3000.0)
        assert activity_db.count_user_activity(1, since_timestamp=0.0) == 3
        assert activity_db.count_user_activity(1, since_timestamp=0.0, activity="dishes") == 2
        assert activity_db.count_user_activity(1, since_timestamp=2500.0) == 1

    def test_persists_across_instances(self, tmp_db_path):
        first = ActivityDB(db_path=tmp_db_path)
        record = self._add(first)
        second = ActivityDB(db_path=tmp_db_path)
        assert second.get_activity("-100", record.activity_id) is not None


class TestAliasDB:
    def test_put_and_list(self, alias_db):
        record = alias_db.put_alias("-100", "hoovering", "vacuuming")
        assert record.confirmations == 0
        assert record.source == "learned"
        aliases = alias_db.get_aliases_for_chat("-100")
        assert [(a.alias, a.canonical_activity) for a in aliases] == [("hoovering", "vacuuming")]

    def test_aliases_are_per_chat(self, alias_db):
        alias_db.put_alias("-100", "pant", "pantning")
        assert alias_db.get_aliases_for_chat("-200") == []

    def test_put_overwrites_and_resets_confirmations(self, alias_db):
        alias_db.put_alias("-100", "disk", "dishes")
        alias_db.increment_confirmation("-100", "disk")
        alias_db.put_alias("-100", "disk", "diskning")
        (alias,) = alias_db.get_aliases_for_chat("-100")
        assert alias.canonical_activity == "diskning"
        assert alias.confirmations == 0

    def test_increment_confirmation(self, alias_db):
        alias_db.put_alias("-100", "disk", "diskning")
        alias_db.increment_confirmation("-100", "disk")
        alias_db.increment_confirmation("-100", "disk")
        assert alias_db.get_aliases_for_chat("-100")[0].confirmations == 2

    def test_seed_source(self, alias_db):
        alias_db.put_alias("-100", "städ", "städning", source="seed")
        assert alias_db.get_aliases_for_chat("-100")[0].source == "seed"

    def test_invalid_source(self, alias_db):
        with pytest.raises(ValueError):
            alias_db.put_alias("-100", "x", "y", source="imported")

    def test_delete(self, alias_db):
        alias_db.put_alias("-100", "disk", "diskning")
        assert alias_db.delete_alias("-100", "disk") is True
        assert alias_db.delete_alias("-100", "disk") is False
        assert alias_db.get_aliases_for_chat("-100") == []
