"""
HomeOps Assistant — SQLite storage.

The Memory pillar: raw messages, classified activities, learned aliases,
response counters and per-user learning rows persist in SQLite across
restarts. Every table sits behind its own small class.

Concurrency guarantees come from SQLite itself: counters use an atomic
upsert, learning rows use conditional writes keyed on a version column
and report whether the write won.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path

from src.data.models import (
    Activity,
    AliasRecord,
    EffortEmaRecord,
    PatternHabitRecord,
    PreferenceRecord,
    ResponseCounterRecord,
    StoredMessage,
)

logger = logging.getLogger(__name__)

COUNTER_TTL_DAYS = 7


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def make_activity_id(timestamp: float) -> str:
    """Time-ordered unique id: 13-digit epoch millis + random suffix."""
    return f"{int(timestamp * 1000):013d}{uuid.uuid4().hex[:16].upper()}"


class _SQLiteStore:
    """Shared connection handling for the table classes below."""

    def __init__(self, db_path: str | None = None) -> None:
        if db_path is None:
            from src.config import settings
            db_path = settings.DATABASE_PATH

        self._db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        raise NotImplementedError


# ---------------------------------------------------------------------------
# Raw messages (written by the transport layer, read by the engine)
# ---------------------------------------------------------------------------


class MessageDB(_SQLiteStore):
    """SQLite-backed storage for raw chat messages."""

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS messages (
                    chat_id     TEXT    NOT NULL,
                    message_id  INTEGER NOT NULL,
                    user_id     INTEGER NOT NULL,
                    user_name   TEXT    NOT NULL,
                    text        TEXT    NOT NULL,
                    timestamp   REAL    NOT NULL,
                    created_at  TEXT    NOT NULL,
                    PRIMARY KEY (chat_id, message_id)
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_messages_chat_ts "
                "ON messages (chat_id, timestamp)"
            )
        logger.debug("Messages table initialized at %s", self._db_path)

    @staticmethod
    def _row_to_message(row: sqlite3.Row) -> StoredMessage:
        return StoredMessage(
            chat_id=row["chat_id"],
            message_id=row["message_id"],
            user_id=row["user_id"],
            user_name=row["user_name"],
            text=row["text"],
            timestamp=row["timestamp"],
            created_at=row["created_at"],
        )

    def save_message(self, message: StoredMessage) -> bool:
        """Insert a raw message. Returns False if it was already stored."""
        created_at = message.created_at or _utcnow().isoformat()
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT OR IGNORE INTO messages
                    (chat_id, message_id, user_id, user_name, text, timestamp, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    message.chat_id, message.message_id, message.user_id,
                    message.user_name, message.text, message.timestamp, created_at,
                ),
            )
        inserted = cursor.rowcount > 0
        if not inserted:
            logger.info(
                "Message %s/%d already stored, skipping", message.chat_id, message.message_id,
            )
        return inserted

    def recent_messages(self, chat_id: str, limit: int = 10) -> list[StoredMessage]:
        """Return the newest ``limit`` messages in a chat, newest first."""
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM messages WHERE chat_id = ?
                ORDER BY timestamp DESC, message_id DESC LIMIT ?
                """,
                (chat_id, limit),
            ).fetchall()
        return [self._row_to_message(r) for r in rows]

    def purge_older_than(self, cutoff_timestamp: float) -> int:
        """Delete messages older than the cutoff. Returns rows deleted."""
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM messages WHERE timestamp < ?", (cutoff_timestamp,),
            )
        if cursor.rowcount:
            logger.info("Purged %d expired messages", cursor.rowcount)
        return cursor.rowcount


# ---------------------------------------------------------------------------
# Activities
# ---------------------------------------------------------------------------


class ActivityDB(_SQLiteStore):
    """Append-only storage for classified activities."""

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS activities (
                    chat_id            TEXT    NOT NULL,
                    activity_id        TEXT    NOT NULL,
                    source_message_id  INTEGER NOT NULL,
                    user_id            INTEGER NOT NULL,
                    user_name          TEXT    NOT NULL,
                    type               TEXT    NOT NULL,
                    activity           TEXT    NOT NULL,
                    effort             TEXT    NOT NULL,
                    confidence         REAL    NOT NULL,
                    timestamp          REAL    NOT NULL,
                    created_at         TEXT    NOT NULL,
                    bot_reply_id       INTEGER,
                    PRIMARY KEY (chat_id, activity_id)
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_activities_chat_activity "
                "ON activities (chat_id, activity, timestamp)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_activities_user_ts "
                "ON activities (user_id, timestamp)"
            )
        logger.debug("Activities table initialized at %s", self._db_path)

    @staticmethod
    def _row_to_activity(row: sqlite3.Row) -> Activity:
        return Activity(
            chat_id=row["chat_id"],
            activity_id=row["activity_id"],
            source_message_id=row["source_message_id"],
            user_id=row["user_id"],
            user_name=row["user_name"],
            type=row["type"],
            activity=row["activity"],
            effort=row["effort"],
            confidence=row["confidence"],
            timestamp=row["timestamp"],
            created_at=row["created_at"],
            bot_reply_id=row["bot_reply_id"],
        )

    def add_activity(
        self,
        chat_id: str,
        source_message_id: int,
        user_id: int,
        user_name: str,
        activity_type: str,
        activity: str,
        effort: str,
        confidence: float,
        timestamp: float,
    ) -> Activity:
        """Insert a new activity. "none" classifications are never stored."""
        if activity_type not in ("chore", "recovery"):
            raise ValueError(f"Refusing to store activity of type {activity_type!r}")

        record = Activity(
            chat_id=chat_id,
            activity_id=make_activity_id(timestamp),
            source_message_id=source_message_id,
            user_id=user_id,
            user_name=user_name,
            type=activity_type,
            activity=activity,
            effort=effort,
            confidence=confidence,
            timestamp=timestamp,
            created_at=_utcnow().isoformat(),
        )
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO activities
                    (chat_id, activity_id, source_message_id, user_id, user_name,
                     type, activity, effort, confidence, timestamp, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.chat_id, record.activity_id, record.source_message_id,
                    record.user_id, record.user_name, record.type, record.activity,
                    record.effort, record.confidence, record.timestamp, record.created_at,
                ),
            )
        logger.info(
            "Activity stored: %s '%s' (%s) by %s in %s",
            record.activity_id, activity, activity_type, user_name, chat_id,
        )
        return record

    def set_bot_reply_id(self, chat_id: str, activity_id: str, bot_reply_id: int) -> None:
        """Link an activity to the bot message that answered it."""
        with self._connect() as conn:
            conn.execute(
                "UPDATE activities SET bot_reply_id = ? WHERE chat_id = ? AND activity_id = ?",
                (bot_reply_id, chat_id, activity_id),
            )
        logger.info("Activity %s linked to bot reply %d", activity_id, bot_reply_id)

    def get_activity(self, chat_id: str, activity_id: str) -> Activity | None:
        """Fetch a single activity by key."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM activities WHERE chat_id = ? AND activity_id = ?",
                (chat_id, activity_id),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_activity(row)

    def list_for_chat(self, chat_id: str, limit: int = 50) -> list[Activity]:
        """Most recent activities in a chat, newest first."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM activities WHERE chat_id = ? ORDER BY activity_id DESC LIMIT ?",
                (chat_id, limit),
            ).fetchall()
        return [self._row_to_activity(r) for r in rows]

    def last_activity(self, chat_id: str, activity: str) -> Activity | None:
        """When was ``activity`` last done in this chat, and by whom."""
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT * FROM activities WHERE chat_id = ? AND activity = ?
                ORDER BY timestamp DESC LIMIT 1
                """,
                (chat_id, activity),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_activity(row)

    def user_activities(
        self, user_id: int, activity: str, since_timestamp: float,
    ) -> list[Activity]:
        """A user's occurrences of ``activity`` since an instant, oldest first."""
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM activities
                WHERE user_id = ? AND timestamp >= ? AND activity = ?
                ORDER BY timestamp
                """,
                (user_id, since_timestamp, activity),
            ).fetchall()
        return [self._row_to_activity(r) for r in rows]

    def count_user_activity(
        self, user_id: int, since_timestamp: float, activity: str | None = None,
    ) -> int:
        """Count a user's activities since an instant, optionally by name."""
        query = "SELECT COUNT(*) FROM activities WHERE user_id = ? AND timestamp >= ?"
        params: list = [user_id, since_timestamp]
        if activity is not None:
            query += " AND activity = ?"
            params.append(activity)
        with self._connect() as conn:
            (count,) = conn.execute(query, params).fetchone()
        return count


# ---------------------------------------------------------------------------
# Aliases
# ---------------------------------------------------------------------------


class AliasDB(_SQLiteStore):
    """Per-chat vocabulary: informal words → canonical activity names."""

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS aliases (
                    chat_id             TEXT    NOT NULL,
                    alias               TEXT    NOT NULL,
                    canonical_activity  TEXT    NOT NULL,
                    confirmations       INTEGER NOT NULL DEFAULT 0,
                    source              TEXT    NOT NULL DEFAULT 'learned',
                    PRIMARY KEY (chat_id, alias)
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_aliases_canonical "
                "ON aliases (canonical_activity)"
            )
        logger.debug("Aliases table initialized at %s", self._db_path)

    @staticmethod
    def _row_to_alias(row: sqlite3.Row) -> AliasRecord:
        return AliasRecord(
            chat_id=row["chat_id"],
            alias=row["alias"],
            canonical_activity=row["canonical_activity"],
            confirmations=row["confirmations"],
            source=row["source"],
        )

    def get_aliases_for_chat(self, chat_id: str) -> list[AliasRecord]:
        """All aliases known in a chat."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM aliases WHERE chat_id = ? ORDER BY alias", (chat_id,),
            ).fetchall()
        return [self._row_to_alias(r) for r in rows]

    def put_alias(
        self, chat_id: str, alias: str, canonical_activity: str, source: str = "learned",
    ) -> AliasRecord:
        """Create or overwrite an alias. Confirmations start at zero."""
        if source not in ("seed", "learned"):
            raise ValueError(f"Unknown alias source {source!r}")
        with self._connect() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO aliases
                    (chat_id, alias, canonical_activity, confirmations, source)
                VALUES (?, ?, ?, 0, ?)
                """,
                (chat_id, alias, canonical_activity, source),
            )
        logger.info("Alias stored in %s: '%s' → '%s' (%s)", chat_id, alias, canonical_activity, source)
        return AliasRecord(
            chat_id=chat_id,
            alias=alias,
            canonical_activity=canonical_activity,
            confirmations=0,
            source=source,
        )

    def increment_confirmation(self, chat_id: str, alias: str) -> None:
        """Add one confirmation to an existing alias."""
        with self._connect() as conn:
            conn.execute(
                "UPDATE aliases SET confirmations = confirmations + 1 WHERE chat_id = ? AND alias = ?",
                (chat_id, alias),
            )
        logger.info("Alias '%s' confirmed again in %s", alias, chat_id)

    def delete_alias(self, chat_id: str, alias: str) -> bool:
        """Administrative removal of an alias."""
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM aliases WHERE chat_id = ? AND alias = ?", (chat_id, alias),
            )
        deleted = cursor.rowcount > 0
        if deleted:
            logger.info("Alias '%s' deleted from %s", alias, chat_id)
        return deleted


# ---------------------------------------------------------------------------
# Response counters
# ---------------------------------------------------------------------------


class ResponseCounterDB(_SQLiteStore):
    """Daily bot-reply counters per chat, expiring after a week."""

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS response_counters (
                    chat_id           TEXT    NOT NULL,
                    local_date        TEXT    NOT NULL,
                    count             INTEGER NOT NULL DEFAULT 0,
                    last_response_at  TEXT,
                    updated_at        TEXT,
                    expires_at        REAL    NOT NULL,
                    PRIMARY KEY (chat_id, local_date)
                )
            """)
        logger.debug("Response counters table initialized at %s", self._db_path)

    def _get_row(
        self, chat_id: str, local_date: str, now: datetime | None = None,
    ) -> ResponseCounterRecord | None:
        now = now or _utcnow()
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT * FROM response_counters
                WHERE chat_id = ? AND local_date = ? AND expires_at > ?
                """,
                (chat_id, local_date, now.timestamp()),
            ).fetchone()
        if row is None:
            return None
        return ResponseCounterRecord(
            chat_id=row["chat_id"],
            local_date=row["local_date"],
            count=row["count"],
            last_response_at=row["last_response_at"],
            expires_at=row["expires_at"],
        )

    def get_count(self, chat_id: str, local_date: str, now: datetime | None = None) -> int:
        """Replies sent in a chat on a local date (0 when no row)."""
        record = self._get_row(chat_id, local_date, now)
        return record.count if record else 0

    def get_last_response_at(
        self, chat_id: str, local_date: str, now: datetime | None = None,
    ) -> datetime | None:
        """Instant of the most recent reply on a local date, if any."""
        record = self._get_row(chat_id, local_date, now)
        if record is None or not record.last_response_at:
            return None
        return datetime.fromisoformat(record.last_response_at)

    def increment(self, chat_id: str, local_date: str, now: datetime | None = None) -> int:
        """Atomically add one reply, creating the row if needed.

        Not idempotent: a redelivered event counts twice. Returns the new count.
        """
        now = now or _utcnow()
        stamp = now.isoformat()
        expires_at = (now + timedelta(days=COUNTER_TTL_DAYS)).timestamp()
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO response_counters
                    (chat_id, local_date, count, last_response_at, updated_at, expires_at)
                VALUES (?, ?, 1, ?, ?, ?)
                ON CONFLICT (chat_id, local_date) DO UPDATE SET
                    count = CASE WHEN response_counters.expires_at > ?
                                 THEN response_counters.count + 1 ELSE 1 END,
                    last_response_at = excluded.last_response_at,
                    updated_at = excluded.updated_at,
                    expires_at = excluded.expires_at
                """,
                (chat_id, local_date, stamp, stamp, expires_at, now.timestamp()),
            )
            (count,) = conn.execute(
                "SELECT count FROM response_counters WHERE chat_id = ? AND local_date = ?",
                (chat_id, local_date),
            ).fetchone()
        logger.info("Response count for %s on %s is now %d", chat_id, local_date, count)
        return count

    def purge_expired(self, now: datetime | None = None) -> int:
        """Delete counter rows past their expiry. Returns rows deleted."""
        now = now or _utcnow()
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM response_counters WHERE expires_at <= ?", (now.timestamp(),),
            )
        if cursor.rowcount:
            logger.info("Purged %d expired response counters", cursor.rowcount)
        return cursor.rowcount


# ---------------------------------------------------------------------------
# Learning rows (effort EMA, pattern habit, preferences)
# ---------------------------------------------------------------------------


class LearningDB(_SQLiteStore):
    """Per-user running statistics with optimistic concurrency.

    Every ``put_*`` takes the version the caller read (``None`` when the row
    did not exist) and returns False if someone else wrote in between.
    """

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS effort_ema (
                    user_id       TEXT    NOT NULL,
                    activity      TEXT    NOT NULL,
                    ema           REAL    NOT NULL,
                    sample_count  INTEGER NOT NULL,
                    PRIMARY KEY (user_id, activity)
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS pattern_habits (
                    chat_id      TEXT    NOT NULL,
                    user_id      TEXT    NOT NULL,
                    activity     TEXT    NOT NULL,
                    days_json    TEXT    NOT NULL,
                    hours_json   TEXT    NOT NULL,
                    total_count  INTEGER NOT NULL,
                    last_seen    TEXT    NOT NULL,
                    PRIMARY KEY (chat_id, user_id, activity)
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS preferences (
                    user_id       TEXT    NOT NULL,
                    key           TEXT    NOT NULL,
                    value         REAL    NOT NULL,
                    sample_count  INTEGER NOT NULL,
                    last_date     TEXT    NOT NULL DEFAULT '',
                    day_count     INTEGER NOT NULL DEFAULT 0,
                    PRIMARY KEY (user_id, key)
                )
            """)
        logger.debug("Learning tables initialized at %s", self._db_path)

    @staticmethod
    def _insert(conn: sqlite3.Connection, sql: str, params: tuple) -> bool:
        try:
            conn.execute(sql, params)
        except sqlite3.IntegrityError:
            return False
        return True

    # -- effort EMA ---------------------------------------------------------

    def get_effort(self, user_id: str, activity: str) -> EffortEmaRecord | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM effort_ema WHERE user_id = ? AND activity = ?",
                (user_id, activity),
            ).fetchone()
        if row is None:
            return None
        return EffortEmaRecord(
            user_id=row["user_id"],
            activity=row["activity"],
            ema=row["ema"],
            sample_count=row["sample_count"],
        )

    def list_effort(self, user_id: str) -> list[EffortEmaRecord]:
        """All effort averages for a user, most-sampled first."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM effort_ema WHERE user_id = ? ORDER BY sample_count DESC, activity",
                (user_id,),
            ).fetchall()
        return [
            EffortEmaRecord(
                user_id=r["user_id"], activity=r["activity"],
                ema=r["ema"], sample_count=r["sample_count"],
            )
            for r in rows
        ]

    def put_effort(self, record: EffortEmaRecord, expected_sample_count: int | None) -> bool:
        with self._connect() as conn:
            if expected_sample_count is None:
                return self._insert(
                    conn,
                    "INSERT INTO effort_ema (user_id, activity, ema, sample_count) VALUES (?, ?, ?, ?)",
                    (record.user_id, record.activity, record.ema, record.sample_count),
                )
            cursor = conn.execute(
                """
                UPDATE effort_ema SET ema = ?, sample_count = ?
                WHERE user_id = ? AND activity = ? AND sample_count = ?
                """,
                (record.ema, record.sample_count, record.user_id, record.activity,
                 expected_sample_count),
            )
        return cursor.rowcount > 0

    # -- pattern habit ------------------------------------------------------

    def get_pattern(self, chat_id: str, user_id: str, activity: str) -> PatternHabitRecord | None:
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT * FROM pattern_habits
                WHERE chat_id = ? AND user_id = ? AND activity = ?
                """,
                (chat_id, user_id, activity),
            ).fetchone()
        if row is None:
            return None
        return PatternHabitRecord(
            chat_id=row["chat_id"],
            user_id=row["user_id"],
            activity=row["activity"],
            days=json.loads(row["days_json"]),
            hours=json.loads(row["hours_json"]),
            total_count=row["total_count"],
            last_seen=row["last_seen"],
        )

    def put_pattern(self, record: PatternHabitRecord, expected_total_count: int | None) -> bool:
        days_json = json.dumps(record.days, sort_keys=True)
        hours_json = json.dumps(record.hours, sort_keys=True)
        with self._connect() as conn:
            if expected_total_count is None:
                return self._insert(
                    conn,
                    """
                    INSERT INTO pattern_habits
                        (chat_id, user_id, activity, days_json, hours_json, total_count, last_seen)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (record.chat_id, record.user_id, record.activity, days_json,
                     hours_json, record.total_count, record.last_seen),
                )
            cursor = conn.execute(
                """
                UPDATE pattern_habits
                SET days_json = ?, hours_json = ?, total_count = ?, last_seen = ?
                WHERE chat_id = ? AND user_id = ? AND activity = ? AND total_count = ?
                """,
                (days_json, hours_json, record.total_count, record.last_seen,
                 record.chat_id, record.user_id, record.activity, expected_total_count),
            )
        return cursor.rowcount > 0

    # -- preferences --------------------------------------------------------

    def get_preference(self, user_id: str, key: str) -> PreferenceRecord | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM preferences WHERE user_id = ? AND key = ?", (user_id, key),
            ).fetchone()
        if row is None:
            return None
        return PreferenceRecord(
            user_id=row["user_id"],
            key=row["key"],
            value=row["value"],
            sample_count=row["sample_count"],
            last_date=row["last_date"],
            day_count=row["day_count"],
        )

    def put_preference(
        self,
        record: PreferenceRecord,
        expected_sample_count: int | None,
        expected_day_count: int | None = None,
    ) -> bool:
        with self._connect() as conn:
            if expected_sample_count is None:
                return self._insert(
                    conn,
                    """
                    INSERT INTO preferences
                        (user_id, key, value, sample_count, last_date, day_count)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (record.user_id, record.key, record.value, record.sample_count,
                     record.last_date, record.day_count),
                )
            query = """
                UPDATE preferences
                SET value = ?, sample_count = ?, last_date = ?, day_count = ?
                WHERE user_id = ? AND key = ? AND sample_count = ?
            """
            params: list = [
                record.value, record.sample_count, record.last_date, record.day_count,
                record.user_id, record.key, expected_sample_count,
            ]
            if expected_day_count is not None:
                query += " AND day_count = ?"
                params.append(expected_day_count)
            cursor = conn.execute(query, params)
        return cursor.rowcount > 0
