"""
HomeOps Assistant — Learning Trackers.

Three per-user statistics updated from every classified activity:

- effort EMA: how hard a user usually finds an activity (1=low .. 3=high)
- pattern habit: which weekdays and hours a user does an activity
- preferences: how often a user ignores the bot, and how many
  activities they report per active day

All three use the same shape: read the row, compute the new value, write
it back only if the version column is unchanged since the read. If another
writer got there first the update is dropped, never retried.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from src.core.local_time import DEFAULT_TIMEZONE, local_date, local_day_and_hour
from src.data.models import EffortEmaRecord, PatternHabitRecord, PreferenceRecord

if TYPE_CHECKING:
    from src.data.db import LearningDB

logger = logging.getLogger(__name__)

EFFORT_VALUES: dict[str, int] = {"low": 1, "medium": 2, "high": 3}

IGNORE_RATE_KEY = "ignoreRate"
INTERACTION_FREQUENCY_KEY = "interactionFrequency"


def ema(observation: float, previous: float, alpha: float) -> float:
    """One exponential-moving-average step, rounded to 4 decimals."""
    return round(alpha * observation + (1 - alpha) * previous, 4)


class EffortTracker:
    def __init__(self, db: LearningDB, alpha: float = 0.3) -> None:
        self._db = db
        self._alpha = alpha

    def get(self, user_id: str, activity: str) -> EffortEmaRecord | None:
        return self._db.get_effort(user_id, activity)

    def hints_for(self, user_id: str, limit: int = 5) -> dict[str, float]:
        """The user's most-sampled effort averages, for classifier context."""
        return {r.activity: r.ema for r in self._db.list_effort(user_id)[:limit]}

    def update(self, user_id: str, activity: str, effort: str) -> bool:
        """Fold one observation into the EMA. Returns False if the write lost a race."""
        value = EFFORT_VALUES[effort]
        current = self._db.get_effort(user_id, activity)

        if current is None:
            record = EffortEmaRecord(user_id=user_id, activity=activity, ema=float(value), sample_count=1)
            expected = None
        else:
            record = EffortEmaRecord(
                user_id=user_id,
                activity=activity,
                ema=ema(value, current.ema, self._alpha),
                sample_count=current.sample_count + 1,
            )
            expected = current.sample_count

        if not self._db.put_effort(record, expected):
            logger.warning("Optimistic lock failed for effort %s/%s, skipping update", user_id, activity)
            return False
        return True


class PatternTracker:
    def __init__(self, db: LearningDB, tz: str = DEFAULT_TIMEZONE) -> None:
        self._db = db
        self._tz = tz

    def get(self, chat_id: str, user_id: str, activity: str) -> PatternHabitRecord | None:
        return self._db.get_pattern(chat_id, user_id, activity)

    def update(self, chat_id: str, user_id: str, activity: str, timestamp: float) -> bool:
        """Count one occurrence into its local weekday and hour buckets."""
        current = self._db.get_pattern(chat_id, user_id, activity)
        day_key, hour_key = local_day_and_hour(timestamp, self._tz)

        days = dict(current.days) if current else {}
        hours = dict(current.hours) if current else {}
        days[day_key] = days.get(day_key, 0) + 1
        hours[hour_key] = hours.get(hour_key, 0) + 1

        record = PatternHabitRecord(
            chat_id=chat_id,
            user_id=user_id,
            activity=activity,
            days=days,
            hours=hours,
            total_count=(current.total_count if current else 0) + 1,
            last_seen=datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat(),
        )
        expected = current.total_count if current else None

        if not self._db.put_pattern(record, expected):
            logger.warning(
                "Optimistic lock failed for pattern %s/%s/%s, skipping update",
                chat_id, user_id, activity,
            )
            return False
        return True


class PreferenceTracker:
    def __init__(self, db: LearningDB, alpha: float = 0.2, tz: str = DEFAULT_TIMEZONE) -> None:
        self._db = db
        self._alpha = alpha
        self._tz = tz

    def get_ignore_rate(self, user_id: str) -> PreferenceRecord | None:
        return self._db.get_preference(user_id, IGNORE_RATE_KEY)

    def get_interaction_frequency(self, user_id: str) -> PreferenceRecord | None:
        return self._db.get_preference(user_id, INTERACTION_FREQUENCY_KEY)

    def update_ignore_rate(self, user_id: str, ignored: bool) -> bool:
        observation = 1.0 if ignored else 0.0
        current = self.get_ignore_rate(user_id)

        if current is None:
            record = PreferenceRecord(
                user_id=user_id, key=IGNORE_RATE_KEY, value=observation, sample_count=1,
            )
            expected = None
        else:
            record = PreferenceRecord(
                user_id=user_id,
                key=IGNORE_RATE_KEY,
                value=ema(observation, current.value, self._alpha),
                sample_count=current.sample_count + 1,
            )
            expected = current.sample_count

        if not self._db.put_preference(record, expected):
            logger.warning("Optimistic lock failed for ignore rate of %s, skipping update", user_id)
            return False
        return True

    def record_interaction(self, user_id: str, timestamp: float) -> bool:
        """Count one activity into the user's current local day.

        The first activity of a new local day folds the finished day's
        count into the frequency EMA.
        """
        today = local_date(timestamp, self._tz)
        current = self.get_interaction_frequency(user_id)

        if current is None:
            record = PreferenceRecord(
                user_id=user_id, key=INTERACTION_FREQUENCY_KEY,
                value=0.0, sample_count=0, last_date=today, day_count=1,
            )
            won = self._db.put_preference(record, None)
        elif current.last_date == today:
            record = PreferenceRecord(
                user_id=user_id, key=INTERACTION_FREQUENCY_KEY,
                value=current.value, sample_count=current.sample_count,
                last_date=today, day_count=current.day_count + 1,
            )
            won = self._db.put_preference(record, current.sample_count, current.day_count)
        else:
            finished_day = float(current.day_count)
            value = (
                finished_day if current.sample_count == 0
                else ema(finished_day, current.value, self._alpha)
            )
            record = PreferenceRecord(
                user_id=user_id, key=INTERACTION_FREQUENCY_KEY,
                value=value, sample_count=current.sample_count + 1,
                last_date=today, day_count=1,
            )
            won = self._db.put_preference(record, current.sample_count, current.day_count)

        if not won:
            logger.warning("Optimistic lock failed for interaction frequency of %s, skipping update", user_id)
        return won
