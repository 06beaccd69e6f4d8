"""
HomeOps Assistant — Nightly maintenance.

SQLite has no native TTL, so a daily job removes response counters past
their 7-day expiry and raw messages older than the retention window.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.data.db import MessageDB, ResponseCounterDB

logger = logging.getLogger(__name__)


def purge_expired_records(
    counter_db: ResponseCounterDB,
    message_db: MessageDB,
    retention_days: int = 90,
    now: datetime | None = None,
) -> dict[str, int]:
    """Delete expired rows. Each table is purged even if the other fails."""
    now = now or datetime.now(timezone.utc)
    purged = {"counters": 0, "messages": 0}

    try:
        purged["counters"] = counter_db.purge_expired(now)
    except Exception as exc:
        logger.error("Counter purge failed: %s", exc)

    try:
        cutoff = (now - timedelta(days=retention_days)).timestamp()
        purged["messages"] = message_db.purge_older_than(cutoff)
    except Exception as exc:
        logger.error("Message purge failed: %s", exc)

    logger.info(
        "Maintenance done: %d counters, %d messages removed",
        purged["counters"], purged["messages"],
    )
    return purged
