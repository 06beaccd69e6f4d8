"""
HomeOps Assistant — Fast-conversation detector.

When several other people are talking at once, a bot reply is noise.
Reads only the newest few messages, so the cost is constant however long
the chat history grows.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.data.db import MessageDB

logger = logging.getLogger(__name__)


def is_conversation_fast(
    message_db: MessageDB,
    chat_id: str,
    sender_id: int,
    now: float,
    window: int = 10,
    seconds: int = 60,
    threshold: int = 3,
) -> bool:
    """True when ``threshold`` or more of the last ``window`` messages came
    from someone other than the sender within ``seconds`` of ``now``."""
    messages = message_db.recent_messages(chat_id, limit=window)
    cutoff = now - seconds
    recent_others = sum(
        1 for m in messages if m.user_id != sender_id and m.timestamp >= cutoff
    )
    if recent_others >= threshold:
        logger.info("Conversation in %s is fast: %d recent messages from others", chat_id, recent_others)
        return True
    return False
