"""
HomeOps Assistant — Data Models.

The Memory pillar: everything the engine learns about a conversation lives
in SQLite across restarts. Raw messages come from the transport layer;
activities, aliases, counters and learning rows are owned by the engine.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class ReplyContext:
    """What an incoming message replies to, if anything."""

    to_message_id: int | None = None
    to_bot: bool = False
    to_text: str = ""


@dataclass
class IncomingMessage:
    """One upstream unit of work: a single chat message to understand."""

    chat_id: str
    message_id: int
    sender_id: int
    sender_name: str
    text: str
    timestamp: float                  # original message time, epoch seconds
    reply: ReplyContext | None = None
    mentions_bot: bool = False

    @property
    def is_reply_to_bot(self) -> bool:
        return self.reply is not None and self.reply.to_bot

    @property
    def directly_addressed(self) -> bool:
        """A mention of the bot or a reply to one of its messages."""
        return self.mentions_bot or self.is_reply_to_bot


@dataclass
class StoredMessage:
    """A raw chat message as persisted by the transport layer."""

    chat_id: str
    message_id: int
    user_id: int
    user_name: str
    text: str
    timestamp: float
    created_at: str = ""


@dataclass
class Activity:
    """A classified household activity.

    Created once per non-"none" classification. Only ``bot_reply_id`` is
    ever written after creation.
    """

    chat_id: str
    activity_id: str                  # time-ordered, seeded from timestamp
    source_message_id: int
    user_id: int
    user_name: str
    type: str                         # "chore" | "recovery"
    activity: str                     # canonical label, e.g. "dishes"
    effort: str                       # "low" | "medium" | "high"
    confidence: float
    timestamp: float
    created_at: str
    bot_reply_id: int | None = None


@dataclass
class AliasRecord:
    """Informal vocabulary mapped to a canonical activity name."""

    chat_id: str
    alias: str
    canonical_activity: str
    confirmations: int = 0
    source: str = "learned"           # "seed" | "learned"


@dataclass
class ResponseCounterRecord:
    """Bot replies sent in a conversation on one local calendar day."""

    chat_id: str
    local_date: str                   # ISO date YYYY-MM-DD in the chat's zone
    count: int
    last_response_at: str | None      # ISO-8601 UTC
    expires_at: float                 # epoch seconds


@dataclass
class EffortEmaRecord:
    """Smoothed effort (1=low .. 3=high) per user and activity."""

    user_id: str
    activity: str
    ema: float
    sample_count: int


@dataclass
class PatternHabitRecord:
    """When a user tends to do an activity, bucketed by local day and hour."""

    chat_id: str
    user_id: str
    activity: str
    days: dict[str, int] = field(default_factory=dict)    # "mon".."sun"
    hours: dict[str, int] = field(default_factory=dict)   # "0".."23"
    total_count: int = 0
    last_seen: str = ""


@dataclass
class PreferenceRecord:
    """A smoothed per-user preference signal (ignore rate, frequency)."""

    user_id: str
    key: str                          # "ignoreRate" | "interactionFrequency"
    value: float
    sample_count: int
    last_date: str = ""
    day_count: int = 0
