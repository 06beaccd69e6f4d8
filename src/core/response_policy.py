"""
HomeOps Assistant — Response Policy.

Decides whether the bot says anything about a classified message, and
what. The engine is biased toward silence: guards run in a fixed order
and the first one that fires decides the outcome.

    none → quiet_hours → daily_cap → fast_conversation → cooldown
         → confidence branch (low_confidence) → preference suppression → tone

The policy only reads (counter, last reply, recent messages); the caller
increments the counter after a successful send. Store errors propagate:
without the data a silence check needs, no decision is safe.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from src.core.fast_conversation import is_conversation_fast
from src.core.local_time import DEFAULT_TIMEZONE, is_quiet_hours, local_date
from src.core.tone import validate_tone

if TYPE_CHECKING:
    from src.core.classifier import ClassificationResult
    from src.core.learning import PreferenceTracker
    from src.data.db import MessageDB, ResponseCounterDB
    from src.data.models import IncomingMessage

logger = logging.getLogger(__name__)

ACKNOWLEDGMENT_TEXT = "Noted ✓"
CLARIFICATION_TEMPLATE = "Did you mean {activity}?"

IGNORE_RATE_THRESHOLD = 0.7
LOW_FREQUENCY_THRESHOLD = 1.0
MIN_DATA_POINTS = 10


def clarification_text(activity: str) -> str:
    return CLARIFICATION_TEMPLATE.format(activity=activity)


@dataclass(frozen=True)
class PolicyConfig:
    """Tunable thresholds. Each is independent of the others."""

    timezone: str = DEFAULT_TIMEZONE
    quiet_hours_start: int = 22
    quiet_hours_end: int = 7
    daily_cap: int = 3
    cooldown_minutes: int = 15
    confidence_high: float = 0.85
    confidence_clarify: float = 0.50
    correction_confidence: float = 0.70
    fast_window: int = 10
    fast_seconds: int = 60
    fast_threshold: int = 3
    preference_suppression: bool = True

    @classmethod
    def from_settings(cls) -> PolicyConfig:
        from src.config import settings

        return cls(
            timezone=settings.TIMEZONE,
            quiet_hours_start=settings.QUIET_HOURS_START,
            quiet_hours_end=settings.QUIET_HOURS_END,
            daily_cap=settings.DAILY_CAP,
            cooldown_minutes=settings.COOLDOWN_MINUTES,
            confidence_high=settings.CONFIDENCE_HIGH,
            confidence_clarify=settings.CONFIDENCE_CLARIFY,
            correction_confidence=settings.CORRECTION_CONFIDENCE,
            fast_window=settings.FAST_CONVERSATION_WINDOW,
            fast_seconds=settings.FAST_CONVERSATION_SECONDS,
            fast_threshold=settings.FAST_CONVERSATION_THRESHOLD,
            preference_suppression=settings.PREFERENCE_SUPPRESSION,
        )


@dataclass
class PolicyDecision:
    respond: bool
    text: str | None = None
    reason: str | None = None
    kind: str | None = None           # "acknowledgment" | "clarification"


class ResponsePolicy:
    """Ordered silence rules + reply selection."""

    def __init__(
        self,
        counter_db: ResponseCounterDB,
        message_db: MessageDB,
        config: PolicyConfig | None = None,
        preferences: PreferenceTracker | None = None,
    ) -> None:
        self._counters = counter_db
        self._messages = message_db
        self.config = config or PolicyConfig()
        self._preferences = preferences

    def evaluate(
        self, classification: ClassificationResult, message: IncomingMessage,
    ) -> PolicyDecision:
        decision = self._evaluate(classification, message)
        logger.info(
            "Policy for %s/%d: respond=%s reason=%s",
            message.chat_id, message.message_id, decision.respond, decision.reason,
        )
        return decision

    def _evaluate(
        self, classification: ClassificationResult, message: IncomingMessage,
    ) -> PolicyDecision:
        cfg = self.config
        now = message.timestamp

        # 1. Nothing to talk about
        if classification.type == "none":
            return PolicyDecision(respond=False, reason="none")

        # 2. Quiet hours
        if is_quiet_hours(now, cfg.timezone, cfg.quiet_hours_start, cfg.quiet_hours_end):
            return PolicyDecision(respond=False, reason="quiet_hours")

        today = local_date(now, cfg.timezone)
        instant = decision_instant(message)

        # 3. Daily cap, read fresh every time
        if self._counters.get_count(message.chat_id, today, instant) >= cfg.daily_cap:
            return PolicyDecision(respond=False, reason="daily_cap")

        # 4. Fast conversation
        if is_conversation_fast(
            self._messages, message.chat_id, message.sender_id, now,
            window=cfg.fast_window, seconds=cfg.fast_seconds, threshold=cfg.fast_threshold,
        ):
            return PolicyDecision(respond=False, reason="fast_conversation")

        # 5. Cooldown
        last_response_at = self._counters.get_last_response_at(message.chat_id, today, instant)
        if last_response_at is not None:
            if last_response_at.tzinfo is None:
                last_response_at = last_response_at.replace(tzinfo=timezone.utc)
            minutes_since = (now - last_response_at.timestamp()) / 60
            if minutes_since < cfg.cooldown_minutes:
                return PolicyDecision(respond=False, reason="cooldown")

        # 6. Confidence branch
        if classification.confidence >= cfg.confidence_high:
            decision = PolicyDecision(respond=True, text=ACKNOWLEDGMENT_TEXT, kind="acknowledgment")
        elif classification.confidence >= cfg.confidence_clarify or message.directly_addressed:
            decision = PolicyDecision(
                respond=True, text=clarification_text(classification.activity), kind="clarification",
            )
        else:
            return PolicyDecision(respond=False, reason="low_confidence")

        # 7. Preference-aware suppression
        suppressed = self._preference_suppression(decision.kind, message.sender_id)
        if suppressed is not None:
            return PolicyDecision(respond=False, reason=suppressed)

        # 8. Tone gate
        tone = validate_tone(decision.text)
        if not tone.valid:
            logger.warning("Reply '%s' failed tone check: %s", decision.text, tone.reason)
            return PolicyDecision(respond=False, reason="tone")

        return decision

    def _preference_suppression(self, kind: str | None, sender_id: int) -> str | None:
        if self._preferences is None or not self.config.preference_suppression:
            return None
        user_id = str(sender_id)

        if kind == "acknowledgment":
            ignore = self._preferences.get_ignore_rate(user_id)
            if (
                ignore is not None
                and ignore.value > IGNORE_RATE_THRESHOLD
                and ignore.sample_count >= MIN_DATA_POINTS
            ):
                return "preference_suppressed"

        if kind == "clarification":
            freq = self._preferences.get_interaction_frequency(user_id)
            if (
                freq is not None
                and freq.value < LOW_FREQUENCY_THRESHOLD
                and freq.sample_count >= MIN_DATA_POINTS
            ):
                return "low_frequency_suppressed"

        return None


def decision_instant(message: IncomingMessage) -> datetime:
    """The instant the policy reasons about: the message's original time."""
    return datetime.fromtimestamp(message.timestamp, tz=timezone.utc)
