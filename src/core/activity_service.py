"""
HomeOps Assistant — Activity Service.

UI-agnostic pipeline for one incoming chat message:

    reply to a bot clarification? → ClarificationHandler → ignore rate, done
    resolve aliases → classify → "none"? done
    persist activity → update learning → response policy
    → send reply → bump daily counter → link reply to activity

Persisting, learning and replying fail independently: each is wrapped so
an error is logged and the pipeline carries on. Policy evaluation is the
exception and propagates, because a silence decision cannot be guessed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from src.core.clarification import ClarificationHandler, extract_suggested_activity
from src.core.classifier import ClassificationContext
from src.core.local_time import local_date
from src.core.response_policy import PolicyDecision, decision_instant

if TYPE_CHECKING:
    from src.core.alias_resolver import AliasResolver
    from src.core.classifier import ClassificationResult, Classifier
    from src.core.clarification import ClarificationOutcome
    from src.core.learning import EffortTracker, PatternTracker, PreferenceTracker
    from src.core.response_policy import ResponsePolicy
    from src.data.db import ActivityDB, ResponseCounterDB
    from src.data.models import IncomingMessage
    from src.ports.notification_port import MessagingPort

logger = logging.getLogger(__name__)


class ProcessRoute(Enum):
    CLARIFICATION = "clarification"
    CLASSIFIED = "classified"


@dataclass
class ProcessOutcome:
    """What the pipeline did with one message."""

    route: ProcessRoute
    classification: ClassificationResult | None = None
    activity_id: str | None = None
    decision: PolicyDecision | None = None
    sent: bool = False
    bot_reply_id: int | None = None
    clarification: ClarificationOutcome | None = None
    side_effects: list[str] = field(default_factory=list)


class ActivityService:
    """Stateless orchestration over the stores, classifier and messenger."""

    def __init__(
        self,
        classifier: Classifier,
        resolver: AliasResolver,
        activity_db: ActivityDB,
        counter_db: ResponseCounterDB,
        policy: ResponsePolicy,
        messenger: MessagingPort,
        clarifications: ClarificationHandler,
        effort: EffortTracker | None = None,
        patterns: PatternTracker | None = None,
        preferences: PreferenceTracker | None = None,
    ) -> None:
        self._classifier = classifier
        self._resolver = resolver
        self._activities = activity_db
        self._counters = counter_db
        self._policy = policy
        self._messenger = messenger
        self._clarifications = clarifications
        self._effort = effort
        self._patterns = patterns
        self._preferences = preferences

    @classmethod
    def from_settings(cls, messenger: MessagingPort, db_path: str | None = None) -> ActivityService:
        """Wire every collaborator from src.config.settings."""
        from src.config import settings
        from src.core.alias_resolver import AliasCache, AliasResolver
        from src.core.classifier import Classifier
        from src.core.learning import EffortTracker, PatternTracker, PreferenceTracker
        from src.core.llm import LLMClient
        from src.core.response_policy import PolicyConfig, ResponsePolicy
        from src.data.db import ActivityDB, AliasDB, LearningDB, MessageDB, ResponseCounterDB

        config = PolicyConfig.from_settings()
        classifier = Classifier(LLMClient.from_settings(), timeout=settings.LLM_TIMEOUT_SECONDS)
        alias_db = AliasDB(db_path)
        learning_db = LearningDB(db_path)
        counter_db = ResponseCounterDB(db_path)
        resolver = AliasResolver(alias_db, AliasCache(settings.ALIAS_CACHE_TTL_SECONDS))
        preferences = PreferenceTracker(learning_db, settings.EMA_ALPHA_IGNORE, config.timezone)

        return cls(
            classifier=classifier,
            resolver=resolver,
            activity_db=ActivityDB(db_path),
            counter_db=counter_db,
            policy=ResponsePolicy(counter_db, MessageDB(db_path), config, preferences),
            messenger=messenger,
            clarifications=ClarificationHandler(
                alias_db, classifier, resolver, config.correction_confidence,
            ),
            effort=EffortTracker(learning_db, settings.EMA_ALPHA),
            patterns=PatternTracker(learning_db, config.timezone),
            preferences=preferences,
        )

    # ------------------------------------------------------------------
    # Public
    # ------------------------------------------------------------------

    async def process_message(self, message: IncomingMessage) -> ProcessOutcome:
        """Run the full pipeline for one message. Never raises for business reasons."""
        if message.is_reply_to_bot and extract_suggested_activity(message.reply.to_text):
            outcome = await self._clarifications.handle_reply(
                chat_id=message.chat_id,
                user_id=str(message.sender_id),
                bot_text=message.reply.to_text,
                reply_text=message.text,
            )
            self._record_engagement(str(message.sender_id), outcome)
            return ProcessOutcome(route=ProcessRoute.CLARIFICATION, clarification=outcome)

        text, context = self._prepare(message)
        classification = await self._classifier.classify(text, context)
        result = ProcessOutcome(route=ProcessRoute.CLASSIFIED, classification=classification)

        if classification.type == "none":
            result.decision = PolicyDecision(respond=False, reason="none")
            return result

        result.activity_id = self._save_activity(message, classification)
        if result.activity_id:
            result.side_effects.append("activity_saved")

        if self._update_learning(message, classification):
            result.side_effects.append("learning_updated")

        decision = self._policy.evaluate(classification, message)
        result.decision = decision
        if not decision.respond or not decision.text:
            return result

        await self._reply(message, decision.text, result)
        return result

    # ------------------------------------------------------------------
    # Pipeline steps
    # ------------------------------------------------------------------

    def _prepare(self, message: IncomingMessage) -> tuple[str, ClassificationContext]:
        """Alias-resolved text plus learning hints; degrades to the raw text."""
        context = ClassificationContext()
        text = message.text
        try:
            resolved = self._resolver.resolve(message.chat_id, message.text)
            text = resolved.resolved_text
            context.aliases = [
                (a.alias, a.canonical_activity)
                for a in self._resolver.learned_aliases(message.chat_id)
            ]
        except Exception as exc:
            logger.error("Alias resolution failed for %s: %s", message.chat_id, exc)

        if self._effort is not None:
            try:
                context.effort_hints = self._effort.hints_for(str(message.sender_id))
            except Exception as exc:
                logger.error("Effort hints unavailable for %s: %s", message.sender_id, exc)
        return text, context

    def _save_activity(
        self, message: IncomingMessage, classification: ClassificationResult,
    ) -> str | None:
        try:
            activity = self._activities.add_activity(
                chat_id=message.chat_id,
                source_message_id=message.message_id,
                user_id=message.sender_id,
                user_name=message.sender_name,
                activity_type=classification.type,
                activity=classification.activity,
                effort=classification.effort,
                confidence=classification.confidence,
                timestamp=message.timestamp,
            )
        except Exception as exc:
            logger.error("Saving activity for %s/%d failed: %s", message.chat_id, message.message_id, exc)
            return None
        return activity.activity_id

    def _update_learning(
        self, message: IncomingMessage, classification: ClassificationResult,
    ) -> bool:
        """Run each tracker on its own; returns True if any of them wrote."""
        user_id = str(message.sender_id)
        steps = []
        if self._effort is not None:
            steps.append(("effort", lambda: self._effort.update(
                user_id, classification.activity, classification.effort,
            )))
        if self._patterns is not None:
            steps.append(("pattern", lambda: self._patterns.update(
                message.chat_id, user_id, classification.activity, message.timestamp,
            )))
        if self._preferences is not None:
            steps.append(("interaction", lambda: self._preferences.record_interaction(
                user_id, message.timestamp,
            )))

        wrote = False
        for name, step in steps:
            try:
                wrote = step() or wrote
            except Exception as exc:
                logger.error("Learning update '%s' failed for %s: %s", name, user_id, exc)
        return wrote

    def _record_engagement(self, user_id: str, outcome: ClarificationOutcome) -> None:
        """Answering a clarification counts as engagement, anything else as ignoring it."""
        if self._preferences is None or outcome.reason == "not_clarification":
            return
        try:
            self._preferences.update_ignore_rate(user_id, ignored=not outcome.handled)
        except Exception as exc:
            logger.error("Ignore-rate update failed for %s: %s", user_id, exc)

    async def _reply(self, message: IncomingMessage, text: str, result: ProcessOutcome) -> None:
        try:
            send = await self._messenger.send_reply(
                message.chat_id, text, reply_to_message_id=message.message_id,
            )
        except Exception as exc:
            logger.error("Reply to %s/%d raised: %s", message.chat_id, message.message_id, exc)
            return
        result.side_effects.append("reply_attempted")

        if not send.ok:
            logger.error("Reply to %s/%d not sent: %s", message.chat_id, message.message_id, send.error)
            return

        result.sent = True
        result.bot_reply_id = send.message_id

        try:
            today = local_date(message.timestamp, self._policy.config.timezone)
            self._counters.increment(message.chat_id, today, now=decision_instant(message))
            result.side_effects.append("counter_incremented")
        except Exception as exc:
            logger.error("Response counter increment failed for %s: %s", message.chat_id, exc)

        if result.activity_id and send.message_id is not None:
            try:
                self._activities.set_bot_reply_id(message.chat_id, result.activity_id, send.message_id)
            except Exception as exc:
                logger.error("Linking bot reply to activity %s failed: %s", result.activity_id, exc)
