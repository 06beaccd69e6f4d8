"""
HomeOps Assistant — Clarification Feedback Handler.

Closes the learning loop. When the bot asked "Did you mean vacuuming?"
and someone answers:

- "yes"                  → the suggestion is confirmed as household vocabulary
- "no, I did the dishes" → the remainder is re-classified and, if the model
                           is confident enough, learned instead
- anything else          → ambiguous, nothing is written

Only the alias store is written here, and an ambiguous reply writes
nothing at all. An affirmative answer never calls the model.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from src.core.classifier import ClassificationContext
from src.data.vocabulary import extract_negation_remainder, is_affirmative

if TYPE_CHECKING:
    from src.core.alias_resolver import AliasResolver
    from src.core.classifier import Classifier
    from src.data.db import AliasDB

logger = logging.getLogger(__name__)

# Current English template plus the legacy Swedish one
_CLARIFICATION_REGEX = re.compile(r"(?:Did you mean|Menade du) (.+)\?")

DEFAULT_CORRECTION_CONFIDENCE = 0.70


@dataclass
class ClarificationOutcome:
    handled: bool
    action: str | None = None         # "confirmed" | "corrected"
    activity: str | None = None
    reason: str | None = None         # "not_clarification" | "ambiguous" | "low_confidence"


def extract_suggested_activity(bot_text: str) -> str | None:
    """Pull the proposed activity out of a bot clarification message."""
    if not bot_text:
        return None
    match = _CLARIFICATION_REGEX.search(bot_text)
    if not match:
        return None
    return match.group(1).strip() or None


class ClarificationHandler:
    def __init__(
        self,
        alias_db: AliasDB,
        classifier: Classifier,
        resolver: AliasResolver | None = None,
        correction_confidence: float = DEFAULT_CORRECTION_CONFIDENCE,
    ) -> None:
        self._aliases = alias_db
        self._classifier = classifier
        self._resolver = resolver
        self._correction_confidence = correction_confidence

    async def handle_reply(
        self, chat_id: str, user_id: str, bot_text: str, reply_text: str,
    ) -> ClarificationOutcome:
        suggested = extract_suggested_activity(bot_text)
        if suggested is None:
            return ClarificationOutcome(handled=False, reason="not_clarification")

        outcome = await self._interpret(chat_id, suggested, reply_text or "")
        logger.info(
            "Clarification reply in %s from %s: handled=%s action=%s reason=%s activity=%s",
            chat_id, user_id, outcome.handled, outcome.action, outcome.reason, outcome.activity,
        )
        return outcome

    async def _interpret(self, chat_id: str, suggested: str, reply_text: str) -> ClarificationOutcome:
        if is_affirmative(reply_text):
            self._learn(chat_id, suggested)
            return ClarificationOutcome(handled=True, action="confirmed", activity=suggested)

        remainder = extract_negation_remainder(reply_text)
        if remainder:
            aliases = self._aliases.get_aliases_for_chat(chat_id)
            context = ClassificationContext(
                aliases=[(a.alias, a.canonical_activity) for a in aliases],
            )
            classification = await self._classifier.classify(remainder, context)
            if (
                classification.type != "none"
                and classification.activity
                and classification.confidence >= self._correction_confidence
            ):
                self._learn(chat_id, classification.activity)
                return ClarificationOutcome(
                    handled=True, action="corrected", activity=classification.activity,
                )
            return ClarificationOutcome(handled=False, reason="low_confidence")

        return ClarificationOutcome(handled=False, reason="ambiguous")

    def _learn(self, chat_id: str, activity: str) -> None:
        existing = next(
            (a for a in self._aliases.get_aliases_for_chat(chat_id) if a.canonical_activity == activity),
            None,
        )
        if existing is not None:
            self._aliases.increment_confirmation(chat_id, existing.alias)
        else:
            self._aliases.put_alias(chat_id, alias=activity, canonical_activity=activity, source="learned")
        if self._resolver is not None:
            self._resolver.invalidate(chat_id)
