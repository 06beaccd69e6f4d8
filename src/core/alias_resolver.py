"""
HomeOps Assistant — Alias Resolver.

Rewrites household slang into canonical activity names before the message
reaches the classifier ("hoovered" → "vacuuming"). The map merges the
static seed vocabulary with aliases this chat has confirmed; learned
entries win on conflict.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable

from src.data.vocabulary import SEED_ALIASES

if TYPE_CHECKING:
    from src.data.db import AliasDB
    from src.data.models import AliasRecord

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 5 * 60


@dataclass
class AppliedAlias:
    alias: str
    canonical_activity: str


@dataclass
class ResolveResult:
    resolved_text: str
    applied_aliases: list[AppliedAlias] = field(default_factory=list)


class AliasCache:
    """Per-chat alias lists kept in memory for a short TTL.

    An entry is valid while its age is within [0, ttl]; a clock that went
    backwards invalidates it.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[float, list[AliasRecord]]] = {}

    def get(self, chat_id: str) -> list[AliasRecord] | None:
        entry = self._entries.get(chat_id)
        if entry is None:
            return None
        fetched_at, aliases = entry
        age = self._clock() - fetched_at
        if 0 <= age <= self._ttl:
            return aliases
        del self._entries[chat_id]
        return None

    def put(self, chat_id: str, aliases: list[AliasRecord]) -> None:
        self._entries[chat_id] = (self._clock(), aliases)

    def invalidate(self, chat_id: str) -> None:
        self._entries.pop(chat_id, None)


class AliasResolver:
    """Applies seed + learned aliases to incoming text."""

    def __init__(
        self,
        alias_db: AliasDB,
        cache: AliasCache | None = None,
        seed_aliases: dict[str, str] | None = None,
    ) -> None:
        self._db = alias_db
        self._cache = cache or AliasCache()
        self._seed = SEED_ALIASES if seed_aliases is None else seed_aliases

    def learned_aliases(self, chat_id: str) -> list[AliasRecord]:
        """This chat's aliases, from cache when fresh. Store errors propagate."""
        aliases = self._cache.get(chat_id)
        if aliases is not None:
            logger.debug("Alias cache hit for %s", chat_id)
            return aliases
        aliases = self._db.get_aliases_for_chat(chat_id)
        self._cache.put(chat_id, aliases)
        return aliases

    def invalidate(self, chat_id: str) -> None:
        self._cache.invalidate(chat_id)

    def resolve(self, chat_id: str, text: str) -> ResolveResult:
        learned = self.learned_aliases(chat_id)
        if not text:
            return ResolveResult(resolved_text="")

        alias_map: dict[str, str] = {alias.lower(): canonical for alias, canonical in self._seed.items()}
        for record in learned:
            alias_map[record.alias.lower()] = record.canonical_activity

        applied: list[AppliedAlias] = []
        resolved_text = text
        for alias, canonical in alias_map.items():
            if not alias:
                continue
            pattern = re.compile(rf"(?<!\w){re.escape(alias)}(?!\w)", re.IGNORECASE)
            if alias == canonical.lower():
                # Self-mapped: the text already names the activity
                hits = 1 if pattern.search(resolved_text) else 0
            else:
                resolved_text, hits = pattern.subn(lambda _m, c=canonical: c, resolved_text)
            if hits:
                applied.append(AppliedAlias(alias=alias, canonical_activity=canonical))

        if applied:
            logger.info(
                "Resolved aliases in %s: %s",
                chat_id, ", ".join(f"{a.alias}→{a.canonical_activity}" for a in applied),
            )
        return ResolveResult(resolved_text=resolved_text, applied_aliases=applied)
