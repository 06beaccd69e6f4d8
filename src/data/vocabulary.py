"""
HomeOps Assistant — Static vocabulary.

Seed aliases shared by every conversation, and the reply patterns used to
read a user's answer to a clarification question. The household writes in
English and Swedish, so both are covered.
"""

from __future__ import annotations

import re

# Informal word → canonical activity. Keys are lowercase.
SEED_ALIASES: dict[str, str] = {
    "pant": "pantning",
    "dammsuga": "dammsugning",
    "disk": "diskning",
    "tvätt": "tvättning",
    "städ": "städning",
    "hoovering": "vacuuming",
    "hoovered": "vacuuming",
    "vacuumed": "vacuuming",
    "washing up": "dishes",
    "dishwasher": "dishes",
    "laundry": "washing",
    "groceries": "grocery shopping",
    "bins": "taking out the trash",
    "rubbish": "taking out the trash",
    "nap": "rest",
}

AFFIRMATIVE_PATTERN = re.compile(
    r"^(?:yes|yeah|yep|yup|sure|correct|exactly|right|ok|okay"
    r"|ja|japp|jepp|jo|precis|absolut|aa|mm|okej|jadå)[.!]*$",
    re.IGNORECASE,
)

_NEGATION_PREFIX = re.compile(r"^(?:no|nope|nah|nej|nä|nää|nix)[,.!]?\s+", re.IGNORECASE)


def is_affirmative(text: str) -> bool:
    return bool(AFFIRMATIVE_PATTERN.match(text.strip()))


def extract_negation_remainder(text: str) -> str | None:
    """Return what follows a leading "no", e.g. "no, I vacuumed" → "I vacuumed"."""
    if not text:
        return None
    text = text.strip()
    match = _NEGATION_PREFIX.match(text)
    if not match:
        return None
    remainder = text[match.end():].strip()
    return remainder or None
