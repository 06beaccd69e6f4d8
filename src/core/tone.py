"""
HomeOps Assistant — Tone validator.

The bot never blames, compares, orders around or grades anyone. Every
candidate reply is checked against this blocklist right before sending.
It is plain substring matching, not semantic analysis.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

_BLOCKED_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"you should", re.IGNORECASE), "blame"),
    (re.compile(r"you forgot", re.IGNORECASE), "blame"),
    (re.compile(r"your fault", re.IGNORECASE), "blame"),
    (re.compile(r"du borde", re.IGNORECASE), "blame"),
    (re.compile(r"more than", re.IGNORECASE), "comparison"),
    (re.compile(r"less than", re.IGNORECASE), "comparison"),
    (re.compile(r"mer än", re.IGNORECASE), "comparison"),
    (re.compile(r"do this", re.IGNORECASE), "command"),
    (re.compile(r"you need to", re.IGNORECASE), "command"),
    (re.compile(r"gör detta", re.IGNORECASE), "command"),
    (re.compile(r"good job", re.IGNORECASE), "judgment"),
    (re.compile(r"well done", re.IGNORECASE), "judgment"),
    (re.compile(r"lazy", re.IGNORECASE), "judgment"),
    (re.compile(r"bra jobbat", re.IGNORECASE), "judgment"),
    (re.compile(r"dåligt", re.IGNORECASE), "judgment"),
]


@dataclass
class ToneResult:
    valid: bool
    reason: str | None = None


def validate_tone(text: str) -> ToneResult:
    """Reject text containing any blocked phrase."""
    for pattern, category in _BLOCKED_PATTERNS:
        if pattern.search(text):
            return ToneResult(valid=False, reason=f"Contains {category} language")
    return ToneResult(valid=True)
