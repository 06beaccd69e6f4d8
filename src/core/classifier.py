"""
HomeOps Assistant — Classification Gateway.

Turns one chat message into a typed ClassificationResult using the
configured LLM. The gateway never raises: timeouts, refusals, malformed
JSON and provider errors all collapse into the fixed "none" fallback,
which the rest of the pipeline treats as "stay silent".

Confidence coming back from the model is uncalibrated; thresholds in the
response policy are the only place it is enforced.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

if TYPE_CHECKING:
    from src.core.llm import LLMClient

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Shared JSON contract
# ---------------------------------------------------------------------------


class ClassificationResult(BaseModel):
    """Structured classification of a single message.

    JSON example:
    {
        "type": "chore",
        "activity": "dishes",
        "effort": "medium",
        "confidence": 0.92
    }
    """

    # Strict: "0.93" or true for confidence is a malformed reply, not a value
    model_config = ConfigDict(frozen=True, extra="forbid", strict=True)

    type: Literal["chore", "recovery", "none"]
    activity: str
    effort: Literal["low", "medium", "high"]
    confidence: float = Field(ge=0.0, le=1.0)


FALLBACK_RESULT = ClassificationResult(type="none", activity="", effort="low", confidence=0.0)


@dataclass
class ClassificationContext:
    """Learned hints passed to the model alongside the message."""

    aliases: list[tuple[str, str]] = field(default_factory=list)   # (alias, canonical)
    effort_hints: dict[str, float] = field(default_factory=dict)   # activity → EMA 1..3


# ---------------------------------------------------------------------------
# System prompt for LLM
# ---------------------------------------------------------------------------

_SYSTEM_PROMPT = """\
You are a household activity classifier for a shared family chat.
The chat is mostly English with some Swedish.
Given ONE message, decide whether it reports a completed household activity.

Classify into exactly one "type":
- "chore": household tasks or productive activities that were done
- "recovery": rest, relaxation or self-care that was done
- "none": anything else (questions, plans, chit-chat, future intentions)

Give a short lowercase "activity" label (e.g. "dishes", "vacuuming", "resting"),
an "effort" of "low", "medium" or "high", and a "confidence" between 0 and 1.

Confidence bands:
- 0.85-1.0: the message clearly reports a completed activity
- 0.60-0.84: the message likely reports an activity
- 0.30-0.59: ambiguous
- 0.00-0.29: unlikely to be an activity

Examples:
- "I cleaned the whole flat" -> {{"type": "chore", "activity": "cleaning", "effort": "high", "confidence": 0.95}}
- "Did the dishes after dinner" -> {{"type": "chore", "activity": "dishes", "effort": "medium", "confidence": 0.92}}
- "Dammsugade vardagsrummet" -> {{"type": "chore", "activity": "dammsugning", "effort": "medium", "confidence": 0.93}}
- "Had a nap on the sofa" -> {{"type": "recovery", "activity": "rest", "effort": "low", "confidence": 0.88}}
- "What should we eat tonight?" -> {{"type": "none", "activity": "", "effort": "low", "confidence": 0.15}}
{context}
Return ONLY a JSON object with exactly the keys "type", "activity", "effort", "confidence".
No markdown, no explanation, no extra text.
"""


def _render_context(context: ClassificationContext | None) -> str:
    if context is None:
        return ""
    parts: list[str] = []
    if context.aliases:
        lines = "\n".join(f'- "{alias}" means "{canonical}"' for alias, canonical in context.aliases)
        parts.append(f"\nThis household's own words (use the canonical label):\n{lines}\n")
    if context.effort_hints:
        lines = "\n".join(
            f'- "{activity}": {ema:.1f} (1=low, 2=medium, 3=high)'
            for activity, ema in context.effort_hints.items()
        )
        parts.append(f"\nTypical effort this person reports:\n{lines}\n")
    return "".join(parts)


def _clean_llm_response(raw_text: str) -> str:
    """Remove markdown code block delimiters from LLM's raw response."""
    cleaned_text = raw_text.strip()
    if cleaned_text.startswith("```json"):
        cleaned_text = cleaned_text.removeprefix("```json")
    elif cleaned_text.startswith("```"):
        cleaned_text = cleaned_text.removeprefix("```")
    if cleaned_text.endswith("```"):
        cleaned_text = cleaned_text.removesuffix("```")
    return cleaned_text.strip()


def parse_classification(raw_text: str | None) -> ClassificationResult:
    """Validate raw model output. Raises ValueError on any shape deviation."""
    if not raw_text:
        raise ValueError("empty response")
    data = json.loads(_clean_llm_response(raw_text))
    if not isinstance(data, dict):
        raise ValueError(f"expected object, got {type(data).__name__}")
    return ClassificationResult.model_validate(data)


# ---------------------------------------------------------------------------
# Gateway
# ---------------------------------------------------------------------------


class Classifier:
    """Wraps the LLM call; always returns a ClassificationResult."""

    def __init__(self, llm: LLMClient, timeout: float = 10.0, retries: int = 1) -> None:
        self._llm = llm
        self._timeout = timeout
        self._retries = retries

    async def classify(
        self, text: str, context: ClassificationContext | None = None,
    ) -> ClassificationResult:
        if not text or not text.strip():
            logger.info("Empty message text, skipping classification")
            return FALLBACK_RESULT

        system_prompt = _SYSTEM_PROMPT.format(context=_render_context(context))

        for attempt in range(self._retries + 1):
            try:
                raw_text = await asyncio.wait_for(
                    self._llm.complete(system=system_prompt, user_message=text, max_tokens=200),
                    timeout=self._timeout,
                )
                result = parse_classification(raw_text)
                logger.info(
                    "Classified '%s' → %s/%s (effort=%s, confidence=%.2f)",
                    text[:80], result.type, result.activity, result.effort, result.confidence,
                )
                return result
            except asyncio.TimeoutError:
                logger.error("Classification timed out after %.1fs (attempt %d)", self._timeout, attempt + 1)
            except (json.JSONDecodeError, ValidationError, ValueError) as exc:
                logger.error("Malformed classification response (attempt %d): %s", attempt + 1, exc)
            except Exception as exc:
                logger.error("Classification call failed (attempt %d): %s", attempt + 1, exc)

        return FALLBACK_RESULT
