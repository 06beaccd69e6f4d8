"""Tests for src.core.classifier — LLM classification gateway.

The LLM client is always faked; no network calls.
"""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from pydantic import ValidationError

from src.core.classifier import (
    FALLBACK_RESULT,
    ClassificationContext,
    ClassificationResult,
    Classifier,
    _clean_llm_response,
    _render_context,
    parse_classification,
)


def _payload(**overrides):
    data = {"type": "chore", "activity": "dishes", "effort": "medium", "confidence": 0.93}
    data.update(overrides)
    return json.dumps(data)


def _fake_llm(*responses):
    llm = MagicMock()
    llm.complete = AsyncMock(side_effect=list(responses))
    return llm


class TestCleanResponse:
    def test_json_fence(self):
        assert _clean_llm_response('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_plain_fence(self):
        assert _clean_llm_response('```\n{"a": 1}\n```') == '{"a": 1}'

    def test_no_fence(self):
        assert _clean_llm_response('  {"a": 1} ') == '{"a": 1}'


class TestParseClassification:
    def test_valid(self):
        result = parse_classification(_payload())
        assert result == ClassificationResult(
            type="chore", activity="dishes", effort="medium", confidence=0.93,
        )

    def test_fenced(self):
        assert parse_classification(f"```json\n{_payload()}\n```").activity == "dishes"

    def test_empty(self):
        with pytest.raises(ValueError):
            parse_classification("")

    def test_not_json(self):
        with pytest.raises(ValueError):
            parse_classification("I think it is a chore")

    def test_array(self):
        with pytest.raises(ValueError):
            parse_classification("[1, 2]")

    @pytest.mark.parametrize("overrides", [
        {"type": "errand"},
        {"effort": "extreme"},
        {"confidence": 1.2},
        {"confidence": -0.1},
        {"extra": "field"},
    ])
    def test_shape_violations(self, overrides):
        with pytest.raises(ValidationError):
            parse_classification(_payload(**overrides))

    @pytest.mark.parametrize("overrides", [
        {"confidence": True},
        {"confidence": "0.93"},
        {"activity": 42},
        {"activity": None},
        {"type": ["chore"]},
    ])
    def test_wrong_types_are_not_coerced(self, overrides):
        with pytest.raises(ValidationError):
            parse_classification(_payload(**overrides))

    def test_integer_confidence_is_a_number(self):
        assert parse_classification(_payload(confidence=1)).confidence == 1.0

    def test_missing_key(self):
        with pytest.raises(ValidationError):
            parse_classification(json.dumps({"type": "chore", "activity": "x", "effort": "low"}))

    def test_result_is_frozen(self):
        result = parse_classification(_payload())
        with pytest.raises(ValidationError):
            result.confidence = 0.1


class TestRenderContext:
    def test_none(self):
        assert _render_context(None) == ""

    def test_aliases_and_hints(self):
        text = _render_context(ClassificationContext(
            aliases=[("disk", "diskning")], effort_hints={"laundry": 2.6},
        ))
        assert '"disk" means "diskning"' in text
        assert '"laundry": 2.6' in text


class TestClassify:
    @pytest.mark.asyncio
    async def test_happy_path(self):
        llm = _fake_llm(_payload())
        result = await Classifier(llm).classify("I did the dishes")
        assert result.type == "chore"
        assert result.confidence == pytest.approx(0.93)
        kwargs = llm.complete.await_args.kwargs
        assert kwargs["user_message"] == "I did the dishes"
        assert "household activity classifier" in kwargs["system"]

    @pytest.mark.asyncio
    async def test_context_in_prompt(self):
        llm = _fake_llm(_payload())
        context = ClassificationContext(aliases=[("pant", "pantning")])
        await Classifier(llm).classify("pant klar", context)
        assert '"pant" means "pantning"' in llm.complete.await_args.kwargs["system"]

    @pytest.mark.asyncio
    async def test_empty_text_skips_llm(self):
        llm = _fake_llm()
        assert await Classifier(llm).classify("   ") == FALLBACK_RESULT
        llm.complete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_malformed_then_valid_retries(self):
        llm = _fake_llm("not json", _payload(activity="laundry"))
        result = await Classifier(llm, retries=1).classify("laundry done")
        assert result.activity == "laundry"
        assert llm.complete.await_count == 2

    @pytest.mark.asyncio
    async def test_malformed_exhausts_retries(self):
        llm = _fake_llm("nope", '{"type": "maybe"}')
        result = await Classifier(llm, retries=1).classify("hmm")
        assert result == FALLBACK_RESULT
        assert llm.complete.await_count == 2

    @pytest.mark.asyncio
    async def test_string_confidence_falls_back(self):
        llm = _fake_llm(_payload(confidence="0.93"), _payload(confidence=True))
        assert await Classifier(llm, retries=1).classify("did dishes") == FALLBACK_RESULT

    @pytest.mark.asyncio
    async def test_empty_text_is_logged(self, caplog):
        with caplog.at_level("INFO", logger="src.core.classifier"):
            await Classifier(_fake_llm()).classify("")
        assert "Empty message text" in caplog.text

    @pytest.mark.asyncio
    async def test_provider_error_falls_back(self):
        llm = _fake_llm(RuntimeError("rate limited"), RuntimeError("still limited"))
        assert await Classifier(llm).classify("did dishes") == FALLBACK_RESULT

    @pytest.mark.asyncio
    async def test_no_retries(self):
        llm = _fake_llm(RuntimeError("boom"))
        assert await Classifier(llm, retries=0).classify("did dishes") == FALLBACK_RESULT
        assert llm.complete.await_count == 1

    @pytest.mark.asyncio
    async def test_timeout_falls_back(self):
        async def slow(**kwargs):
            await asyncio.sleep(1)
            return _payload()

        llm = MagicMock()
        llm.complete = slow
        result = await Classifier(llm, timeout=0.01, retries=0).classify("did dishes")
        assert result == FALLBACK_RESULT

    def test_fallback_shape(self):
        assert FALLBACK_RESULT.type == "none"
        assert FALLBACK_RESULT.activity == ""
        assert FALLBACK_RESULT.effort == "low"
        assert FALLBACK_RESULT.confidence == 0.0
