"""Tests for the fit matcher: prompt, parsing, coercion and the score threshold."""

import asyncio
import json
import math

import pytest

from hh_responder.ai.base import ContentGenerator
from hh_responder.ai.matcher import (
    FitMatcher,
    coerce_bool,
    coerce_float,
    coerce_str,
    extract_json,
    parse_response,
)
from hh_responder.ai.prompt import PromptOverrides
from hh_responder.core.errors import GenerationError, ResponseParseError
from hh_responder.core.schemas import Vacancy


class _StubGenerator(ContentGenerator):
    def __init__(self, reply: str = "", error: Exception | None = None) -> None:
        self.reply = reply
        self.error = error
        self.prompts: list[str] = []

    @property
    def provider_id(self) -> str:
        return "stub"

    @property
    def model_name(self) -> str:
        return "stub-1"

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.reply


def _vacancy(vacancy_id: str = "1") -> Vacancy:
    return Vacancy.model_validate({
        "id": vacancy_id,
        "name": "Python Developer",
        "employer": {"id": "10", "name": "Acme"},
        "description": "Python, asyncio",
    })


def _evaluate(matcher: FitMatcher, vacancy: Vacancy | None = None):
    return asyncio.run(matcher.evaluate({"title": "Backend engineer"}, vacancy or _vacancy()))


class TestEvaluate:
    def test_fit_response(self) -> None:
        reply = '{"fit": true, "score": 0.9, "reason": "strong match", "message": "Hi"}'
        result = _evaluate(FitMatcher(_StubGenerator(reply)))
        assert result.fit is True
        assert result.score == 0.9
        assert result.reason == "strong match"
        assert result.message == "Hi"
        assert result.raw == reply

    def test_threshold_forces_not_fit(self) -> None:
        result = _evaluate(FitMatcher(_StubGenerator('{"fit":true,"score":0.3}'), min_score=0.5))
        assert result.fit is False
        assert result.score == 0.3

    def test_threshold_zero_disables(self) -> None:
        result = _evaluate(FitMatcher(_StubGenerator('{"fit":true,"score":0.01}')))
        assert result.fit is True

    def test_score_at_threshold_keeps_fit(self) -> None:
        result = _evaluate(FitMatcher(_StubGenerator('{"fit":true,"score":0.5}'), min_score=0.5))
        assert result.fit is True

    def test_fenced_json_same_as_plain(self) -> None:
        plain = '{"fit": true, "score": 0.8, "reason": "ok"}'
        fenced = f"```json\n{plain}\n```"
        a = _evaluate(FitMatcher(_StubGenerator(plain)))
        b = _evaluate(FitMatcher(_StubGenerator(fenced)))
        assert (a.fit, a.score, a.reason, a.message) == (b.fit, b.score, b.reason, b.message)
        assert b.raw == fenced

    def test_generator_error_propagates(self) -> None:
        matcher = FitMatcher(_StubGenerator(error=GenerationError("boom")))
        with pytest.raises(GenerationError, match="boom"):
            _evaluate(matcher)

    def test_invalid_json_raises(self) -> None:
        with pytest.raises(ResponseParseError, match="cannot parse provider response"):
            _evaluate(FitMatcher(_StubGenerator("I think it fits")))

    def test_prompt_contains_payloads(self) -> None:
        generator = _StubGenerator('{"fit": false}')
        _evaluate(FitMatcher(generator), _vacancy("777"))
        prompt = generator.prompts[0]
        assert '"title": "Backend engineer"' in prompt
        assert '"id": "777"' in prompt
        assert "- Tone: Friendly" in prompt

    def test_prompt_overrides_applied(self) -> None:
        generator = _StubGenerator('{"fit": false}')
        matcher = FitMatcher(generator)
        matcher.set_prompt_overrides(PromptOverrides(tone="Formal"))
        _evaluate(matcher)
        assert "- Tone: Formal" in generator.prompts[0]

    def test_log_fields(self) -> None:
        matcher = FitMatcher(_StubGenerator())
        assert matcher.log_fields == {"ai_provider": "stub", "ai_model": "stub-1"}

    def test_negative_min_score_clamped(self) -> None:
        assert FitMatcher(_StubGenerator(), min_score=-1).min_score == 0.0


class TestParseResponse:
    def test_coerces_loose_types(self) -> None:
        result = parse_response(
            '{"fit": "yes", "score": "0.75", "reason": ["a", "b"], "message": 5}'
        )
        assert result.fit is True
        assert result.score == 0.75
        assert json.loads(result.reason) == ["a", "b"]
        assert result.message == "5"

    def test_bad_score_becomes_zero(self) -> None:
        assert parse_response('{"fit": true, "score": "high"}').score == 0.0
        assert parse_response('{"fit": true}').score == 0.0

    def test_non_object_raises(self) -> None:
        with pytest.raises(ResponseParseError, match="expected a JSON object"):
            parse_response("[1, 2]")

    def test_missing_fields_default(self) -> None:
        result = parse_response("{}")
        assert result.fit is False
        assert result.reason == ""
        assert result.message == ""

    def test_non_standard_constants_rejected(self) -> None:
        for constant in ("Infinity", "-Infinity", "NaN"):
            with pytest.raises(ResponseParseError, match="cannot parse provider response"):
                parse_response('{"fit": true, "score": %s}' % constant)

    def test_infinite_string_score_becomes_zero(self) -> None:
        assert parse_response('{"fit": true, "score": "inf"}').score == 0.0
        assert parse_response('{"fit": true, "score": 1e999}').score == 0.0

    def test_deep_nesting_is_a_parse_error(self) -> None:
        with pytest.raises(ResponseParseError, match="cannot parse provider response"):
            parse_response("[" * 200000)

    def test_fenced_answer_with_trailing_prose(self) -> None:
        result = parse_response(
            '```json\n{"fit": true, "score": 0.8}\n```\nLet me know if you need more.'
        )
        assert result.fit is True
        assert result.score == 0.8


class TestExtractJson:
    def test_plain(self) -> None:
        assert extract_json(' {"a": 1} ') == '{"a": 1}'

    def test_fence_without_language(self) -> None:
        assert extract_json('```\n{"a": 1}\n```') == '{"a": 1}'

    def test_text_after_closing_fence_dropped(self) -> None:
        assert extract_json('```json\n{"a": 1}\n```\nHope this helps!') == '{"a": 1}'

    def test_inline_backticks(self) -> None:
        assert extract_json('`{"a": 1}`') == '{"a": 1}'


class TestCoercion:
    def test_bool(self) -> None:
        assert coerce_bool(True) is True
        assert coerce_bool("TRUE") is True
        assert coerce_bool("no") is False
        assert coerce_bool(1) is True
        assert coerce_bool(0.0) is False
        assert coerce_bool(None) is False

    def test_float(self) -> None:
        assert coerce_float(1) == 1.0
        assert coerce_float(" 0.5 ") == 0.5
        assert math.isnan(coerce_float(True))
        assert math.isnan(coerce_float(None))
        assert math.isnan(coerce_float("n/a"))

    def test_str(self) -> None:
        assert coerce_str(None) == ""
        assert coerce_str("  hi ") == "hi"
        assert coerce_str({"k": "v"}) == '{"k": "v"}'
