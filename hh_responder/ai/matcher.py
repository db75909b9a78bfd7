"""Resume/vacancy fit evaluation on top of a content generator.

Builds the prompt, calls the generator (which owns retries), parses the
provider's free-text answer into a FitAssessment and enforces the minimum
score threshold.
"""

import json
import logging
import math
import re
from typing import Any

from hh_responder.ai.base import ContentGenerator, ModelAware
from hh_responder.ai.prompt import PromptOverrides, build_prompt, sanitize_overrides
from hh_responder.core.errors import ResponseParseError
from hh_responder.core.log import ai_fields, format_fields, resolve_logger, truncate_for_log
from hh_responder.core.schemas import FitAssessment, Vacancy

DEFAULT_MAX_LOG_LENGTH = 200

_FENCE = "```"
_FENCE_OPEN_RE = re.compile(r"^```(?:json)?\s*\n?", re.IGNORECASE)


class FitMatcher:
    """Evaluates how well a resume fits a vacancy.

    Usage::

        matcher = FitMatcher(generator, min_score=0.5)
        assessment = await matcher.evaluate(resume_payload, vacancy)
    """

    def __init__(
        self,
        generator: ContentGenerator,
        min_score: float = 0.0,
        max_log_length: int = DEFAULT_MAX_LOG_LENGTH,
        logger: logging.Logger | None = None,
        overrides: PromptOverrides | None = None,
    ) -> None:
        self._generator = generator
        self._min_score = max(min_score, 0.0)
        self._max_log_length = max_log_length if max_log_length > 0 else DEFAULT_MAX_LOG_LENGTH
        self._logger = resolve_logger(logger)
        self._overrides = sanitize_overrides(overrides or PromptOverrides())

    @property
    def min_score(self) -> float:
        return self._min_score

    @property
    def log_fields(self) -> dict[str, str]:
        model = self._generator.model_name if isinstance(self._generator, ModelAware) else ""
        return ai_fields(self._generator.provider_id, model)

    def set_prompt_overrides(self, overrides: PromptOverrides) -> None:
        self._overrides = sanitize_overrides(overrides)

    def build_prompt(self, resume_payload: dict[str, Any], vacancy: Vacancy) -> str:
        resume_json = json.dumps(resume_payload, ensure_ascii=False, sort_keys=True)
        return build_prompt(self._overrides, resume_json, vacancy.to_prompt_json())

    async def evaluate(self, resume_payload: dict[str, Any], vacancy: Vacancy) -> FitAssessment:
        """Return the assessment for one vacancy.

        Generator errors propagate unchanged; an unparseable response raises
        ResponseParseError.
        """
        prompt = self.build_prompt(resume_payload, vacancy)

        self._logger.debug(
            "AI generate content request: %s",
            format_fields({
                **self.log_fields,
                "vacancy_id": vacancy.id,
                "prompt_length": len(prompt),
                "prompt_preview": truncate_for_log(prompt, self._max_log_length),
                "user_instructions": " | ".join(self._overrides.user_instructions),
            }),
        )

        raw = await self._generator.generate(prompt)

        self._logger.debug(
            "AI generate content response: %s",
            format_fields({
                "vacancy_id": vacancy.id,
                "response_length": len(raw),
                "response_preview": truncate_for_log(raw, self._max_log_length),
            }),
        )

        assessment = parse_response(raw)

        if self._min_score > 0 and assessment.score < self._min_score:
            self._logger.debug(
                "Set fit to false by score threshold: vacancy_id=%s score=%.2f threshold=%.2f",
                vacancy.id, assessment.score, self._min_score,
            )
            assessment.fit = False

        assessment.raw = raw
        return assessment


def extract_json(raw: str) -> str:
    """Strip Markdown code-fence wrapping (```json ... ```) and stray backticks.

    A fenced answer is cut at the last closing fence, so prose after it is
    dropped.
    """
    cleaned = raw.strip()
    if cleaned.startswith(_FENCE):
        cleaned = _FENCE_OPEN_RE.sub("", cleaned)
        end = cleaned.rfind(_FENCE)
        if end != -1:
            cleaned = cleaned[:end]
    return cleaned.strip().strip("`").strip()


def _reject_constant(name: str) -> float:
    msg = f"non-standard JSON constant {name}"
    raise ValueError(msg)


def parse_response(raw: str) -> FitAssessment:
    """Parse a provider response into a FitAssessment.

    Invalid JSON is an error; wrong types inside valid JSON are coerced.
    """
    cleaned = extract_json(raw)
    try:
        data = json.loads(cleaned, parse_constant=_reject_constant)
    except (ValueError, RecursionError) as e:
        msg = f"cannot parse provider response: {e}"
        raise ResponseParseError(msg) from e

    if not isinstance(data, dict):
        msg = f"cannot parse provider response: expected a JSON object, got {type(data).__name__}"
        raise ResponseParseError(msg)

    score = coerce_float(data.get("score"))
    return FitAssessment(
        fit=coerce_bool(data.get("fit")),
        score=score if math.isfinite(score) else 0.0,
        reason=coerce_str(data.get("reason")),
        message=coerce_str(data.get("message")),
    )


def coerce_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"true", "yes"}
    if isinstance(value, int | float):
        return value != 0
    return False


def coerce_float(value: Any) -> float:
    if isinstance(value, bool):
        return math.nan
    if isinstance(value, int | float):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return math.nan
    return math.nan


def coerce_str(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    try:
        return json.dumps(value, ensure_ascii=False)
    except (TypeError, ValueError):
        return str(value)
