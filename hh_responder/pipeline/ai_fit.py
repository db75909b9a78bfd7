"""AI-fit filter: ask the configured model whether each vacancy fits the resume.

Vacancies are evaluated one at a time, in collection order. A failed fetch
drops the vacancy; a failed evaluation keeps it with the error attached; a
"not fit" verdict drops it and records it in the exclude file so the next run
does not pay for the same question again.
"""

import logging
from typing import Any

from hh_responder.ai import available_providers, normalize_provider
from hh_responder.ai.matcher import FitMatcher
from hh_responder.core.config import AIConfig
from hh_responder.core.exclude_file import append_excluded
from hh_responder.core.log import format_fields
from hh_responder.core.schemas import (
    AIAssessment,
    ExcludeActor,
    FitAssessment,
    Resume,
    Vacancies,
    Vacancy,
)
from hh_responder.pipeline.filters import Filter, Step
from hh_responder.platforms.base import ListingClient


class AIFitFilter(Filter):
    name = "ai_fit"

    def __init__(
        self,
        config: AIConfig | None,
        client: ListingClient | None,
        matcher: FitMatcher | None,
        resume: Resume | None,
        exclude_file: str = "",
        logger: logging.Logger | None = None,
    ) -> None:
        super().__init__(logger)
        self._config = config
        self._client = client
        self._matcher = matcher
        self._resume = resume
        self._exclude_file = exclude_file.strip()
        self._assessments: dict[str, FitAssessment] = {}

    def validate(self) -> None:
        cfg = self._config
        if cfg is None:
            msg = "ai config is required"
            raise ValueError(msg)
        if cfg.provider and normalize_provider(cfg.provider) not in available_providers():
            msg = f"unsupported ai provider '{cfg.provider}'"
            raise ValueError(msg)
        if not cfg.model.strip():
            msg = "ai model is required"
            raise ValueError(msg)
        if cfg.minimum_fit_score < 0:
            msg = f"minimum fit score must be >= 0, got {cfg.minimum_fit_score}"
            raise ValueError(msg)
        if self._matcher is None:
            msg = "ai matcher is not configured"
            raise ValueError(msg)
        if self._client is None:
            msg = "listing client is required"
            raise ValueError(msg)
        if self._resume is None or not self._resume.id:
            msg = "resume is required"
            raise ValueError(msg)

    def assessments(self) -> dict[str, FitAssessment]:
        """Assessments of the vacancies the model approved, keyed by vacancy ID."""
        return dict(self._assessments)

    def details(self) -> dict[str, str]:
        cfg = self._config
        if cfg is None:
            return {}
        details = {
            "minimum_fit_score": f"{cfg.minimum_fit_score:.2f}",
            "max_retries": str(cfg.max_retries),
            "max_log_length": str(cfg.max_log_length),
        }
        if cfg.model:
            details["model"] = cfg.model
        if cfg.provider:
            details["provider"] = normalize_provider(cfg.provider)
        return details

    async def apply(self, vacancies: Vacancies) -> tuple[Vacancies, Step]:
        assert self._client is not None and self._matcher is not None and self._resume is not None
        initial = len(vacancies)
        self._assessments = {}

        resume_payload = await self._client.get_resume_raw(self._resume.id)

        kept: list[Vacancy] = []
        for vacancy in list(vacancies):
            result = await self._evaluate_one(resume_payload, vacancy)
            if result is not None:
                kept.append(result)

        vacancies.items = kept
        return vacancies, Step.between(initial, len(vacancies))

    async def _evaluate_one(self, resume_payload: dict[str, Any], vacancy: Vacancy) -> Vacancy | None:
        """Return the vacancy to keep, or None when it is dropped."""
        assert self._client is not None and self._matcher is not None
        fields = self._matcher.log_fields

        try:
            detailed = await self._client.get_vacancy(vacancy.id)
        except Exception as e:
            self._logger.warning(
                "Failed to fetch vacancy details, skipping: %s",
                format_fields({**fields, "vacancy_id": vacancy.id, "error": e}),
            )
            return None

        try:
            assessment = await self._matcher.evaluate(resume_payload, detailed)
        except Exception as e:
            self._logger.warning(
                "AI evaluation failed, keeping vacancy: %s",
                format_fields({**fields, "vacancy_id": detailed.id, "error": e}),
            )
            detailed.ai = AIAssessment(error=str(e))
            return detailed

        detailed.ai = assessment.to_ai()

        if not assessment.fit:
            self._logger.info(
                "AI rejected vacancy: %s",
                format_fields({
                    **fields,
                    "vacancy_id": detailed.id,
                    "score": f"{assessment.score:.2f}",
                    "reason": assessment.reason,
                }),
            )
            self._record_rejection(detailed)
            return None

        self._logger.info(
            "AI approved vacancy: %s",
            format_fields({**fields, "vacancy_id": detailed.id, "score": f"{assessment.score:.2f}"}),
        )
        self._assessments[detailed.id] = assessment
        return detailed

    def _record_rejection(self, vacancy: Vacancy) -> None:
        if not self._exclude_file:
            return
        try:
            append_excluded(self._exclude_file, Vacancies([vacancy]).to_excluded(ExcludeActor.AI))
        except Exception as e:
            self._logger.warning(
                "Failed to append AI-rejected vacancy to exclude file: path=%s vacancy_id=%s error=%s",
                self._exclude_file, vacancy.id, e,
            )
