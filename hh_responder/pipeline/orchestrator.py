"""Orchestrator: wires the listing client, filter chain, AI matcher and actions.

Data flow:
  1. Resolve the resume to apply with (by title)
  2. Search -> raw vacancies
  3. Filter chain: with_test, applied_history, employers, exclude_file, ai_fit
  4. Post-run actions chosen by the operator: apply, report, dump, exclude
"""

import logging
from collections.abc import Sequence

from hh_responder.ai import get_generator, normalize_provider
from hh_responder.ai.matcher import FitMatcher
from hh_responder.ai.retry import RetryPolicy
from hh_responder.core.config import Settings
from hh_responder.core.errors import ResponderError
from hh_responder.core.exclude_file import append_excluded
from hh_responder.core.schemas import (
    EXCLUDE_REASON_MANUAL_APPLY,
    VACANCY_ID_FIELD,
    ExcludeActor,
    Resume,
    Vacancies,
    Vacancy,
)
from hh_responder.pipeline.ai_fit import AIFitFilter
from hh_responder.pipeline.filters import Filter, Step, disable_by_name, run_filters
from hh_responder.pipeline.steps import (
    AppliedHistoryFilter,
    EmployersFilter,
    ExcludeFileFilter,
    WithTestFilter,
)
from hh_responder.platforms.base import ListingClient

logger = logging.getLogger(__name__)

DEFAULT_FALLBACK_MESSAGE = "Hello! I would like to apply for this vacancy."
AI_DISABLED_REASON = "ai is disabled in config"


class RunResult:
    """Outcome of one pipeline run."""

    def __init__(
        self,
        resume: Resume,
        raw_count: int,
        vacancies: Vacancies,
        steps: list[tuple[str, Step]],
    ) -> None:
        self.resume = resume
        self.raw_count = raw_count
        self.vacancies = vacancies
        self.steps = steps


def find_resume(resumes: Sequence[Resume], title: str) -> Resume | None:
    for resume in resumes:
        if resume.title == title:
            return resume
    return None


def build_matcher(settings: Settings) -> FitMatcher | None:
    """Build the AI matcher, or None when AI screening is disabled."""
    ai = settings.ai
    if not ai.enabled:
        return None

    policy = RetryPolicy(max_attempts=ai.max_retries, max_quota_wait=ai.max_quota_wait)
    generator = get_generator(
        ai.provider,
        model=ai.model,
        api_key=ai.api_key or None,
        policy=policy,
    )
    matcher = FitMatcher(
        generator,
        min_score=ai.minimum_fit_score,
        max_log_length=ai.max_log_length,
        logger=logging.getLogger("hh_responder.ai.matcher"),
        overrides=ai.prompt,
    )
    logger.info(
        "AI assistance enabled: provider=%s model=%s minimum_fit_score=%.2f ai_retry_attempts=%d",
        normalize_provider(ai.provider), ai.model, matcher.min_score, policy.max_attempts,
    )
    return matcher


def build_filters(
    settings: Settings,
    client: ListingClient | None,
    matcher: FitMatcher | None,
    resume: Resume | None,
    *,
    ignore_applied: bool = False,
) -> list[Filter]:
    """Build the filter chain in its fixed order."""
    filter_logger = logging.getLogger("hh_responder.pipeline.filters")
    filters: list[Filter] = [
        WithTestFilter(filter_logger),
        AppliedHistoryFilter(client, ignore=ignore_applied, logger=filter_logger),
        EmployersFilter(settings.apply.exclude.employers, filter_logger),
        ExcludeFileFilter(settings.exclude_file, filter_logger),
        AIFitFilter(
            settings.ai,
            client,
            matcher,
            resume,
            exclude_file=settings.exclude_file,
            logger=filter_logger,
        ),
    ]
    if not settings.ai.enabled:
        disable_by_name(filters, AIFitFilter.name, AI_DISABLED_REASON)
    return filters


async def run_pipeline(
    settings: Settings,
    client: ListingClient,
    *,
    ignore_applied: bool = False,
) -> RunResult:
    """Search and filter vacancies.

    Raises:
        ResponderError: The configured resume does not exist, or a filter failed.
        ValueError: The AI provider cannot be constructed.
    """
    resumes = await client.get_mine_resumes()
    logger.info("Got mine resumes: count=%d", len(resumes))

    resume = find_resume(resumes, settings.apply.resume)
    if resume is None:
        titles = ", ".join(r.title for r in resumes) or "-"
        msg = f"resume with title '{settings.apply.resume}' not found (existing: {titles})"
        raise ResponderError(msg)

    logger.info("Starting the search: text=%s", settings.search.text)
    vacancies = await client.search(settings.search)
    raw_count = len(vacancies)
    if raw_count == 0:
        logger.info("Exiting: reason=no vacancies found")
        return RunResult(resume, 0, vacancies, [])

    matcher = build_matcher(settings)
    filters = build_filters(settings, client, matcher, resume, ignore_applied=ignore_applied)
    vacancies, steps = await run_filters(filters, vacancies, logger)

    logger.info("Pipeline complete: raw=%d left=%d", raw_count, len(vacancies))
    return RunResult(resume, raw_count, vacancies, steps)


def choose_message(vacancy: Vacancy, default_message: str) -> str:
    """Cover message for a vacancy.

    The AI message wins; then the configured message; then the AI reason;
    then a generic greeting.
    """
    ai = vacancy.ai
    if ai is not None and not ai.error and ai.message:
        return ai.message
    if default_message:
        return default_message
    if ai is not None and not ai.error and ai.reason:
        return ai.reason
    logger.warning("Falling back to default message: vacancy_id=%s", vacancy.id)
    return DEFAULT_FALLBACK_MESSAGE


async def apply_all(
    client: ListingClient,
    resume: Resume,
    vacancies: Vacancies,
    default_message: str,
) -> int:
    """Apply to every vacancy; the first failure stops the loop and propagates."""
    applied = 0
    for vacancy in vacancies:
        message = choose_message(vacancy, default_message)
        await client.apply(resume, vacancy, message)
        applied += 1
        if vacancy.ai is not None and not vacancy.ai.error:
            logger.info(
                "Successfully applied to vacancy: vacancy_id=%s vacancy_name=%s ai_score=%.2f",
                vacancy.id, vacancy.name, vacancy.ai.score,
            )
        else:
            logger.info(
                "Successfully applied to vacancy: vacancy_id=%s vacancy_name=%s",
                vacancy.id, vacancy.name,
            )

    logger.info("Successfully applied to vacancies: count=%d", applied)
    return applied


async def apply_one(
    client: ListingClient,
    resume: Resume,
    vacancies: Vacancies,
    vacancy_id: str,
    default_message: str,
) -> None:
    """Apply to a single vacancy and drop it from the working collection."""
    vacancy = vacancies.find_by_id(vacancy_id)
    if vacancy is None:
        msg = f"there is no such vacancy id {vacancy_id}"
        raise ResponderError(msg)
    await apply_all(client, resume, Vacancies([vacancy]), default_message)
    vacancies.exclude(VACANCY_ID_FIELD, [vacancy_id])


def exclude_all(path: str, vacancies: Vacancies) -> list[str]:
    """Append every vacancy to the exclude file and empty the collection."""
    if not path:
        msg = "exclude file is not configured"
        raise ResponderError(msg)
    stored = append_excluded(
        path, vacancies.to_excluded(ExcludeActor.HUMAN, EXCLUDE_REASON_MANUAL_APPLY)
    )
    logger.info("Appended to exclude file: path=%s", path)
    return vacancies.exclude(VACANCY_ID_FIELD, [item.id for item in stored])


def vacancy_label(vacancy: Vacancy) -> str:
    """One-line description used in the interactive menu."""
    label = f"{vacancy.id} {vacancy.name} / {vacancy.employer.name} / {vacancy.alternate_url}"
    ai = vacancy.ai
    if ai is None or ai.error:
        return label
    meta: list[str] = []
    if ai.score > 0:
        meta.append(f"AI score {ai.score:.2f}")
    if ai.reason:
        reason = ai.reason if len(ai.reason) <= 80 else ai.reason[:77] + "..."
        meta.append(reason)
    return f"{label} [{' | '.join(meta)}]" if meta else label
