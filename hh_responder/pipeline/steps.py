"""Filters that need no AI: tests, application history, employers, exclude file."""

import logging
from collections.abc import Sequence

from hh_responder.core.exclude_file import excluded_ids
from hh_responder.core.schemas import VACANCY_EMPLOYER_ID_FIELD, VACANCY_ID_FIELD, Vacancies
from hh_responder.pipeline.filters import Filter, Step
from hh_responder.platforms.base import ListingClient

IGNORE_APPLIED_REASON = "skip requested via flag"


class WithTestFilter(Filter):
    """Remove vacancies that require a test; those cannot be applied to."""

    name = "with_test"

    async def apply(self, vacancies: Vacancies) -> tuple[Vacancies, Step]:
        initial = len(vacancies)
        excluded = vacancies.exclude_with_test()
        if excluded:
            self._logger.info(
                "Excluding vacancies with tests, it is impossible to apply them: "
                "excluded=%s left=%d",
                excluded, len(vacancies),
            )
        return vacancies, Step.between(initial, len(vacancies))


class AppliedHistoryFilter(Filter):
    """Remove vacancies already present in the negotiation history."""

    name = "applied_history"

    def __init__(
        self,
        client: ListingClient | None,
        *,
        ignore: bool = False,
        logger: logging.Logger | None = None,
    ) -> None:
        super().__init__(logger)
        self._client = client
        self._ignore = ignore

    def validate(self) -> None:
        if self._client is None and not self._ignore:
            msg = "listing client is required"
            raise ValueError(msg)

    async def apply(self, vacancies: Vacancies) -> tuple[Vacancies, Step]:
        initial = len(vacancies)
        if self._ignore:
            self._logger.info("Ignoring already applied vacancies: reason=%s", IGNORE_APPLIED_REASON)
            return vacancies, Step.unchanged(initial)

        assert self._client is not None
        applied = await self._client.get_negotiated_vacancy_ids()
        excluded = vacancies.exclude(VACANCY_ID_FIELD, applied)
        if excluded:
            self._logger.info(
                "Excluding vacancies based on my negotiations: excluded=%s left=%d",
                excluded, len(vacancies),
            )
        return vacancies, Step.between(initial, len(vacancies))

    def details(self) -> dict[str, str]:
        if self._ignore:
            return {"exclude_applied": "false", "reason": IGNORE_APPLIED_REASON}
        return {"exclude_applied": "true"}


class EmployersFilter(Filter):
    """Remove vacancies posted by blocklisted employer IDs."""

    name = "employers"

    def __init__(self, employers: Sequence[str], logger: logging.Logger | None = None) -> None:
        super().__init__(logger)
        self._configured = tuple(employers)
        self._employers: list[str] = []

    def validate(self) -> None:
        # Normalized copy lives on the filter; the config tuple is left untouched.
        seen: set[str] = set()
        self._employers = []
        for employer in self._configured:
            employer = str(employer).strip()
            if employer and employer not in seen:
                seen.add(employer)
                self._employers.append(employer)

    async def apply(self, vacancies: Vacancies) -> tuple[Vacancies, Step]:
        initial = len(vacancies)
        if not self._employers:
            return vacancies, Step.unchanged(initial)

        # One employer may post several vacancies, so exclude until none match.
        excluded: list[str] = []
        while True:
            removed = vacancies.exclude(VACANCY_EMPLOYER_ID_FIELD, self._employers)
            if not removed:
                break
            excluded.extend(removed)

        if excluded:
            self._logger.info(
                "Excluding vacancies by employers: employers=%s excluded=%s left=%d",
                ",".join(self._employers), excluded, len(vacancies),
            )
        return vacancies, Step.between(initial, len(vacancies))

    def details(self) -> dict[str, str]:
        return {"employers": ",".join(self._employers)} if self._employers else {}


class ExcludeFileFilter(Filter):
    """Remove vacancies listed in the exclude file. No path means no-op."""

    name = "exclude_file"

    def __init__(self, path: str, logger: logging.Logger | None = None) -> None:
        super().__init__(logger)
        self._configured = path
        self._path = ""

    def validate(self) -> None:
        self._path = self._configured.strip()

    async def apply(self, vacancies: Vacancies) -> tuple[Vacancies, Step]:
        initial = len(vacancies)
        if not self._path:
            return vacancies, Step.unchanged(initial)

        ids = excluded_ids(self._path)
        removed = vacancies.exclude(VACANCY_ID_FIELD, ids)
        if removed:
            self._logger.info(
                "Excluding vacancies based on exclude file: path=%s excluded=%s left=%d",
                self._path, removed, len(vacancies),
            )
        return vacancies, Step.between(initial, len(vacancies))

    def details(self) -> dict[str, str]:
        return {"path": self._path} if self._path else {}
