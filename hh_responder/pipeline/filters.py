"""Filter framework and pipeline runner.

A run has two phases over the enabled filters, in the order given:

  1. validate() every filter; the first failure aborts before any filter is
     applied.
  2. apply() every filter, feeding each the collection returned by the
     previous one; a failure aborts with the filter's name attached.

Disabled filters stay in the list for status reporting but are skipped in
both phases. Filters only ever remove vacancies.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field

from hh_responder.core.errors import FilterError, FilterValidationError
from hh_responder.core.log import resolve_logger
from hh_responder.core.schemas import Vacancies


@dataclass(frozen=True)
class Step:
    """Before/after counts of one filter stage."""

    initial: int
    dropped: int
    left: int

    @classmethod
    def between(cls, initial: int, left: int) -> "Step":
        return cls(initial=initial, dropped=initial - left, left=left)

    @classmethod
    def unchanged(cls, count: int) -> "Step":
        return cls(initial=count, dropped=0, left=count)


@dataclass(frozen=True)
class Status:
    name: str
    enabled: bool
    reason: str = ""
    details: dict[str, str] = field(default_factory=dict)


class Filter(ABC):
    """One pipeline stage that removes zero or more vacancies."""

    name: str = ""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._enabled = True
        self._reason = ""
        self._logger = resolve_logger(logger)

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def disabled_reason(self) -> str:
        return self._reason

    def disable(self, reason: str = "") -> None:
        self._enabled = False
        self._reason = reason

    def validate(self) -> None:  # noqa: B027 - optional hook
        """Check configuration. Must not mutate shared config; may cache on self."""

    @abstractmethod
    async def apply(self, vacancies: Vacancies) -> tuple[Vacancies, Step]:
        """Remove rejected vacancies and return the collection with stage counts."""

    def details(self) -> dict[str, str]:
        return {}

    def status(self) -> Status:
        return Status(
            name=self.name,
            enabled=self._enabled,
            reason=self._reason,
            details=self.details(),
        )


def disable_by_name(filters: Sequence[Filter], name: str, reason: str) -> None:
    """Mark every filter called ``name`` as disabled, keeping it in the list."""
    for f in filters:
        if f.name == name:
            f.disable(reason)


async def run_filters(
    filters: Sequence[Filter],
    vacancies: Vacancies,
    logger: logging.Logger | None = None,
) -> tuple[Vacancies, list[tuple[str, Step]]]:
    """Validate then apply the filters in order.

    Returns the surviving vacancies and one (name, Step) entry per filter;
    disabled filters report an unchanged step.

    Raises:
        FilterValidationError: A filter rejected its configuration.
        FilterError: A filter failed while being applied.
    """
    log = resolve_logger(logger)

    for f in filters:
        if not f.enabled:
            continue
        try:
            f.validate()
        except Exception as e:
            raise FilterValidationError(f.name, e) from e

    steps: list[tuple[str, Step]] = []
    for f in filters:
        if not f.enabled:
            log.info("Filter disabled: name=%s reason=%s", f.name, f.disabled_reason or "-")
            steps.append((f.name, Step.unchanged(len(vacancies))))
            continue

        try:
            result, step = await f.apply(vacancies)
        except FilterError:
            raise
        except Exception as e:
            raise FilterError(f.name, e) from e

        if step.left > step.initial or len(result) > step.initial:
            msg = f"collection grew from {step.initial} to {step.left}"
            raise FilterError(f.name, msg)

        log.info(
            "Filter step: name=%s initial=%d dropped=%d left=%d",
            f.name, step.initial, step.dropped, step.left,
        )
        steps.append((f.name, step))
        vacancies = result

    return vacancies, steps
