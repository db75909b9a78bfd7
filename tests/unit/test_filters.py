"""Tests for the filter framework and pipeline runner."""

import asyncio
import logging

import pytest

from hh_responder.core.errors import FilterError, FilterValidationError
from hh_responder.core.schemas import Vacancies, Vacancy
from hh_responder.pipeline.filters import Filter, Step, disable_by_name, run_filters


def _vacancies(*ids: str) -> Vacancies:
    return Vacancies(Vacancy(id=i) for i in ids)


class _SpyFilter(Filter):
    """Records calls; drops the given IDs when applied."""

    def __init__(
        self,
        name: str,
        drop: tuple[str, ...] = (),
        *,
        invalid: bool = False,
        fail: bool = False,
    ) -> None:
        super().__init__()
        self.name = name
        self.drop = drop
        self.invalid = invalid
        self.fail = fail
        self.validated = 0
        self.applied = 0

    def validate(self) -> None:
        self.validated += 1
        if self.invalid:
            msg = "missing setting"
            raise ValueError(msg)

    async def apply(self, vacancies: Vacancies) -> tuple[Vacancies, Step]:
        self.applied += 1
        if self.fail:
            msg = "collaborator down"
            raise RuntimeError(msg)
        initial = len(vacancies)
        vacancies.exclude("id", self.drop)
        return vacancies, Step.between(initial, len(vacancies))


class _GrowingFilter(Filter):
    name = "grow"

    async def apply(self, vacancies: Vacancies) -> tuple[Vacancies, Step]:
        initial = len(vacancies)
        vacancies.items.append(Vacancy(id="new"))
        return vacancies, Step(initial=initial, dropped=0, left=initial)


class TestStep:
    def test_between(self) -> None:
        assert Step.between(10, 7) == Step(initial=10, dropped=3, left=7)

    def test_unchanged(self) -> None:
        assert Step.unchanged(4) == Step(initial=4, dropped=0, left=4)


class TestRunFilters:
    def test_applies_in_order(self) -> None:
        a = _SpyFilter("a", drop=("1",))
        b = _SpyFilter("b", drop=("2", "3"))
        result, steps = asyncio.run(run_filters([a, b], _vacancies("1", "2", "3", "4")))
        assert result.ids() == ["4"]
        assert steps == [
            ("a", Step(initial=4, dropped=1, left=3)),
            ("b", Step(initial=3, dropped=2, left=1)),
        ]

    def test_steps_satisfy_counts(self) -> None:
        filters = [_SpyFilter("a", drop=("1",)), _SpyFilter("b"), _SpyFilter("c", drop=("9",))]
        _, steps = asyncio.run(run_filters(filters, _vacancies("1", "2", "3")))
        for _, step in steps:
            assert step.initial == step.dropped + step.left
            assert step.left <= step.initial
        assert [s.initial for _, s in steps[1:]] == [s.left for _, s in steps[:-1]]

    def test_validation_failure_applies_nothing(self) -> None:
        a = _SpyFilter("a")
        b = _SpyFilter("b", invalid=True)
        c = _SpyFilter("c")
        with pytest.raises(FilterValidationError, match="b: missing setting") as exc_info:
            asyncio.run(run_filters([a, b, c], _vacancies("1")))
        assert exc_info.value.stage == "b"
        assert (a.applied, b.applied, c.applied) == (0, 0, 0)
        assert c.validated == 0

    def test_apply_error_names_stage(self) -> None:
        a = _SpyFilter("a", fail=True)
        b = _SpyFilter("b")
        with pytest.raises(FilterError, match="a: collaborator down") as exc_info:
            asyncio.run(run_filters([a, b], _vacancies("1")))
        assert isinstance(exc_info.value.cause, RuntimeError)
        assert b.applied == 0

    def test_disabled_filter_skipped(self) -> None:
        a = _SpyFilter("a", drop=("1",), invalid=True)
        b = _SpyFilter("b", drop=("2",))
        a.disable("not needed")
        result, steps = asyncio.run(run_filters([a, b], _vacancies("1", "2")))
        assert a.validated == 0
        assert a.applied == 0
        assert result.ids() == ["1"]
        assert steps[0] == ("a", Step(initial=2, dropped=0, left=2))

    def test_disable_is_idempotent(self) -> None:
        a = _SpyFilter("a")
        a.disable("x")
        a.disable("x")
        assert a.enabled is False
        assert a.status().reason == "x"

    def test_disable_by_name(self) -> None:
        a, b = _SpyFilter("a"), _SpyFilter("b")
        disable_by_name([a, b], "b", "off")
        assert a.enabled
        assert not b.enabled
        assert b.disabled_reason == "off"

    def test_growing_collection_rejected(self) -> None:
        with pytest.raises(FilterError, match="grow"):
            asyncio.run(run_filters([_GrowingFilter()], _vacancies("1")))

    def test_empty_pipeline(self) -> None:
        result, steps = asyncio.run(run_filters([], _vacancies("1")))
        assert result.ids() == ["1"]
        assert steps == []

    def test_logs_steps(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = logging.getLogger("test.pipeline")
        with caplog.at_level(logging.INFO, logger="test.pipeline"):
            asyncio.run(run_filters([_SpyFilter("a", drop=("1",))], _vacancies("1", "2"), logger))
        assert "name=a initial=2 dropped=1 left=1" in caplog.text
