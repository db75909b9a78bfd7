"""Tests for the retry state machine shared by content generators."""

import asyncio
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from hh_responder.ai import retry
from hh_responder.ai.retry import (
    RetryDecision,
    RetryingGenerator,
    RetryPolicy,
    delay_from_headers,
    delay_from_message,
    find_retry_delay,
    parse_duration,
)
from hh_responder.core.errors import EmptyResponseError, GenerationError, QuotaDelayTooLongError


class _ApiError(Exception):
    def __init__(self, code: int, message: str = "", status: str = "") -> None:
        super().__init__(message or f"status {code}")
        self.code = code
        self.message = message
        self.status = status


class _ScriptedGenerator(RetryingGenerator):
    """Returns or raises the scripted outcomes in order."""

    def __init__(self, outcomes: list, policy: RetryPolicy | None = None) -> None:
        super().__init__(policy)
        self.outcomes = list(outcomes)
        self.calls = 0

    @property
    def provider_id(self) -> str:
        return "scripted"

    async def _request(self, prompt: str) -> str:
        self.calls += 1
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    def classify(self, exc: Exception, attempt: int) -> RetryDecision:
        if isinstance(exc, _ApiError):
            return self.status_decision(
                attempt, exc.code, exc.status, delay_from_message(exc.message)
            )
        return super().classify(exc, attempt)


def _generate(gen: RetryingGenerator, prompt: str = "hello") -> tuple[str, AsyncMock]:
    sleep = AsyncMock()
    with patch.object(retry, "sleep", sleep):
        text = asyncio.run(gen.generate(prompt))
    return text, sleep


class TestRetryPolicy:
    def test_defaults(self) -> None:
        policy = RetryPolicy()
        assert policy.max_attempts == 3
        assert policy.max_quota_wait == 30.0

    def test_non_positive_attempts_reset(self) -> None:
        assert RetryPolicy(max_attempts=0).max_attempts == 3
        assert RetryPolicy(max_attempts=-2).max_attempts == 3

    def test_backoff_doubles_and_caps(self) -> None:
        policy = RetryPolicy(initial_backoff=1.0, max_backoff=5.0)
        assert [policy.backoff(n) for n in range(1, 6)] == [1.0, 2.0, 4.0, 5.0, 5.0]


class TestGenerate:
    def test_server_error_then_success(self) -> None:
        gen = _ScriptedGenerator([_ApiError(500), "ok"])
        text, sleep = _generate(gen)
        assert text == "ok"
        assert gen.calls == 2
        sleep.assert_awaited_once_with(1.0)

    def test_quota_hint_above_limit_is_fatal(self) -> None:
        gen = _ScriptedGenerator(
            [_ApiError(429, "Quota exceeded, retry after 60 seconds", "RESOURCE_EXHAUSTED"), "ok"],
            RetryPolicy(max_quota_wait=30.0),
        )
        sleep = AsyncMock()
        with patch.object(retry, "sleep", sleep), pytest.raises(QuotaDelayTooLongError):
            asyncio.run(gen.generate("hello"))
        assert gen.calls == 1
        sleep.assert_not_awaited()

    def test_quota_hint_within_limit_waits_hint_plus_margin(self) -> None:
        gen = _ScriptedGenerator([_ApiError(429, "please retry in 5s"), "ok"])
        text, sleep = _generate(gen)
        assert text == "ok"
        sleep.assert_awaited_once_with(6.0)

    def test_client_error_is_fatal(self) -> None:
        gen = _ScriptedGenerator([_ApiError(400, "bad request"), "ok"])
        sleep = AsyncMock()
        with patch.object(retry, "sleep", sleep), pytest.raises(GenerationError, match="bad request"):
            asyncio.run(gen.generate("hello"))
        assert gen.calls == 1

    def test_unavailable_status_retries(self) -> None:
        gen = _ScriptedGenerator([_ApiError(0, "down", "UNAVAILABLE"), "ok"])
        text, _ = _generate(gen)
        assert text == "ok"
        assert gen.calls == 2

    def test_timeout_retries_with_backoff(self) -> None:
        gen = _ScriptedGenerator([TimeoutError(), httpx.ReadTimeout("slow"), "ok"])
        text, sleep = _generate(gen)
        assert text == "ok"
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]

    def test_gives_up_after_max_attempts(self) -> None:
        gen = _ScriptedGenerator([_ApiError(503)] * 3, RetryPolicy(max_attempts=3))
        sleep = AsyncMock()
        with patch.object(retry, "sleep", sleep), pytest.raises(GenerationError, match="giving up after 3"):
            asyncio.run(gen.generate("hello"))
        assert gen.calls == 3
        assert sleep.await_count == 2

    def test_unknown_error_is_fatal(self) -> None:
        gen = _ScriptedGenerator([RuntimeError("weird")])
        with pytest.raises(GenerationError, match="weird"):
            _generate(gen)
        assert gen.calls == 1

    def test_empty_response(self) -> None:
        gen = _ScriptedGenerator(["   "])
        with pytest.raises(EmptyResponseError):
            _generate(gen)

    def test_empty_prompt(self) -> None:
        gen = _ScriptedGenerator(["ok"])
        with pytest.raises(GenerationError, match="prompt must not be empty"):
            _generate(gen, "  ")
        assert gen.calls == 0

    def test_cancellation_not_retried(self) -> None:
        gen = _ScriptedGenerator([asyncio.CancelledError(), "ok"])
        with pytest.raises(asyncio.CancelledError):
            _generate(gen)
        assert gen.calls == 1

    def test_wait_is_cancellable(self) -> None:
        gen = _ScriptedGenerator(
            [_ApiError(500), "ok"], RetryPolicy(initial_backoff=10.0, max_backoff=10.0),
        )

        async def run() -> None:
            async with asyncio.timeout(0.05):
                await gen.generate("hello")

        with pytest.raises(TimeoutError):
            asyncio.run(run())
        assert gen.calls == 1


class TestDelayHints:
    def test_parse_duration(self) -> None:
        assert parse_duration("37s") == 37.0
        assert parse_duration("1.5s") == 1.5
        assert parse_duration("500ms") == 0.5
        assert parse_duration(3) == 3.0
        assert parse_duration("soon") is None
        assert parse_duration(True) is None

    def test_delay_from_message(self) -> None:
        assert delay_from_message("Please retry in 12s.") == 12.0
        assert delay_from_message("retry after 60 seconds") == 60.0
        assert delay_from_message("retry in 250ms") == 0.25
        assert delay_from_message("quota exceeded") is None
        assert delay_from_message(None) is None

    def test_find_retry_delay_nested(self) -> None:
        details = {
            "error": {
                "code": 429,
                "details": [
                    {"@type": "type.googleapis.com/google.rpc.QuotaFailure"},
                    {"@type": "type.googleapis.com/google.rpc.RetryInfo", "retryDelay": "17s"},
                ],
            },
        }
        assert find_retry_delay(details) == 17.0
        assert find_retry_delay({"error": {}}) is None

    def test_delay_from_headers(self) -> None:
        assert delay_from_headers({"retry-after": "4"}) == 4.0
        assert delay_from_headers({"retry-after-ms": "1500"}) == 1.5
        assert delay_from_headers({}) is None
        assert delay_from_headers(None) is None
