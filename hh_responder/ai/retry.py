"""Retry state machine shared by all content generators.

One logical request goes Attempting -> Success | Retrying | Failed. After a
failed attempt the provider-specific ``classify`` decides:

  - cancellation: never retried (``asyncio.CancelledError`` propagates)
  - network timeout: exponential backoff
  - API error with a retry-delay hint: wait the hint plus a safety margin,
    unless the hint exceeds ``max_quota_wait`` (then fatal)
  - API error with status 408, 5xx or UNAVAILABLE: exponential backoff
  - anything else: fatal

All waits go through ``asyncio.sleep`` so cancelling the task, or an enclosing
``asyncio.timeout``, interrupts them.
"""

import asyncio
import logging
import re
from abc import abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import httpx

from hh_responder.ai.base import ContentGenerator
from hh_responder.core.errors import EmptyResponseError, GenerationError, QuotaDelayTooLongError

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_INITIAL_BACKOFF = 1.0
DEFAULT_MAX_BACKOFF = 30.0
DEFAULT_QUOTA_MARGIN = 1.0
DEFAULT_MAX_QUOTA_WAIT = 30.0

# Indirection so tests can replace the wait without touching asyncio.
sleep = asyncio.sleep

_MESSAGE_DELAY_RE = re.compile(
    r"retry (?:in|after)\s+(\d+(?:\.\d+)?)\s*(ms|milliseconds?|s|secs?|seconds?)?",
    re.IGNORECASE,
)
_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s)?\s*$")


@dataclass(frozen=True)
class RetryPolicy:
    """Limits for one logical generation request."""

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    initial_backoff: float = DEFAULT_INITIAL_BACKOFF
    max_backoff: float = DEFAULT_MAX_BACKOFF
    quota_margin: float = DEFAULT_QUOTA_MARGIN
    max_quota_wait: float = DEFAULT_MAX_QUOTA_WAIT

    def __post_init__(self) -> None:
        if self.max_attempts <= 0:
            object.__setattr__(self, "max_attempts", DEFAULT_MAX_ATTEMPTS)

    def backoff(self, attempt: int) -> float:
        """Delay after the given 1-based failed attempt: 1s, 2s, 4s... capped."""
        delay = self.initial_backoff * (2 ** max(attempt - 1, 0))
        return min(delay, self.max_backoff)


@dataclass(frozen=True)
class RetryDecision:
    retry: bool
    delay: float = 0.0
    reason: str = ""
    error: GenerationError | None = None


def parse_duration(value: Any) -> float | None:
    """Parse '37s', '1.5s', '500ms' or a bare number of seconds."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        return float(value)
    if isinstance(value, str):
        match = _DURATION_RE.match(value)
        if match:
            amount = float(match.group(1))
            return amount / 1000 if match.group(2) == "ms" else amount
    return None


def delay_from_message(message: str | None) -> float | None:
    """Extract a 'retry in 12s' / 'retry after 60 seconds' hint from free text."""
    if not message:
        return None
    match = _MESSAGE_DELAY_RE.search(message)
    if not match:
        return None
    amount = float(match.group(1))
    unit = (match.group(2) or "s").lower()
    return amount / 1000 if unit.startswith("m") else amount


def find_retry_delay(details: Any) -> float | None:
    """Walk an API error payload looking for a ``retryDelay`` entry."""
    if isinstance(details, Mapping):
        for key in ("retryDelay", "retry_delay"):
            if key in details:
                parsed = parse_duration(details[key])
                if parsed is not None:
                    return parsed
        for value in details.values():
            found = find_retry_delay(value)
            if found is not None:
                return found
    elif isinstance(details, list | tuple):
        for value in details:
            found = find_retry_delay(value)
            if found is not None:
                return found
    return None


def delay_from_headers(headers: Mapping[str, str] | None) -> float | None:
    """Read ``retry-after-ms`` / ``retry-after`` (seconds) response headers."""
    if not headers:
        return None
    raw_ms = headers.get("retry-after-ms")
    if raw_ms:
        parsed = parse_duration(raw_ms.strip())
        if parsed is not None:
            return parsed / 1000
    raw = headers.get("retry-after")
    if raw:
        return parse_duration(raw.strip())
    return None


class RetryingGenerator(ContentGenerator):
    """Content generator that retries ``_request`` according to a policy."""

    def __init__(self, policy: RetryPolicy | None = None) -> None:
        self.policy = policy or RetryPolicy()

    @property
    def max_attempts(self) -> int:
        return self.policy.max_attempts

    @abstractmethod
    async def _request(self, prompt: str) -> str:
        """Perform exactly one provider call and return the concatenated text."""

    def classify(self, exc: Exception, attempt: int) -> RetryDecision:
        """Decide what to do after ``exc``; subclasses handle their API errors."""
        if isinstance(exc, TimeoutError | httpx.TimeoutException):
            return self.backoff_decision(attempt, "network timeout")
        return RetryDecision(retry=False, reason=type(exc).__name__)

    def backoff_decision(self, attempt: int, reason: str) -> RetryDecision:
        return RetryDecision(retry=True, delay=self.policy.backoff(attempt), reason=reason)

    def quota_decision(self, hint: float) -> RetryDecision:
        if hint > self.policy.max_quota_wait:
            return RetryDecision(
                retry=False,
                reason="quota delay too long",
                error=QuotaDelayTooLongError(hint, self.policy.max_quota_wait),
            )
        return RetryDecision(retry=True, delay=hint + self.policy.quota_margin, reason="quota")

    def status_decision(
        self,
        attempt: int,
        code: int | None,
        status: str | None = None,
        hint: float | None = None,
    ) -> RetryDecision:
        """Common decision for API errors carrying an HTTP code and status text."""
        if hint is not None:
            return self.quota_decision(hint)
        if code is not None and (code == 408 or code >= 500):
            return self.backoff_decision(attempt, f"status {code}")
        if (status or "").upper() == "UNAVAILABLE":
            return self.backoff_decision(attempt, "unavailable")
        return RetryDecision(retry=False, reason=f"status {code}")

    async def generate(self, prompt: str) -> str:
        prompt = prompt.strip()
        if not prompt:
            msg = "prompt must not be empty"
            raise GenerationError(msg)

        attempts = self.policy.max_attempts
        for attempt in range(1, attempts + 1):
            try:
                text = await self._request(prompt)
            except (GenerationError, asyncio.CancelledError):
                raise
            except Exception as exc:
                decision = self.classify(exc, attempt)
                if not decision.retry:
                    logger.warning(
                        "%s request failed, not retrying: attempt=%d reason=%s error=%s",
                        self.provider_id, attempt, decision.reason, exc,
                    )
                    if decision.error is not None:
                        raise decision.error from exc
                    msg = f"generate content: {exc}"
                    raise GenerationError(msg) from exc
                if attempt >= attempts:
                    msg = f"generate content: giving up after {attempt} attempts: {exc}"
                    raise GenerationError(msg) from exc
                logger.info(
                    "%s request failed, retrying: attempt=%d/%d delay=%.1fs reason=%s",
                    self.provider_id, attempt, attempts, decision.delay, decision.reason,
                )
                await sleep(decision.delay)
                continue

            text = (text or "").strip()
            if not text:
                msg = f"{self.provider_id} api returned empty response"
                raise EmptyResponseError(msg)
            return text

        # max_attempts is always >= 1, the loop returns or raises
        msg = "generate content: no attempts made"
        raise GenerationError(msg)
