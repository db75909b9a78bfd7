"""Anthropic Claude content generator."""

import logging
from typing import Any

from hh_responder.ai.base import resolve_api_key
from hh_responder.ai.retry import RetryDecision, RetryingGenerator, RetryPolicy, delay_from_headers
from hh_responder.core.errors import GenerationError

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-20250514"
ENV_VARS = ("ANTHROPIC_API_KEY",)


class AnthropicGenerator(RetryingGenerator):
    """Generator using the Anthropic messages API."""

    def __init__(
        self,
        model: str = "",
        *,
        api_key: str | None = None,
        policy: RetryPolicy | None = None,
        client: Any = None,
    ) -> None:
        super().__init__(policy)
        self._model = model.strip() or DEFAULT_MODEL

        try:
            import anthropic
        except ImportError:
            msg = (
                "anthropic is required for this provider. "
                "Install with: pip install 'hh-responder[anthropic]'"
            )
            raise ImportError(msg) from None

        self._sdk = anthropic
        if client is None:
            key = resolve_api_key(api_key, ENV_VARS)
            if not key:
                msg = "ANTHROPIC_API_KEY environment variable is required"
                raise GenerationError(msg)
            client = anthropic.AsyncAnthropic(api_key=key, max_retries=0)
        self._client = client

    @property
    def provider_id(self) -> str:
        return "anthropic"

    @property
    def model_name(self) -> str:
        return self._model

    async def _request(self, prompt: str) -> str:
        logger.debug("Sending prompt to Anthropic API (%s)...", self._model)
        message = await self._client.messages.create(
            model=self._model,
            max_tokens=1024,
            messages=[{"role": "user", "content": prompt}],
        )
        texts = [
            (getattr(block, "text", None) or "").strip()
            for block in message.content
        ]
        return "\n".join(t for t in texts if t)

    def classify(self, exc: Exception, attempt: int) -> RetryDecision:
        if isinstance(exc, self._sdk.APITimeoutError):
            return self.backoff_decision(attempt, "network timeout")
        if isinstance(exc, self._sdk.APIStatusError):
            hint = delay_from_headers(exc.response.headers) if exc.status_code == 429 else None
            return self.status_decision(attempt, exc.status_code, hint=hint)
        return super().classify(exc, attempt)
