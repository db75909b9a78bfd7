"""OpenAI content generator, also used for Ollama's OpenAI-compatible API."""

import logging
from typing import Any

from hh_responder.ai.base import resolve_api_key
from hh_responder.ai.retry import RetryDecision, RetryingGenerator, RetryPolicy, delay_from_headers
from hh_responder.core.errors import GenerationError

logger = logging.getLogger(__name__)

_OLLAMA_BASE_URL = "http://localhost:11434/v1"


class OpenAIGenerator(RetryingGenerator):
    """Generator using the OpenAI chat completions API."""

    default_model = "gpt-4o-mini"
    env_vars: tuple[str, ...] = ("OPENAI_API_KEY",)
    base_url: str | None = None

    def __init__(
        self,
        model: str = "",
        *,
        api_key: str | None = None,
        policy: RetryPolicy | None = None,
        client: Any = None,
    ) -> None:
        super().__init__(policy)
        self._model = model.strip() or self.default_model

        try:
            import openai
        except ImportError:
            msg = (
                "openai is required for this provider. "
                "Install with: pip install 'hh-responder[openai]'"
            )
            raise ImportError(msg) from None

        self._sdk = openai
        if client is None:
            client = openai.AsyncOpenAI(
                api_key=self._api_key(api_key),
                base_url=self.base_url,
                max_retries=0,
            )
        self._client = client

    def _api_key(self, explicit: str | None) -> str:
        key = resolve_api_key(explicit, self.env_vars)
        if not key:
            msg = f"{self.env_vars[0]} environment variable is required"
            raise GenerationError(msg)
        return key

    @property
    def provider_id(self) -> str:
        return "openai"

    @property
    def model_name(self) -> str:
        return self._model

    async def _request(self, prompt: str) -> str:
        logger.debug("Sending prompt to %s (%s)...", self.provider_id, self._model)
        response = await self._client.chat.completions.create(
            model=self._model,
            messages=[{"role": "user", "content": prompt}],
        )
        texts = [
            (choice.message.content or "").strip()
            for choice in response.choices
            if choice.message is not None
        ]
        return "\n".join(t for t in texts if t)

    def classify(self, exc: Exception, attempt: int) -> RetryDecision:
        if isinstance(exc, self._sdk.APITimeoutError):
            return self.backoff_decision(attempt, "network timeout")
        if isinstance(exc, self._sdk.APIStatusError):
            hint = delay_from_headers(exc.response.headers) if exc.status_code == 429 else None
            return self.status_decision(attempt, exc.status_code, hint=hint)
        return super().classify(exc, attempt)


class OllamaGenerator(OpenAIGenerator):
    """Local Ollama instance via its OpenAI-compatible endpoint."""

    default_model = "llama3"
    env_vars = ()
    base_url = _OLLAMA_BASE_URL

    def _api_key(self, explicit: str | None) -> str:
        return "ollama"

    @property
    def provider_id(self) -> str:
        return "ollama"
