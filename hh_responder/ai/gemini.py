"""Google Gemini content generator (google-genai SDK)."""

import logging
from typing import Any

from hh_responder.ai.base import resolve_api_key
from hh_responder.ai.retry import (
    RetryDecision,
    RetryingGenerator,
    RetryPolicy,
    delay_from_message,
    find_retry_delay,
)
from hh_responder.core.errors import GenerationError

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.5-pro"
ENV_VARS = ("GOOGLE_API_KEY", "GEMINI_API_KEY")


class GeminiGenerator(RetryingGenerator):
    """Generator using the Google Gemini API through its async client."""

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
            from google import genai
            from google.genai import errors as genai_errors
        except ImportError:
            msg = (
                "google-genai is required for the gemini provider. "
                "Install with: pip install google-genai"
            )
            raise ImportError(msg) from None

        self._errors = genai_errors
        if client is None:
            key = resolve_api_key(api_key, ENV_VARS)
            if not key:
                msg = "gemini api key is required (set ai.api_key or GOOGLE_API_KEY/GEMINI_API_KEY)"
                raise GenerationError(msg)
            client = genai.Client(api_key=key)
        self._client = client

    @property
    def provider_id(self) -> str:
        return "gemini"

    @property
    def model_name(self) -> str:
        return self._model

    async def _request(self, prompt: str) -> str:
        logger.debug("Sending prompt to Gemini API (%s)...", self._model)
        response = await self._client.aio.models.generate_content(
            model=self._model,
            contents=prompt,
        )
        return _response_text(response)

    def classify(self, exc: Exception, attempt: int) -> RetryDecision:
        if isinstance(exc, self._errors.APIError):
            hint = find_retry_delay(getattr(exc, "details", None))
            if hint is None:
                hint = delay_from_message(getattr(exc, "message", None))
            return self.status_decision(attempt, exc.code, exc.status, hint)
        return super().classify(exc, attempt)


def _response_text(response: Any) -> str:
    """Join every non-empty text part of every candidate with newlines."""
    texts: list[str] = []
    for candidate in getattr(response, "candidates", None) or []:
        content = getattr(candidate, "content", None)
        if content is None:
            continue
        for part in getattr(content, "parts", None) or []:
            text = (getattr(part, "text", None) or "").strip()
            if text:
                texts.append(text)
    return "\n".join(texts).strip()
