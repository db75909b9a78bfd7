"""Content generator registry with lazy loading.

Usage:
    from hh_responder.ai import get_generator

    generator = get_generator("gemini", model="gemini-2.5-pro", policy=RetryPolicy())
    text = await generator.generate(prompt)
"""

from __future__ import annotations

import importlib
from typing import TYPE_CHECKING, Any

from hh_responder.ai.base import ContentGenerator, ModelAware

if TYPE_CHECKING:
    from hh_responder.ai.retry import RetryPolicy

__all__ = [
    "DEFAULT_PROVIDER",
    "ContentGenerator",
    "ModelAware",
    "available_providers",
    "get_generator",
    "normalize_provider",
]

DEFAULT_PROVIDER = "gemini"

# Lazy registry: maps provider name → (module_path, class_name)
_REGISTRY: dict[str, tuple[str, str]] = {
    "gemini": ("hh_responder.ai.gemini", "GeminiGenerator"),
    "openai": ("hh_responder.ai.openai", "OpenAIGenerator"),
    "ollama": ("hh_responder.ai.openai", "OllamaGenerator"),
    "anthropic": ("hh_responder.ai.anthropic", "AnthropicGenerator"),
}


def normalize_provider(name: str | None) -> str:
    """Lower-case and strip a provider name; empty means the default provider."""
    return (name or "").strip().lower() or DEFAULT_PROVIDER


def get_generator(
    name: str | None,
    *,
    model: str = "",
    api_key: str | None = None,
    policy: RetryPolicy | None = None,
    client: Any = None,
) -> ContentGenerator:
    """Instantiate and return a content generator by provider name.

    Raises:
        ValueError: If the provider name is unknown.
    """
    provider = normalize_provider(name)
    if provider not in _REGISTRY:
        valid = ", ".join(sorted(_REGISTRY))
        msg = f"Unknown AI provider '{name}'. Available: {valid}"
        raise ValueError(msg)

    module_path, class_name = _REGISTRY[provider]
    module = importlib.import_module(module_path)
    cls = getattr(module, class_name)
    return cls(model, api_key=api_key, policy=policy, client=client)  # type: ignore[no-any-return]


def available_providers() -> list[str]:
    """Return sorted list of registered provider names."""
    return sorted(_REGISTRY)
