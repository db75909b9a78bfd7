"""Abstract base class for content generators and optional capabilities."""

import os
from abc import ABC, abstractmethod
from typing import Protocol, runtime_checkable


class ContentGenerator(ABC):
    """Base class that every generation provider must implement."""

    @property
    @abstractmethod
    def provider_id(self) -> str:
        """Unique identifier for this provider (e.g. 'gemini')."""

    @abstractmethod
    async def generate(self, prompt: str) -> str:
        """Send the prompt and return the non-empty response text.

        Raises:
            GenerationError: When no usable text could be obtained.
        """


@runtime_checkable
class ModelAware(Protocol):
    """Optional capability: a generator that can report its model identifier.

    Probe with ``isinstance(generator, ModelAware)`` before reading it.
    """

    @property
    def model_name(self) -> str: ...


def resolve_api_key(explicit: str | None, env_vars: tuple[str, ...]) -> str | None:
    """Return the explicit key or the first non-empty environment variable."""
    if explicit and explicit.strip():
        return explicit.strip()
    for name in env_vars:
        value = os.environ.get(name, "").strip()
        if value:
            return value
    return None
