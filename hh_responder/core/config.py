"""Configuration models and YAML loader for hh-responder."""

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from hh_responder.ai import available_providers, normalize_provider
from hh_responder.ai.prompt import PromptOverrides

DEFAULT_CONFIG_PATH = "hh-responder.yaml"
TOKEN_FILE_ENV = "HH_TOKEN_FILE"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)


class SearchParams(_Frozen):
    """Vacancy search parameters passed to the listing API."""

    text: str
    area: list[int] = Field(default_factory=list)
    schedule: list[str] = Field(default_factory=list)
    experience: str = ""
    search_field: str = ""
    order_by: str = ""
    employer_id: int | None = None
    period: int | None = Field(default=None, ge=1, le=30)
    per_page: int = Field(default=100, ge=1, le=100)
    clusters: bool = False

    @field_validator("text")
    @classmethod
    def text_not_empty(cls, v: str) -> str:
        if not v.strip():
            msg = "search text must not be empty"
            raise ValueError(msg)
        return v.strip()

    def to_query(self) -> list[tuple[str, str]]:
        """Render as query pairs; list fields become repeated parameters."""
        query: list[tuple[str, str]] = [("text", self.text), ("per_page", str(self.per_page))]
        query.extend(("area", str(a)) for a in self.area)
        query.extend(("schedule", s) for s in self.schedule)
        for key in ("experience", "search_field", "order_by"):
            value = getattr(self, key)
            if value:
                query.append((key, value))
        if self.employer_id is not None:
            query.append(("employer_id", str(self.employer_id)))
        if self.period is not None:
            query.append(("period", str(self.period)))
        if self.clusters:
            query.append(("clusters", "true"))
        return query


class ExcludeConfig(_Frozen):
    employers: list[str] = Field(default_factory=list)

    @field_validator("employers", mode="before")
    @classmethod
    def employers_as_strings(cls, v: Any) -> Any:
        if isinstance(v, list):
            return [str(item) for item in v]
        return v


class ApplyConfig(_Frozen):
    """Which resume to apply with and the default cover message."""

    resume: str
    message: str = ""
    exclude: ExcludeConfig = Field(default_factory=ExcludeConfig)

    @field_validator("resume")
    @classmethod
    def resume_not_empty(cls, v: str) -> str:
        if not v.strip():
            msg = "apply.resume (resume title) must not be empty"
            raise ValueError(msg)
        return v.strip()


class AIConfig(_Frozen):
    """AI screening settings. ``model`` is required when enabled."""

    enabled: bool = False
    provider: str = ""
    minimum_fit_score: float = Field(default=0.0, ge=0.0)
    model: str = ""
    api_key: str = ""
    max_retries: int = 0
    max_log_length: int = 200
    max_quota_wait: float = Field(default=30.0, gt=0.0)
    prompt: PromptOverrides = Field(default_factory=PromptOverrides)

    @model_validator(mode="before")
    @classmethod
    def lift_gemini_block(cls, data: Any) -> Any:
        """Accept the older nested layout: ``ai.gemini.{api-key, model, ...}``.

        Keys set at the ``ai`` level take precedence over the nested ones.
        """
        if not isinstance(data, dict) or "gemini" not in data:
            return data
        data = dict(data)
        nested = data.pop("gemini") or {}
        if not isinstance(nested, dict):
            msg = "ai.gemini must be a mapping"
            raise ValueError(msg)
        for key, value in nested.items():
            data.setdefault(key, value)
        data.setdefault("provider", "gemini")
        return data

    @field_validator("provider")
    @classmethod
    def provider_known(cls, v: str) -> str:
        v = v.strip().lower()
        if v and normalize_provider(v) not in available_providers():
            msg = f"unsupported ai provider '{v}', expected one of {available_providers()}"
            raise ValueError(msg)
        return v


class Settings(_Frozen):
    """Top-level settings loaded from YAML."""

    search: SearchParams
    apply: ApplyConfig
    exclude_file: str = ""
    user_agent: str = ""
    token_file: str = ""
    ai: AIConfig = Field(default_factory=AIConfig)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Settings":
        """Load settings from a YAML file. Dashed keys are accepted as underscores."""
        path = Path(path)
        if not path.exists():
            msg = f"Config file not found: {path}"
            raise FileNotFoundError(msg)
        raw: dict[str, Any] = yaml.safe_load(path.read_text()) or {}
        return cls.model_validate(_underscore_keys(raw))

    def with_overrides(self, **changes: Any) -> "Settings":
        """Return a copy with CLI overrides applied (None values are ignored)."""
        update = {k: v for k, v in changes.items() if v is not None}
        return self.model_copy(update=update) if update else self

    def resolve_token(self) -> str:
        """Read the listing API token from ``token_file`` or $HH_TOKEN_FILE."""
        token_file = self.token_file.strip() or os.environ.get(TOKEN_FILE_ENV, "").strip()
        if not token_file:
            msg = f"headhunter token file is not configured (set token_file or {TOKEN_FILE_ENV})"
            raise ValueError(msg)
        path = Path(token_file)
        if not path.exists():
            msg = f"Token file not found: {path}"
            raise FileNotFoundError(msg)
        token = path.read_text().strip()
        if not token:
            msg = f"token file {path} is empty"
            raise ValueError(msg)
        return token


def _underscore_keys(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(k).replace("-", "_"): _underscore_keys(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_underscore_keys(v) for v in value]
    return value
