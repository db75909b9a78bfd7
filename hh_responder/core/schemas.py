"""Core data models: vacancies, AI assessments and excluded-vacancy records."""

import json
import math
import tempfile
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

VACANCY_ID_FIELD = "id"
VACANCY_EMPLOYER_ID_FIELD = "employer_id"

EXCLUDE_REASON_MANUAL_APPLY = "manual_apply"
EXCLUDE_REASON_AI_FALLBACK = "ai_rejected"


class _ApiModel(BaseModel):
    """Base for models decoded from listing API payloads."""

    model_config = ConfigDict(
        extra="ignore",
        populate_by_name=True,
        coerce_numbers_to_str=True,
    )


class NamedRef(_ApiModel):
    id: str | None = None
    name: str = ""


class Employer(_ApiModel):
    id: str | None = None
    name: str = ""
    url: str | None = None
    alternate_url: str | None = None
    trusted: bool = False


class Salary(_ApiModel):
    from_: int | None = Field(default=None, alias="from")
    to: int | None = None
    currency: str | None = None
    gross: bool | None = None


class Snippet(_ApiModel):
    requirement: str | None = None
    responsibility: str | None = None


class KeySkill(_ApiModel):
    name: str = ""


class AIAssessment(BaseModel):
    """AI verdict attached to a vacancy. ``error`` is set when evaluation failed."""

    fit: bool = False
    score: float = 0.0
    reason: str = ""
    message: str = ""
    raw: str = ""
    error: str = ""


class Vacancy(_ApiModel):
    """A single job posting as returned by the listing service.

    Mutable on purpose: the AI-fit filter attaches ``ai`` in place.
    """

    id: str
    name: str = ""
    area: NamedRef | None = None
    has_test: bool = False
    salary: Salary | None = None
    schedule: NamedRef | None = None
    experience: NamedRef | None = None
    employment: NamedRef | None = None
    employer: Employer = Field(default_factory=Employer)
    alternate_url: str = ""
    description: str = ""
    key_skills: list[KeySkill] = Field(default_factory=list)
    snippet: Snippet = Field(default_factory=Snippet)
    archived: bool = False
    published_at: str = ""
    ai: AIAssessment | None = None

    def field(self, name: str) -> str:
        """Return the string value used as a removal key."""
        if name == VACANCY_ID_FIELD:
            return self.id
        if name == VACANCY_EMPLOYER_ID_FIELD:
            return self.employer.id or ""
        return ""

    def to_prompt_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True, exclude={"ai"}, indent=2)


class ExcludeActor(StrEnum):
    AI = "AI"
    HUMAN = "Human"


class ExcludedVacancy(BaseModel):
    """A vacancy that must never resurface, with who excluded it and why.

    Also accepts the capitalised keys written by older versions of the tool.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(validation_alias=AliasChoices("id", "ID"))
    url: str = Field(default="", validation_alias=AliasChoices("url", "URL"))
    employer_name: str = Field(
        default="", validation_alias=AliasChoices("employer_name", "EmployerName")
    )
    excluded_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        validation_alias=AliasChoices("excluded_at", "ExcludedAt"),
    )
    actor: ExcludeActor = Field(
        default=ExcludeActor.HUMAN, validation_alias=AliasChoices("actor", "Actor")
    )
    reason: str = Field(default="", validation_alias=AliasChoices("reason", "Reason"))


@dataclass
class FitAssessment:
    """Parsed provider verdict for one (resume, vacancy) pair."""

    fit: bool = False
    score: float = 0.0
    reason: str = ""
    message: str = ""
    raw: str = ""

    def to_ai(self) -> AIAssessment:
        return AIAssessment(
            fit=self.fit,
            score=self.score,
            reason=self.reason,
            message=self.message,
            raw=self.raw,
        )


@dataclass
class Resume:
    id: str
    title: str = ""


class Vacancies:
    """Ordered vacancy list with set-like removal.

    Removal swaps the removed item with the last one and truncates, so the
    order of the remaining items is not preserved. Nothing downstream relies
    on order; switch to mark-and-compact if that changes.
    """

    def __init__(self, items: Iterable[Vacancy] = ()) -> None:
        self.items: list[Vacancy] = list(items)

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[Vacancy]:
        return iter(self.items)

    def __repr__(self) -> str:
        return f"Vacancies({len(self.items)} items)"

    def ids(self) -> list[str]:
        return [v.id for v in self.items]

    def find_by_id(self, vacancy_id: str) -> Vacancy | None:
        for vacancy in self.items:
            if vacancy.id == vacancy_id:
                return vacancy
        return None

    def remove_by_index(self, idx: int) -> None:
        self.items[idx] = self.items[-1]
        self.items.pop()

    def exclude(self, field: str, targets: Iterable[str]) -> list[str]:
        """Remove the first vacancy matching each target; return removed IDs."""
        excluded: list[str] = []
        for target in targets:
            for idx, vacancy in enumerate(self.items):
                if vacancy.field(field) == target:
                    self.remove_by_index(idx)
                    excluded.append(vacancy.id)
                    break
        return excluded

    def exclude_with_test(self) -> list[str]:
        """Remove every vacancy that requires a test; return removed IDs."""
        excluded: list[str] = []
        idx = 0
        while idx < len(self.items):
            vacancy = self.items[idx]
            if vacancy.has_test:
                self.remove_by_index(idx)
                excluded.append(vacancy.id)
                continue
            idx += 1
        return excluded

    def to_excluded(self, actor: ExcludeActor, reason: str = "") -> list[ExcludedVacancy]:
        now = datetime.now(UTC)
        result: list[ExcludedVacancy] = []
        for vacancy in self.items:
            vacancy_reason = reason
            if actor == ExcludeActor.AI:
                vacancy_reason = (vacancy.ai.reason if vacancy.ai else "") or EXCLUDE_REASON_AI_FALLBACK
            result.append(
                ExcludedVacancy(
                    id=vacancy.id,
                    url=vacancy.alternate_url,
                    employer_name=vacancy.employer.name,
                    excluded_at=now,
                    actor=actor,
                    reason=vacancy_reason,
                )
            )
        return result

    def report_by_employer(self) -> dict[str, list[dict[str, str]]]:
        report: dict[str, list[dict[str, str]]] = {}
        for vacancy in self.items:
            key = f"{vacancy.employer.name} ({vacancy.employer.id or '-'})"
            salary = vacancy.salary or Salary()
            entry = {
                "name": vacancy.name,
                "url": vacancy.alternate_url,
                "area": vacancy.area.name if vacancy.area else "",
                "salary": f"{salary.from_ or 0}-{salary.to or 0} {salary.currency or ''}".strip(),
                "brief requirement": vacancy.snippet.requirement or "",
                "brief responsibility": vacancy.snippet.responsibility or "",
            }
            ai = vacancy.ai
            if ai is not None:
                if ai.error:
                    entry["ai_error"] = ai.error
                else:
                    entry["ai_fit"] = str(ai.fit).lower()
                    if not math.isnan(ai.score):
                        entry["ai_score"] = f"{ai.score:.2f}"
                    if ai.reason:
                        entry["ai_reason"] = ai.reason
                    if ai.message:
                        entry["ai_message"] = ai.message
            report.setdefault(key, []).append(entry)
        return report

    def dump_to_tmp_file(self) -> str:
        """Write all vacancies to a fresh temp JSON file and return its path."""
        data = [v.model_dump(mode="json", by_alias=True, exclude_none=True) for v in self.items]
        with tempfile.NamedTemporaryFile(
            "w", prefix="vacancies_", suffix=".json", delete=False, encoding="utf-8"
        ) as fh:
            json.dump({"items": data}, fh, indent=2, ensure_ascii=False)
            return fh.name
