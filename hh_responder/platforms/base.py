"""Abstract base class for job-listing clients."""

from abc import ABC, abstractmethod
from typing import Any

from hh_responder.core.config import SearchParams
from hh_responder.core.schemas import Resume, Vacancies, Vacancy


class ListingClient(ABC):
    """Base class that every listing-service client must implement."""

    @property
    @abstractmethod
    def platform_id(self) -> str:
        """Unique identifier for this platform (e.g. 'headhunter')."""

    @abstractmethod
    async def search(self, params: SearchParams) -> Vacancies:
        """Run a search across all result pages and return raw vacancies."""

    @abstractmethod
    async def get_vacancy(self, vacancy_id: str) -> Vacancy:
        """Fetch the detailed record of one vacancy."""

    @abstractmethod
    async def get_negotiated_vacancy_ids(self) -> list[str]:
        """Return IDs of vacancies already applied to (non-archived negotiations)."""

    @abstractmethod
    async def get_mine_resumes(self) -> list[Resume]:
        """Return the operator's resumes."""

    @abstractmethod
    async def get_resume_raw(self, resume_id: str) -> dict[str, Any]:
        """Return the full resume payload as an opaque JSON object."""

    @abstractmethod
    async def apply(self, resume: Resume, vacancy: Vacancy, message: str) -> None:
        """Submit an application (negotiation) with a cover message."""
