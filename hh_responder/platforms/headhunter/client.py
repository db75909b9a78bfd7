"""hh.ru REST API client over httpx.

Usage::

    async with HeadHunterClient(token) as hh:
        vacancies = await hh.search(settings.search)
"""

import logging
from types import TracebackType
from typing import Any

import httpx
from pydantic import ValidationError

from hh_responder.core.config import SearchParams
from hh_responder.core.errors import HeadHunterError
from hh_responder.core.schemas import Resume, Vacancies, Vacancy
from hh_responder.platforms.base import ListingClient

logger = logging.getLogger(__name__)

API_URL = "https://api.hh.ru"
DEFAULT_USER_AGENT = "hh-responder/0.1 (hh-responder@users.noreply.github.com)"
SEARCH_PATH = "/vacancies"
NEGOTIATIONS_PATH = "/negotiations"
MINE_RESUMES_PATH = "/resumes/mine"
PER_PAGE = 100
TIMEOUT_SECONDS = 10.0


class HeadHunterClient(ListingClient):
    """Async client for the parts of the hh.ru API the responder needs."""

    def __init__(
        self,
        token: str,
        *,
        user_agent: str = "",
        api_url: str = API_URL,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_url = api_url.rstrip("/")
        headers = {
            "Authorization": f"Bearer {token}",
            "User-Agent": user_agent.strip() or DEFAULT_USER_AGENT,
            "Accept": "application/json",
        }
        if http_client is None:
            http_client = httpx.AsyncClient(timeout=httpx.Timeout(TIMEOUT_SECONDS))
        http_client.headers.update(headers)
        self._http = http_client

    @property
    def platform_id(self) -> str:
        return "headhunter"

    async def __aenter__(self) -> "HeadHunterClient":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def search(self, params: SearchParams) -> Vacancies:
        items = await self._get_items(SEARCH_PATH, params.to_query())
        vacancies = Vacancies()
        for item in items:
            try:
                vacancies.items.append(Vacancy.model_validate(item))
            except ValidationError as e:
                logger.warning("Skipping malformed vacancy in search results: %s", e)
        logger.info("Search '%s' returned %d vacancies", params.text, len(vacancies))
        return vacancies

    async def get_vacancy(self, vacancy_id: str) -> Vacancy:
        if not vacancy_id:
            msg = "vacancy id is required"
            raise ValueError(msg)
        data = await self._get_json(f"{SEARCH_PATH}/{vacancy_id}")
        try:
            return Vacancy.model_validate(data)
        except ValidationError as e:
            msg = f"malformed vacancy {vacancy_id}: {e}"
            raise HeadHunterError(msg) from e

    async def get_negotiated_vacancy_ids(self) -> list[str]:
        # Archived negotiations are never needed
        items = await self._get_items(
            NEGOTIATIONS_PATH,
            [("status", "non_archived"), ("per_page", str(PER_PAGE))],
        )
        ids: list[str] = []
        for item in items:
            vacancy = item.get("vacancy") if isinstance(item, dict) else None
            if isinstance(vacancy, dict) and vacancy.get("id") is not None:
                ids.append(str(vacancy["id"]))
        return ids

    async def get_mine_resumes(self) -> list[Resume]:
        items = await self._get_items(MINE_RESUMES_PATH, [])
        return [
            Resume(id=str(item.get("id", "")), title=str(item.get("title") or ""))
            for item in items
            if isinstance(item, dict)
        ]

    async def get_resume_raw(self, resume_id: str) -> dict[str, Any]:
        data = await self._get_json(f"/resumes/{resume_id}")
        if not isinstance(data, dict):
            msg = f"unexpected resume payload for {resume_id}"
            raise HeadHunterError(msg)
        return data

    async def apply(self, resume: Resume, vacancy: Vacancy, message: str) -> None:
        form = {
            "resume_id": (None, resume.id),
            "vacancy_id": (None, vacancy.id),
            "message": (None, message),
        }
        url = f"{self._api_url}{NEGOTIATIONS_PATH}"
        logger.debug("POST %s vacancy_id=%s", url, vacancy.id)
        response = await self._http.post(url, files=form)
        if response.status_code != httpx.codes.CREATED:
            msg = f"apply to vacancy {vacancy.id}: bad status {response.status_code}"
            raise HeadHunterError(msg, response.status_code)

    async def _get_json(self, path: str, query: list[tuple[str, str]] | None = None) -> Any:
        url = f"{self._api_url}{path}"
        logger.debug("GET %s", url)
        response = await self._http.get(url, params=query or None)
        if response.status_code != httpx.codes.OK:
            msg = f"GET {path}: bad status {response.status_code}"
            raise HeadHunterError(msg, response.status_code)
        try:
            return response.json()
        except ValueError as e:
            msg = f"GET {path}: response is not JSON"
            raise HeadHunterError(msg, response.status_code) from e

    async def _get_items(self, path: str, query: list[tuple[str, str]]) -> list[Any]:
        """GET a paginated collection, following ``pages`` until the last page."""
        base = [(k, v) for k, v in query if k != "page"]
        data = await self._get_json(path, base)
        items: list[Any] = list(data.get("items") or [])
        page = int(data.get("page") or 0)
        pages = int(data.get("pages") or 1)
        logger.debug("Got response from hh.ru: pages=%d per_page=%s", pages, data.get("per_page"))

        while page < pages - 1:
            page += 1
            logger.debug("Additional request needed: page %d of %d", page + 1, pages)
            data = await self._get_json(path, [*base, ("page", str(page))])
            items.extend(data.get("items") or [])
        return items
