"""Persistent list of vacancies that must never be offered again.

The file is a JSON document ``{"items": [...]}``. A missing or empty file is
an empty list. Appending is read, extend, rewrite; concurrent runs against the
same file are not supported.
"""

import json
import logging
from collections.abc import Iterable
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from hh_responder.core.errors import ExcludeFileError
from hh_responder.core.schemas import ExcludedVacancy

logger = logging.getLogger(__name__)

_ITEMS = TypeAdapter(list[ExcludedVacancy])


def load_excluded(path: str | Path) -> list[ExcludedVacancy]:
    """Read excluded vacancies from ``path``."""
    path = Path(path)
    if not path.exists():
        return []
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return []

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        msg = f"Exclude file {path} is not valid JSON: {e}"
        raise ExcludeFileError(msg) from e

    raw_items = data.get("items", data.get("Items")) if isinstance(data, dict) else data
    if raw_items is None:
        return []
    try:
        return _ITEMS.validate_python(raw_items)
    except ValidationError as e:
        msg = f"Exclude file {path} has invalid entries: {e}"
        raise ExcludeFileError(msg) from e


def save_excluded(path: str | Path, items: Iterable[ExcludedVacancy]) -> None:
    """Rewrite ``path`` with the given excluded vacancies."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = {"items": [item.model_dump(mode="json") for item in items]}
    path.write_text(json.dumps(payload, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")


def append_excluded(path: str | Path, items: Iterable[ExcludedVacancy]) -> list[ExcludedVacancy]:
    """Append to the exclude file and return the full resulting list."""
    new_items = list(items)
    current = load_excluded(path)
    current.extend(new_items)
    save_excluded(path, current)
    logger.debug("Appended %d vacancies to exclude file %s", len(new_items), path)
    return current


def excluded_ids(path: str | Path) -> list[str]:
    return [item.id for item in load_excluded(path)]
