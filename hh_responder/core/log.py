"""Logging setup and small helpers shared by the pipeline and AI code."""

import json
import logging

FIELD_PROVIDER = "ai_provider"
FIELD_MODEL = "ai_model"

_PLAIN_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_NULL_LOGGER_NAME = "hh_responder.null"


class JsonFormatter(logging.Formatter):
    """One JSON object per line: time, level, logger, step (the message)."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "time": self.formatTime(record, "%Y-%m-%dT%H:%M:%S%z"),
            "level": record.levelname.lower(),
            "logger": record.name,
            "step": record.getMessage(),
        }
        if record.exc_info:
            payload["error"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def setup_logging(verbose: bool, json_format: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    handler = logging.StreamHandler()
    if json_format:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(_PLAIN_FORMAT, datefmt="%H:%M:%S"))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    # Quiet noisy libraries
    for name in ("httpx", "httpcore", "google_genai"):
        logging.getLogger(name).setLevel(logging.WARNING)


def resolve_logger(logger: logging.Logger | None) -> logging.Logger:
    """Return the given logger, or a logger that discards everything."""
    if logger is not None:
        return logger
    null = logging.getLogger(_NULL_LOGGER_NAME)
    if not null.handlers:
        null.addHandler(logging.NullHandler())
    null.propagate = False
    return null


def truncate_for_log(text: str, limit: int) -> str:
    """Shorten text to ``limit`` characters, appending an ellipsis when cut."""
    text = text.strip()
    if limit <= 0:
        return ""
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


def ai_fields(provider: str, model: str) -> dict[str, str]:
    """Common AI log fields; blank keys or values are left out."""
    fields = {FIELD_PROVIDER: provider.strip(), FIELD_MODEL: model.strip()}
    return {k: v for k, v in fields.items() if v}


def format_fields(fields: dict[str, object]) -> str:
    """Render fields as ``key=value`` pairs for %-style log messages."""
    return " ".join(f"{k}={v}" for k, v in fields.items())
