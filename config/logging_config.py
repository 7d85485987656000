"""
Logging setup for the COT service.

JSON lines when LOG_JSON=1 or a hosting marker is present, plain text
otherwise. Level comes from LOG_LEVEL (default INFO); LOG_LEVEL_COT can
raise or lower the services.cot / services.pricing loggers on their own.

Every record carries `request_id` (set by RequestLoggingMiddleware, "-"
outside a request), so upstream CFTC and price lookups can be tied back to
the API call that triggered them.
"""
import json
import logging
import os
import sys
from contextvars import ContextVar
from typing import Any

request_id_var: ContextVar[str] = ContextVar("request_id", default="-")

TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s rid=%(request_id)s: %(message)s"

QUIET_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "yahooquery", "urllib3")
DOMAIN_LOGGERS = ("services.cot", "services.pricing")


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "request_id", None):
            record.request_id = request_id_var.get()
        return True


def _default(obj: Any):
    if hasattr(obj, "isoformat"):
        return obj.isoformat()
    return repr(obj)


class JsonFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": self.formatTime(record, "%Y-%m-%dT%H:%M:%S") + "Z",
            "level": record.levelname,
            "logger": record.name,
            "request_id": getattr(record, "request_id", "-"),
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[0]:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=_default)


def _level(name: str, fallback: int) -> int:
    value = (os.getenv(name) or "").upper()
    return getattr(logging, value, fallback) if value else fallback


def _use_json() -> bool:
    if os.getenv("LOG_JSON", "").lower() in ("1", "true", "yes"):
        return True
    return bool(os.getenv("RAILWAY_ENVIRONMENT") or os.getenv("VERCEL_ENV"))


def configure_logging() -> None:
    level = _level("LOG_LEVEL", logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)
    # reload safe
    for h in root.handlers[:]:
        root.removeHandler(h)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(logging.NOTSET)
    handler.addFilter(RequestIdFilter())
    handler.setFormatter(JsonFormatter() if _use_json() else logging.Formatter(TEXT_FORMAT))
    root.addHandler(handler)

    domain_level = _level("LOG_LEVEL_COT", level)
    for name in DOMAIN_LOGGERS:
        logging.getLogger(name).setLevel(domain_level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
