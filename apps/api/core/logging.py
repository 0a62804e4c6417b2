"""
Logging for the API and the worker.

Records are rendered as one JSON object per line in production (or when
LOG_FORMAT=json) and as plain text locally. Every record emitted while a
request is being handled carries that request's trace id.
"""
import json
import logging
import logging.config
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from core.config import settings

trace_id_var: ContextVar[Optional[str]] = ContextVar("trace_id", default=None)

SENSITIVE_KEYS = ("password", "token", "secret", "key", "authorization")
TEXT_FORMAT = "%(asctime)s %(levelname)-7s %(name)s [%(trace_id)s] %(message)s"

# Libraries that are chatty at INFO
QUIET_LOGGERS = {"sqlalchemy.engine": "WARNING", "urllib3": "WARNING", "celery": "INFO"}


def get_trace_id() -> Optional[str]:
    return trace_id_var.get()


def redact(data: Any) -> Any:
    """Mask values whose key looks like a credential, recursively."""
    if isinstance(data, dict):
        return {
            k: "[REDACTED]" if any(s in str(k).lower() for s in SENSITIVE_KEYS) else redact(v)
            for k, v in data.items()
        }
    if isinstance(data, list):
        return [redact(item) for item in data]
    return data


class TraceIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.trace_id = trace_id_var.get()
        return True


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        if getattr(record, "trace_id", None):
            payload["trace_id"] = record.trace_id
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        payload.update(redact(getattr(record, "extra_fields", None) or {}))
        return json.dumps(payload, default=str)


def logging_config(level: Optional[str] = None, json_output: Optional[bool] = None) -> Dict[str, Any]:
    level = (level or settings.LOG_LEVEL).upper()
    if json_output is None:
        json_output = settings.LOG_FORMAT == "json" or settings.ENVIRONMENT == "production"

    formatter = {"()": JSONFormatter} if json_output else {"format": TEXT_FORMAT}
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {"trace_id": {"()": TraceIdFilter}},
        "formatters": {"default": formatter},
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stdout",
                "formatter": "default",
                "filters": ["trace_id"],
            }
        },
        "loggers": {name: {"level": lvl} for name, lvl in QUIET_LOGGERS.items()},
        "root": {"level": level, "handlers": ["console"]},
    }


def setup_logging(level: Optional[str] = None, json_output: Optional[bool] = None) -> None:
    logging.config.dictConfig(logging_config(level, json_output))
