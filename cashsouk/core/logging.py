import json
import logging
import logging.config
from datetime import datetime, timezone
from typing import Optional

from cashsouk.core.context import get_actor_id, get_application_id, get_request_id
from cashsouk.core.settings import settings

SERVICE_NAME = "cashsouk-backend"
AUDIT_LOGGER = "cashsouk.audit"
REVIEW_LOGGER = "cashsouk.review"


class RequestContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id()
        record.actor_id = get_actor_id()
        record.application_id = get_application_id()
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per line; ``extra={"fields": {...}}`` is merged in."""

    def __init__(self, channel: str = "app") -> None:
        super().__init__()
        self.channel = channel

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "service": SERVICE_NAME,
            "env": settings.environment,
            "channel": self.channel,
            "logger": record.name,
            "msg": record.getMessage(),
            "request_id": getattr(record, "request_id", "-"),
            "actor_id": getattr(record, "actor_id", "-"),
            "application_id": getattr(record, "application_id", "-"),
        }
        fields = getattr(record, "fields", None)
        if isinstance(fields, dict):
            payload.update(fields)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def _stdout_handler(formatter: str, level: str) -> dict:
    return {
        "class": "logging.StreamHandler",
        "level": level,
        "formatter": formatter,
        "filters": ["request_context"],
        "stream": "ext://sys.stdout",
    }


def configure_logging(level: Optional[str] = None) -> None:
    log_level = (level or settings.log_level).upper()
    server_loggers = {
        name: {"handlers": ["app"], "level": log_level, "propagate": False}
        for name in ("uvicorn", "uvicorn.error", "uvicorn.access")
    }
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {"request_context": {"()": RequestContextFilter}},
            "formatters": {
                "app": {"()": JsonFormatter, "channel": "app"},
                "audit": {"()": JsonFormatter, "channel": "audit"},
                "review": {"()": JsonFormatter, "channel": "review"},
            },
            "handlers": {
                "app": _stdout_handler("app", log_level),
                "audit": _stdout_handler("audit", log_level),
                "review": _stdout_handler("review", log_level),
            },
            "loggers": {
                "": {"handlers": ["app"], "level": log_level, "propagate": False},
                AUDIT_LOGGER: {"handlers": ["audit"], "level": log_level, "propagate": False},
                REVIEW_LOGGER: {"handlers": ["review"], "level": log_level, "propagate": False},
                **server_loggers,
            },
        }
    )
    logging.getLogger(__name__).info(
        "logging configured",
        extra={"fields": {"log_level": log_level, "storage_provider": settings.storage_provider}},
    )


def get_audit_logger() -> logging.Logger:
    return logging.getLogger(AUDIT_LOGGER)


def get_review_logger() -> logging.Logger:
    return logging.getLogger(REVIEW_LOGGER)
