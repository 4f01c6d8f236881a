import json
import logging
import logging.config
from datetime import datetime, timezone
from typing import Optional

from factoring.core.context import get_company_id, get_request_id
from factoring.core.settings import settings

AUDIT_LOGGER = "factoring.audit"
INTEGRATION_LOGGER = "factoring.integrations"


class RequestContextFilter(logging.Filter):
    """Inject company/request ids into log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.company_id = get_company_id()
        record.request_id = get_request_id()
        return True


class JsonFormatter(logging.Formatter):
    def __init__(self, stream_label: str = "transactional") -> None:
        super().__init__()
        self.stream_label = stream_label

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "stream": self.stream_label,
            "company_id": getattr(record, "company_id", "-"),
            "request_id": getattr(record, "request_id", "-"),
        }
        extra = getattr(record, "data", None)
        if extra:
            payload["data"] = extra
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def _stream_handler(formatter: str, log_level: str) -> dict:
    return {
        "class": "logging.StreamHandler",
        "level": log_level,
        "formatter": formatter,
        "filters": ["request_context"],
        "stream": "ext://sys.stdout",
    }


def configure_logging(level: Optional[str] = None) -> None:
    log_level = (level or settings.log_level).upper()
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {
                "request_context": {"()": RequestContextFilter},
            },
            "formatters": {
                "json": {"()": JsonFormatter, "stream_label": "transactional"},
                "audit_json": {"()": JsonFormatter, "stream_label": "audit"},
                "integration_json": {"()": JsonFormatter, "stream_label": "integration"},
            },
            "handlers": {
                "default": _stream_handler("json", log_level),
                "audit": _stream_handler("audit_json", log_level),
                "integration": _stream_handler("integration_json", log_level),
            },
            "loggers": {
                "": {"handlers": ["default"], "level": log_level, "propagate": False},
                AUDIT_LOGGER: {"handlers": ["audit"], "level": log_level, "propagate": False},
                INTEGRATION_LOGGER: {
                    "handlers": ["integration"],
                    "level": log_level,
                    "propagate": False,
                },
                "uvicorn": {"handlers": ["default"], "level": log_level, "propagate": False},
                "uvicorn.error": {"handlers": ["default"], "level": log_level, "propagate": False},
                "uvicorn.access": {"handlers": ["default"], "level": log_level, "propagate": False},
            },
        }
    )
    logging.getLogger(__name__).info(
        "Logging configured for environment=%s", settings.environment
    )


def get_audit_logger() -> logging.Logger:
    return logging.getLogger(AUDIT_LOGGER)


def get_integration_logger() -> logging.Logger:
    return logging.getLogger(INTEGRATION_LOGGER)
