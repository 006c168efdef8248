"""Structured JSON logging configuration."""
import logging
import sys

from pythonjsonlogger import jsonlogger

from app.core.config import settings

# Noisy third-party loggers kept at WARNING outside development
_QUIET_LOGGERS = ("sqlalchemy.engine", "httpx", "asyncio")


def setup_logging() -> None:
    """Configure JSON structured logging for production, human-readable for dev."""
    if settings.APP_ENV == "production":
        handler = logging.StreamHandler(sys.stdout)
        formatter = jsonlogger.JsonFormatter(
            "%(asctime)s %(name)s %(levelname)s %(request_id)s %(message)s",
            rename_fields={"asctime": "timestamp", "levelname": "level"},
        )
        handler.setFormatter(formatter)
        handler.addFilter(_RequestIdDefault())
        logging.root.handlers = [handler]
        logging.root.setLevel(logging.INFO)
        for name in _QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
    else:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(name)s %(levelname)s %(message)s",
        )


class _RequestIdDefault(logging.Filter):
    """Guarantee a request_id attribute so the JSON format never KeyErrors."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            from app.middleware.request_id import current_request_id

            record.request_id = current_request_id()
        return True
