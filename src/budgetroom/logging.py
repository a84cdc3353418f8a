from __future__ import annotations

import logging
from typing import Any, MutableMapping

import structlog


SQL_LOGGER_NAME = "sql"


def _sql_filter(enabled: bool):
    def processor(logger: Any, method_name: str, event_dict: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
        if not enabled and event_dict.get("logger") == SQL_LOGGER_NAME:
            raise structlog.DropEvent
        return event_dict

    return processor


def configure_logging(level: str = "INFO", log_sql: bool = False) -> None:
    """JSON logs on stdout. Query logging from :class:`Database` is off unless ``log_sql``."""
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    logging.basicConfig(level=numeric_level, format="%(message)s")

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            _sql_filter(log_sql),
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


sql_logger = get_logger(SQL_LOGGER_NAME)


def bind_context(**values: object) -> None:
    """Replace the per-update context (tg_id, user_id, room_id) attached to every log line."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(**values)
