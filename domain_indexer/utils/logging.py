"""
Structured logging utilities for the domain indexer.

One configuration serves the CLI, the daemon and the trigger endpoint. Console
output is the default; JSON output (``LOG_JSON=true``) is meant for log
collectors and carries every ``extra=`` field of a record, so window bounds,
block numbers and record ids stay queryable.

Usage:
    from domain_indexer.utils.logging import configure_logging, get_logger

    configure_logging(level="INFO", json_logs=True, app_env="production")
    log = get_logger(__name__)
    log.info("[WINDOW] committed", extra={"window_start": 1000, "window_end": 1999})
"""

from __future__ import annotations

import json
import logging
import logging.config
from typing import Any, Dict, Mapping, Optional

SERVICE_NAME = "domain-indexer"

# Attributes every LogRecord carries; anything else arrived through `extra=`.
_STANDARD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None)).keys()
) | {"message", "asctime", "taskName"}

# Third-party loggers that are chatty below WARNING.
_QUIET_LOGGERS = ("web3", "asyncio", "uvicorn.access")


def _json_formatter(record: logging.LogRecord, static_fields: Optional[Mapping[str, Any]] = None) -> str:
    """Render a log record as JSON string."""
    payload: Dict[str, Any] = dict(static_fields or {})
    payload.update(
        {
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
    )
    for key, value in vars(record).items():
        if key not in _STANDARD_ATTRS and key != "extra":
            payload[key] = value
    # Older call sites pass a nested dict as `extra={"extra": {...}}`.
    nested = getattr(record, "extra", None)
    if isinstance(nested, dict):
        payload.update(nested)
    if record.exc_info:
        payload["exc_info"] = logging.Formatter().formatException(record.exc_info)
    if record.stack_info:
        payload["stack_info"] = record.stack_info
    # Event args may hold bytes (nodes, hashes); fall back to str().
    return json.dumps(payload, default=str)


class JsonFormatter(logging.Formatter):
    """JSON formatter stamping every line with the service and environment."""

    def __init__(self, service: str = SERVICE_NAME, app_env: Optional[str] = None) -> None:
        super().__init__()
        self.static_fields: Dict[str, Any] = {"service": service}
        if app_env:
            self.static_fields["app_env"] = app_env

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        return _json_formatter(record, self.static_fields)


def configure_logging(
    level: str = "INFO",
    json_logs: bool = False,
    app_env: Optional[str] = None,
) -> None:
    """
    Configure root logging.

    Parameters
    ----------
    level : str
        Logging level name (e.g., "DEBUG", "INFO", "WARNING").
    json_logs : bool
        Whether to emit logs as JSON. If False, uses a concise human formatter.
    app_env : str | None
        Deployment environment added to every JSON line.

    Notes
    -----
    uvicorn is started with ``log_config=None`` so its loggers propagate to the
    root handler configured here.
    """
    formatter_name = "json" if json_logs else "console"

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "console": {
                    "format": "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
                    "datefmt": "%Y-%m-%d %H:%M:%S",
                },
                "json": {
                    "()": JsonFormatter,
                    "app_env": app_env,
                },
            },
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "formatter": formatter_name,
                    "level": level,
                }
            },
            "root": {
                "handlers": ["default"],
                "level": level,
            },
            "loggers": {name: {"level": "WARNING"} for name in _QUIET_LOGGERS},
        }
    )


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Get a logger with the given name. If name is None, returns the root logger.
    """
    return logging.getLogger(name)


__all__ = ["SERVICE_NAME", "configure_logging", "get_logger", "JsonFormatter"]
