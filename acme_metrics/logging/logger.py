"""
Structured logging: timestamp, level, service, event_type.

structlog with ISO timestamps and consistent keys so cache states, upstream
failures and aggregation summaries can be queried in a log store. Modules call
get_logger(__name__) and log snake_case events with keyword context.

Env: LOG_LEVEL (default INFO), LOG_FORMAT (json | console, default json).
Depends only on stdlib logging and structlog; no acme_metrics imports so that
config and core can log without circular imports.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any, TextIO

import structlog

SERVICE_NAME = "acme-metrics"
DEFAULT_LEVEL = "INFO"
DEFAULT_FORMAT = "json"


def _add_service(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def _level_value(level: str) -> int:
    value = logging.getLevelName(level.strip().upper())
    return value if isinstance(value, int) else logging.INFO


def _renderer(fmt: str, stream: TextIO) -> Any:
    if fmt == "json":
        return structlog.processors.JSONRenderer(sort_keys=False)
    return structlog.dev.ConsoleRenderer(colors=stream.isatty())


def configure_logging(
    level: str | None = None,
    fmt: str | None = None,
    stream: TextIO | None = None,
) -> None:
    """
    (Re)configure structlog. Arguments override LOG_LEVEL / LOG_FORMAT; runs
    once at import with env values, and tests may call it again with a stream.
    """
    level = level or os.getenv("LOG_LEVEL") or DEFAULT_LEVEL
    fmt = (fmt or os.getenv("LOG_FORMAT") or DEFAULT_FORMAT).strip().lower()
    stream = stream or sys.stdout

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
            _add_service,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.EventRenamer("event_type"),
            _renderer(fmt, stream),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(_level_value(level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream),
        cache_logger_on_first_use=False,
    )


if not structlog.is_configured():
    configure_logging()


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Return a structured logger for the given module name.

        logger = get_logger(__name__)
        logger.info("identity_map_refreshed", identities=42, elapsed_ms=812.5)

    Output (JSON): {"event_type": "identity_map_refreshed", "identities": 42, ...,
    "logger": "acme_metrics.staking.registry", "service": "acme-metrics"}
    """
    return structlog.get_logger(name).bind(logger=name)


def bind_txid(txid: str) -> structlog.BoundLogger:
    """Return a logger with txid bound to all subsequent log calls."""
    return get_logger("acme_metrics.timestamps").bind(txid=txid)
