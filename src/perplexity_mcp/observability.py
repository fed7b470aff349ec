"""structlog setup. Logs go to stderr because stdout carries the MCP stream."""

from __future__ import annotations

import logging
import sys
from typing import Literal

import structlog


def configure_logging(level: str = "INFO", fmt: Literal["json", "console"] = "console") -> None:
    """
    Configure structlog once at startup.

    Args:
        level: Minimum level name (``DEBUG``, ``INFO``, ...). Unknown names fall back to INFO.
        fmt: ``json`` for one JSON object per line, ``console`` for human-readable output.
    """
    level_no = getattr(logging, level.upper(), logging.INFO)
    if not isinstance(level_no, int):
        level_no = logging.INFO

    processors: list[structlog.typing.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    if fmt == "json":
        processors += [structlog.processors.dict_tracebacks, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level_no),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )
