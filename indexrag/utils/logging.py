"""structlog configuration for the server and the CLI.

Both entry points share one processor chain and differ only in where
events go and how they are rendered:

* the server writes to stdout, as JSON when ``APP_ENV=production`` and as
  console lines otherwise;
* the CLI writes to stderr without colours so stdout carries only command
  results.

Standard-library records (uvicorn, chromadb, httpx, sentence-transformers)
are routed through :class:`structlog.stdlib.ProcessorFormatter`, so they
render exactly like indexrag's own events.
"""

from __future__ import annotations

import logging
import sys
from typing import TextIO

import structlog

# Libraries that log every request or batch at INFO.
_QUIET_LIBRARIES = (
    "chromadb",
    "httpx",
    "httpcore",
    "sentence_transformers",
    "posthog",
    "urllib3",
)


def _shared_processors() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]


def configure_logging(
    log_level: str = "INFO",
    json_output: bool = False,
    stream: TextIO | None = None,
    colors: bool | None = None,
) -> structlog.BoundLogger:
    """Configure structlog and the stdlib root logger.

    Parameters
    ----------
    log_level:
        Minimum level name (``DEBUG``, ``INFO``, ``WARNING``, ...).
    json_output:
        Render events as JSON lines instead of console lines.
    stream:
        Destination for every event; stdout when omitted.
    colors:
        Colour console output.  Defaults to whether *stream* is a TTY;
        ignored for JSON output.

    Returns
    -------
    structlog.BoundLogger
        A logger bound to the new configuration.
    """
    stream = stream or sys.stdout
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    if json_output:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        use_colors = stream.isatty() if colors is None else colors
        renderer = structlog.dev.ConsoleRenderer(colors=use_colors)

    shared = _shared_processors()
    structlog.configure(
        processors=[*shared, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(stream)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                *shared,
                renderer,
            ],
        )
    )
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in _QUIET_LIBRARIES:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    return structlog.get_logger()


def get_logger(name: str) -> structlog.BoundLogger:
    """Return a logger bound with ``logger_name=name``, configuring defaults on first use."""
    if not structlog.is_configured():
        configure_logging()
    return structlog.get_logger(logger_name=name)
