"""Logging setup for hcprov.

Progress meant for the operator is printed with ``click.echo``. Everything
else is a structlog event routed through the standard ``logging`` module, so
``-v`` only changes how chatty the diagnostics are. Events are rendered for a
terminal by default and as one JSON object per line with ``--log-json``
(e.g. when a provisioning run is driven from CI).
"""

import logging
import sys
from pathlib import Path

import structlog

_VERBOSITY_LEVELS = ["warning", "info", "debug"]

# Loggers of libraries that are noisy below WARNING
_QUIET_LOGGERS = ("httpx", "httpcore")


def verbosity_to_level(verbose: int) -> str:
    """Map a -v count to a log level name."""
    return _VERBOSITY_LEVELS[min(max(verbose, 0), len(_VERBOSITY_LEVELS) - 1)]


def _build_handler(log_level: int, log_file: str | Path | None) -> logging.Handler:
    if log_file:
        handler: logging.Handler = logging.FileHandler(str(log_file))
    else:
        handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(log_level)
    return handler


def _build_processors(json_output: bool) -> list[structlog.types.Processor]:
    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    return [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
        renderer,
    ]


def configure_logging(
    level: str = "warning",
    log_file: str | Path | None = None,
    json_output: bool = False,
) -> None:
    """Set up stdlib logging and structlog for one CLI invocation.

    Args:
        level: Log level name (debug, info, warning, error)
        log_file: Append events to this file instead of stderr
        json_output: Render events as JSON lines
    """
    log_level = logging.getLevelName(level.upper())
    if not isinstance(log_level, int):
        log_level = logging.WARNING

    logging.basicConfig(
        level=log_level,
        handlers=[_build_handler(log_level, log_file)],
        format="%(message)s",
        force=True,
    )
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

    structlog.configure(
        processors=_build_processors(json_output),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
