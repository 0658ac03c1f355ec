"""Logging setup for tptctl.

structlog on top of stdlib logging. Records go to stderr by default so
they never mix with command output on stdout; --log-file redirects them
and --log-json switches to one JSON object per line for automation.
"""

import logging
import sys
from pathlib import Path

import structlog

VERBOSITY_LEVELS = ["warning", "info", "debug"]

# Third-party loggers that are too chatty below warning
QUIET_LOGGERS = ("botocore", "boto3", "urllib3", "httpx", "httpcore")


def level_for_verbosity(verbose: int) -> str:
    """Map a -v count to a log level name."""
    return VERBOSITY_LEVELS[min(verbose, len(VERBOSITY_LEVELS) - 1)]


def _handler(log_file: str | Path | None) -> logging.Handler:
    if log_file:
        return logging.FileHandler(str(log_file))
    return logging.StreamHandler(sys.stderr)


def _processors(json_output: bool) -> list[structlog.types.Processor]:
    renderer: structlog.types.Processor
    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)
    return [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        renderer,
    ]


def configure_logging(
    level: str = "warning",
    log_file: str | Path | None = None,
    json_output: bool = False,
) -> None:
    """Configure stdlib logging and structlog. Called once from the root command.

    Args:
        level: Log level name (debug, info, warning, error)
        log_file: Write records here instead of stderr
        json_output: Render records as JSON
    """
    log_level = getattr(logging, level.upper(), logging.WARNING)

    handler = _handler(log_file)
    handler.setLevel(log_level)
    logging.basicConfig(level=log_level, handlers=[handler], format="%(message)s", force=True)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

    structlog.configure(
        processors=_processors(json_output),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """structlog logger for a module; pass __name__."""
    return structlog.get_logger(name)
