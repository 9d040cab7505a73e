"""Console logging for the gardenpub CLI.

Library modules only ever do ``log = logging.getLogger(__name__)``; handlers
are installed once, by ``gardenpub.cli.main``, on the ``gardenpub`` logger.

GARDENPUB_LOG_LEVEL picks the level (a name such as ``debug`` or a number).
At DEBUG the scheduler reports every state change and each unresolved
wiki-link is listed. Watch mode logs one INFO line per build; recovered
problems such as bad front-matter or duplicate titles are WARNINGs.
"""

import logging
import os
import sys

LOG_LEVEL_ENV = "GARDENPUB_LOG_LEVEL"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# Third-party loggers kept at INFO or above even when gardenpub runs at DEBUG
NOISY_LOGGERS = ("watchdog",)


def resolve_level(value: str | None) -> int:
    """Turn a level name or number into a logging level, INFO when unknown."""
    if not value:
        return logging.INFO
    value = value.strip()
    if value.isdigit():
        return int(value)
    level = logging.getLevelName(value.upper())
    return level if isinstance(level, int) else logging.INFO


def configure_logging(level: str | None = None) -> logging.Logger:
    """Attach a stderr handler to the ``gardenpub`` logger.

    Args:
        level: Level name or number; defaults to GARDENPUB_LOG_LEVEL.

    Returns:
        The package logger. A second call leaves its handlers alone.
    """
    logger = logging.getLogger("gardenpub")
    if logger.handlers:
        return logger

    resolved = resolve_level(level if level is not None else os.environ.get(LOG_LEVEL_ENV))

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%H:%M:%S"))
    logger.addHandler(handler)
    logger.setLevel(resolved)
    logger.propagate = False

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(resolved, logging.INFO))

    return logger
