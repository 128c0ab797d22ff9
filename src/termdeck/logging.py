"""Logging for termdeck.

Everything logs under the ``termdeck`` logger (``get_logger("cache")`` gives
``termdeck.cache``). Two extra levels sit between the standard ones:
VERBOSE (15) for detailed diagnostics and TRACE (5) for per-keystroke and
per-cache-hit noise.

Output goes to the file named by ``logging.file`` in the config or by
``TERMDECK_LOG``. Without a file, logs go to stderr only when it is a
terminal, so piped CLI output stays clean.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from termdeck.config.schema import LoggingConfig

TRACE = 5
VERBOSE = 15

logging.addLevelName(TRACE, "TRACE")
logging.addLevelName(VERBOSE, "VERBOSE")

logger = logging.getLogger("termdeck")

_initialized = False

# --verbose N
_VERBOSITY_LEVELS = (logging.ERROR, logging.WARNING, logging.INFO, VERBOSE, TRACE)


class _LowercaseLevelFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        record.levelname = record.levelname.lower()
        return super().format(record)


def resolve_level(config: LoggingConfig | None) -> int:
    """Level for ``config``: ``verbose`` wins over ``level``; INFO by default."""
    if config is None:
        return logging.INFO
    if config.verbose is not None:
        return _VERBOSITY_LEVELS[max(0, min(config.verbose, len(_VERBOSITY_LEVELS) - 1))]
    if config.level:
        name = config.level.upper()
        level = logging.getLevelName("WARNING" if name == "WARN" else name)
        if isinstance(level, int):
            return level
    return logging.INFO


def setup_logging(config: LoggingConfig | None = None) -> None:
    """Attach termdeck's handler. Only the first call has any effect."""
    global _initialized
    if _initialized:
        return
    _initialized = True

    level = resolve_level(config)
    logger.setLevel(level)

    log_path = config.file if config and config.file else os.environ.get("TERMDECK_LOG")
    handler: logging.Handler | None = None
    if log_path:
        try:
            handler = logging.FileHandler(os.path.expanduser(log_path), encoding="utf-8")
        except OSError as e:
            handler = logging.StreamHandler(sys.stderr)
            _attach(handler, level)
            logger.warning("Cannot open log file %s (%s), logging to stderr", log_path, e)
            return
    elif sys.stderr.isatty():
        handler = logging.StreamHandler(sys.stderr)

    if handler is not None:
        _attach(handler, level)


def _attach(handler: logging.Handler, level: int) -> None:
    handler.setLevel(level)
    handler.setFormatter(
        _LowercaseLevelFormatter("%(asctime)s %(levelname)s: %(message)s", datefmt="%H:%M:%S")
    )
    logger.addHandler(handler)


def get_logger(name: str | None = None) -> logging.Logger:
    """The termdeck logger, or its child ``termdeck.<name>``."""
    if name:
        return logger.getChild(name)
    return logger
