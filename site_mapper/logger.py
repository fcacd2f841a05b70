# === FILE: site_mapper/logger.py ===
"""Project logger ``SiteMapper``.

Modules log through the shared instance::

    from site_mapper.logger import logger

The CLI calls :func:`init_logging` once per invocation. Records go to stderr
so that JSON printed by the CLI on stdout stays parseable.
"""
from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Final, Union

DEFAULT_FORMAT: Final[str] = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOGGER_NAME: Final[str] = "SiteMapper"

#: rotation of the optional log file
_MAX_BYTES: Final[int] = 5 * 1024 * 1024
_BACKUPS: Final[int] = 3


def init_logging(
    level: Union[int, str] = "INFO",
    log_file: str | Path | None = None,
    log_format: str = DEFAULT_FORMAT,
) -> logging.Logger:
    """Replace the handlers of the project logger and return it."""
    lg = logging.getLogger(LOGGER_NAME)
    lg.setLevel(level)
    for handler in list(lg.handlers):
        lg.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(log_format)
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file is not None:
        handlers.append(
            RotatingFileHandler(str(log_file), maxBytes=_MAX_BYTES, backupCount=_BACKUPS, encoding="utf-8")
        )
    for handler in handlers:
        handler.setFormatter(formatter)
        lg.addHandler(handler)

    lg.propagate = False
    return lg


logger: logging.Logger = init_logging()

__all__ = ["logger", "init_logging", "DEFAULT_FORMAT", "LOGGER_NAME"]
