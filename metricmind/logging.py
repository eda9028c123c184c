"""Logging for metricmind commands.

Every component logs under the ``metricmind`` hierarchy (``metricmind.loader``,
``metricmind.llm.engine`` ...). SQLAlchemy's engine and pool loggers stay at
WARNING unless ``--verbose`` is given, so statement echo never floods a run.
"""

from __future__ import annotations

import logging
from pathlib import Path

_LOGGER_NAME = "metricmind"
_CONSOLE_FORMAT = "[metricmind] %(levelname)s %(message)s"
_FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_STORAGE_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool")


def get_logger(name: str | None = None) -> logging.Logger:
    """Return ``metricmind.<name>``, or the root ``metricmind`` logger."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


def configure_logging(
    *, verbose: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Install the console handler (and an optional timestamped file sink) on ``metricmind``.

    Calling it again replaces the previous handlers, so ``main`` can run
    repeatedly in one process.
    """
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(logging.Formatter(_CONSOLE_FORMAT))
    logger.addHandler(console)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(_FILE_FORMAT))
        logger.addHandler(file_handler)

    storage_level = logging.INFO if verbose else logging.WARNING
    for name in _STORAGE_LOGGERS:
        logging.getLogger(name).setLevel(storage_level)

    return logger


__all__ = ["configure_logging", "get_logger"]
