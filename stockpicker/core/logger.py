"""Logging setup shared by the runner script and library callers."""
from __future__ import annotations

import logging
import sys
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path


_LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"

# Third-party loggers that are noisy at DEBUG.
_QUIET_LOGGERS = ("aiosqlite", "asyncio")


def setup_logging(
    name: str = "stockpicker",
    level: str = "INFO",
    log_dir: str | None = None,
) -> logging.Logger:
    """Configure ``name`` with a stdout handler and an optional daily log file.

    Calling it again for the same name only updates the level, so handlers
    are never duplicated.
    """
    logger = logging.getLogger(name)
    log_level = getattr(logging, level.upper(), logging.INFO)
    logger.setLevel(log_level)

    if not logger.handlers:
        formatter = logging.Formatter(_LOG_FORMAT)

        console = logging.StreamHandler(sys.stdout)
        console.setFormatter(formatter)
        logger.addHandler(console)

        if log_dir:
            log_path = Path(log_dir)
            log_path.mkdir(parents=True, exist_ok=True)
            file_handler = TimedRotatingFileHandler(
                filename=log_path / f"{name}.log",
                when="midnight",
                backupCount=30,
                encoding="utf-8",
            )
            file_handler.suffix = "%Y-%m-%d"
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

    for noisy in _QUIET_LOGGERS:
        logging.getLogger(noisy).setLevel(max(log_level, logging.WARNING))

    return logger
