"""
Logging setup for Recall.

Library modules only create loggers under the "recall" namespace; handlers
are attached here, by applications or the CLI.
"""

from __future__ import annotations

import logging
from datetime import date
from pathlib import Path

ROOT_LOGGER = "recall"
CONSOLE_FORMAT = "[%(levelname)s] %(message)s"
FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(
    log_dir: Path | None = None,
    console_level: int = logging.WARNING,
    file_level: int = logging.DEBUG,
) -> logging.Logger:
    """
    Route "recall.*" records to stderr and, with log_dir, to a daily file.

    Calling it again replaces the handlers from the previous call.

    Args:
        log_dir: Directory for recall_YYYYMMDD.log (None = console only)
        console_level: Minimum level for console output
        file_level: Minimum level for file output
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(min(console_level, file_level))
    for old in list(logger.handlers):
        logger.removeHandler(old)
        old.close()

    logger.addHandler(_configured(logging.StreamHandler(), console_level, CONSOLE_FORMAT))

    if log_dir is not None:
        log_dir = log_dir.expanduser()
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file = log_dir / f"recall_{date.today():%Y%m%d}.log"
        handler = logging.FileHandler(log_file, encoding="utf-8")
        logger.addHandler(_configured(handler, file_level, FILE_FORMAT, "%Y-%m-%d %H:%M:%S"))
        logger.debug(f"Writing logs to {log_file}")

    return logger


def _configured(
    handler: logging.Handler,
    level: int,
    fmt: str,
    datefmt: str | None = None,
) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt=datefmt))
    return handler
