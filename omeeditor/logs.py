"""Logging setup for the editor."""

from __future__ import annotations

from datetime import datetime
import logging
from pathlib import Path

import coloredlogs

LOG_FORMAT = "%(asctime)s %(levelname)s %(message)s"
FILE_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

base_logger = logging.getLogger("omeeditor")
_file_handler: logging.FileHandler | None = None


def default_log_folder() -> Path:
    return Path.home() / ".omeeditor" / "logs"


def setup_logging(
    log_level: str = "INFO",
    log_to_file: bool = False,
    log_folder: str | Path | None = None,
) -> logging.Logger:
    """Configure console output and, optionally, a timestamped log file.

    Calling this again replaces the previous file handler, so the application
    can reconfigure logging once its configuration has been read.
    """
    global _file_handler

    numeric_level = getattr(logging, log_level.upper(), logging.INFO)
    base_logger.setLevel(numeric_level)
    coloredlogs.install(
        level=numeric_level,
        logger=base_logger,
        fmt=LOG_FORMAT,
        datefmt=DATE_FORMAT,
    )

    if _file_handler is not None:
        base_logger.removeHandler(_file_handler)
        _file_handler.close()
        _file_handler = None

    if log_to_file:
        folder = Path(log_folder) if log_folder is not None else default_log_folder()
        folder.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
        log_path = folder / f"omeeditor_{timestamp}.log"

        _file_handler = logging.FileHandler(log_path, encoding="utf-8")
        _file_handler.setLevel(numeric_level)
        _file_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, datefmt=DATE_FORMAT))
        base_logger.addHandler(_file_handler)
        base_logger.info("Logging to file: %s", log_path)

    return base_logger


def get_logger(name: str) -> logging.Logger:
    """Return a child of the package logger, e.g. ``get_logger(__name__)``."""
    prefix = base_logger.name + "."
    if name.startswith(prefix):
        name = name[len(prefix):]
    return base_logger.getChild(name)
