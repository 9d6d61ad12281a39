"""Logging helpers for build runs (console plus an optional per-target log file)."""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime
from typing import TextIO

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(message)s"

_LEVEL_COLORS = {
    logging.DEBUG: "\033[0;36m",
    logging.INFO: "\033[0;34m",
    logging.WARNING: "\033[1;33m",
    logging.ERROR: "\033[0;31m",
    logging.CRITICAL: "\033[1m\033[0;31m",
}
_RESET = "\033[0m"

_FILE_HANDLER_NAME = "image_build.logfile"


class ColorFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        color = _LEVEL_COLORS.get(record.levelno)
        if not color:
            return text
        return f"{color}{text}{_RESET}"


def write_text_file(path: str, text: str) -> None:
    """Write text to a UTF-8 file, creating parent directories."""
    directory = os.path.dirname(os.path.abspath(path))
    os.makedirs(directory, exist_ok=True)
    with open(path, "w", encoding="utf-8") as file:
        file.write(text)


def setup_build_logger(
    module_name: str,
    *,
    debug: bool = False,
    color: bool = True,
    stream: TextIO | None = None,
) -> logging.Logger:
    """
    Configure the logger for one build run.

    Console output is INFO (DEBUG with ``debug``); file output is attached per
    target with ``attach_log_file``.
    """

    logger = logging.getLogger(f"image_build.{module_name}")
    logger.setLevel(logging.DEBUG)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    stream = stream or sys.stderr
    stream_handler = logging.StreamHandler(stream)
    stream_handler.setLevel(logging.DEBUG if debug else logging.INFO)
    use_color = color and hasattr(stream, "isatty") and stream.isatty()
    stream_handler.setFormatter((ColorFormatter if use_color else logging.Formatter)(LOG_FORMAT))

    logger.addHandler(stream_handler)
    logger.propagate = False
    return logger


def detach_log_file(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        if handler.get_name() == _FILE_HANDLER_NAME:
            logger.removeHandler(handler)
            handler.close()


def attach_log_file(
    logger: logging.Logger, log_file: str, *, target: str, module_name: str
) -> None:
    """Route file output to ``log_file`` (appending) after writing a run header."""

    detach_log_file(logger)
    os.makedirs(os.path.dirname(os.path.abspath(log_file)), exist_ok=True)

    rule = "=" * 80
    with open(log_file, "a", encoding="utf-8") as handle:
        handle.write(
            f"{rule}\n"
            f"Build System Log - {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}\n"
            f"Target: {target}\n"
            f"Module: {module_name}\n"
            f"{rule}\n\n"
        )

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.set_name(_FILE_HANDLER_NAME)
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(file_handler)
    logger.debug("Log file: %s", log_file)
