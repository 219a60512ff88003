"""Logging setup for the command line: a rotating file plus a stderr console."""

from __future__ import annotations

import logging
import logging.handlers
import sys
from dataclasses import dataclass
from pathlib import Path

LOG_FILENAME = "iqxfer.log"
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


@dataclass(slots=True)
class LoggerConfig:
    """Runtime logging configuration extracted from the validated settings."""

    level: str
    directory: Path
    rotate_bytes: int
    backup_count: int

    @property
    def log_file(self) -> Path:
        return self.directory / LOG_FILENAME


def configure_logging(config: LoggerConfig, enable_console: bool = True) -> Path:
    """Route every record to the rotating log file and, optionally, to stderr.

    Returns the path of the active log file. The console never uses stdout,
    which may be carrying received samples.
    """

    config.directory.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, config.level.upper(), logging.INFO))
    root_logger.handlers.clear()

    file_handler = logging.handlers.RotatingFileHandler(
        config.log_file,
        maxBytes=config.rotate_bytes,
        backupCount=config.backup_count,
        encoding="utf-8",
    )
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(file_handler)

    if enable_console:
        console = logging.StreamHandler(sys.stderr)
        console.setFormatter(_color_formatter())
        root_logger.addHandler(console)

    logging.captureWarnings(True)
    return config.log_file


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def _color_formatter() -> logging.Formatter:
    class _Color(logging.Formatter):
        COLORS = {
            "DEBUG": "\033[37m",
            "INFO": "\033[32m",
            "WARNING": "\033[33m",
            "ERROR": "\033[31m",
            "CRITICAL": "\033[35m",
        }

        RESET = "\033[0m"

        def format(self, record: logging.LogRecord) -> str:  # pragma: no cover - cosmetic
            color = self.COLORS.get(record.levelname, "")
            return f"{color}{super().format(record)}{self.RESET}"

    return _Color(LOG_FORMAT)


__all__ = ["LOG_FILENAME", "LoggerConfig", "configure_logging", "get_logger"]
