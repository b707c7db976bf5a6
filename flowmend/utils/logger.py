# utils/logger.py
from __future__ import annotations

import logging
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler

LOGGER_NAME = "flowmend"
LOG_FILE = "flowmend.log"

LEVELS = {
    "CRITICAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARNING": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
}


def parse_level(name: str) -> int:
    """'warning' -> logging.WARNING; raises ValueError for unknown names."""
    try:
        return LEVELS[name.strip().upper()]
    except KeyError:
        raise ValueError(f"unknown log level {name!r}; choose from {', '.join(LEVELS)}") from None


class _StderrHandler(logging.StreamHandler):
    """Writes to whatever sys.stderr is at emit time (pipes, CliRunner, pytest capture)."""

    @property
    def stream(self):
        return sys.stderr

    @stream.setter
    def stream(self, value):
        pass


class _ColorFormatter(logging.Formatter):
    _COLORS = {logging.ERROR: "91", logging.WARNING: "93"}   # red, yellow

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        if not sys.stderr.isatty():
            return base
        for level, code in self._COLORS.items():
            if record.levelno >= level:
                return f"\033[{code}m{base}\033[0m"
        return base


def init_logger(level: int = logging.INFO, log_dir: str | Path | None = None) -> logging.Logger:
    """
    (Re)configure the `flowmend` logger:
      - stderr handler, colored on a terminal (stdout carries the CLI summaries)
      - rotating `<log_dir>/flowmend.log` when log_dir is given
    Safe to call once per command; previous handlers are replaced.
    """
    logger = logging.getLogger(LOGGER_NAME)
    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()
    logger.propagate = False
    logger.setLevel(level)

    fmt = "%(asctime)s | %(levelname)-8s | %(name)s - %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"

    sh = _StderrHandler()
    sh.setFormatter(_ColorFormatter(fmt=fmt, datefmt=datefmt))
    logger.addHandler(sh)

    if log_dir:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        fh = RotatingFileHandler(
            filename=str(log_dir / LOG_FILE),
            maxBytes=5 * 1024 * 1024,
            backupCount=3,
            encoding="utf-8",
        )
        fh.setFormatter(logging.Formatter(fmt=fmt, datefmt=datefmt))
        logger.addHandler(fh)

    return logger


def get_logger(child: str) -> logging.Logger:
    """Create/get a child logger under the project logger."""
    return logging.getLogger(LOGGER_NAME).getChild(child)
