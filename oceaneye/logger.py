"""File logging for the application: one log file, recreated on start."""

from __future__ import annotations

import logging
import time
from datetime import datetime
from pathlib import Path

LOGGER_NAME = "oceaneye"

_handler: logging.FileHandler | None = None
_previous_level = logging.NOTSET


def _timestamp(created: float) -> str:
    moment = datetime.fromtimestamp(created)
    return moment.strftime("%Y-%m-%d %H:%M:%S") + f".{moment.microsecond // 1000:03d}"


class LogFormatter(logging.Formatter):
    """Timestamped lines prefixed by severity; fatal lines carry the call site."""

    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        if record.levelno >= logging.CRITICAL:
            return (
                f"Fatal: {message} "
                f"({record.pathname}:{record.lineno}, {record.funcName})"
            )
        if record.levelno >= logging.ERROR:
            prefix = "Critical: "
        elif record.levelno >= logging.WARNING:
            prefix = "Warning: "
        elif record.levelno >= logging.INFO:
            prefix = "Info: "
        else:
            prefix = ""
        return f"{_timestamp(record.created)} {prefix}{message}"


def is_initialized() -> bool:
    return _handler is not None


def init(filename: str | Path = "log.txt") -> None:
    """Start logging to a fresh file; later calls do nothing until cleanup()."""
    global _handler, _previous_level
    if _handler is not None:
        return
    logger = logging.getLogger(LOGGER_NAME)
    path = Path(filename)
    try:
        path.unlink(missing_ok=True)
        handler = logging.FileHandler(path, mode="a", encoding="utf-8")
    except OSError:
        logger.warning("Could not open log file. Using default logging.")
        return
    handler.setFormatter(LogFormatter())
    handler.setLevel(logging.DEBUG)
    _previous_level = logger.level
    logger.setLevel(logging.DEBUG)
    logger.addHandler(handler)
    _handler = handler
    handler.stream.write(
        f"{_timestamp(time.time())} Logger initialized. New log file created.\n"
    )
    handler.flush()


def cleanup() -> None:
    """Flush and close the log file and detach it from the logger."""
    global _handler
    if _handler is None:
        return
    logger = logging.getLogger(LOGGER_NAME)
    _handler.flush()
    logger.removeHandler(_handler)
    _handler.close()
    logger.setLevel(_previous_level)
    _handler = None