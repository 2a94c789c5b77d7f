from __future__ import annotations

import logging
import sys
from typing import TextIO

"""Application logging for the price importer.

Lines are rendered as ``LABEL message`` where LABEL is one of
INFO|WARN|ERROR|SUMMARY (DEBUG with --debug). Modules log through
``logging.getLogger(__name__)``; every module lives under ``price_ingest`` so
its records reach the handler installed here.

The handler writes to stderr: stdout is reserved for command output such as
the JSON import result.
"""

__all__ = [
    "APP_LOGGER_NAME",
    "SUMMARY_LEVEL",
    "LabeledFormatter",
    "get_logger",
    "log_summary",
    "reset_logging",
    "set_debug",
    "setup_logging",
]

APP_LOGGER_NAME = "price_ingest"

# between INFO (20) and WARNING (30)
SUMMARY_LEVEL = 25

_LABELS = {
    logging.DEBUG: "DEBUG",
    logging.INFO: "INFO",
    SUMMARY_LEVEL: "SUMMARY",
    logging.WARNING: "WARN",
    logging.ERROR: "ERROR",
    logging.CRITICAL: "CRITICAL",
}

_configured: logging.Logger | None = None


class LabeledFormatter(logging.Formatter):
    """``LABEL message``, followed by the traceback when one is attached."""

    def format(self, record: logging.LogRecord) -> str:
        label = _LABELS.get(record.levelno, record.levelname)
        text = f"{label} {record.getMessage()}"
        if record.exc_info:
            text = f"{text}\n{self.formatException(record.exc_info)}"
        return text


def setup_logging(stream: TextIO | None = None, level: int = logging.INFO) -> logging.Logger:
    """Install the labeled handler on the ``price_ingest`` logger.

    Repeated calls return the logger configured first; call reset_logging()
    to rebuild it (tests do this to pick up a new captured stream).
    """
    global _configured
    if _configured is not None:
        return _configured

    logging.addLevelName(SUMMARY_LEVEL, "SUMMARY")

    app_logger = logging.getLogger(APP_LOGGER_NAME)
    for old in list(app_logger.handlers):
        app_logger.removeHandler(old)

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(LabeledFormatter())
    handler.setLevel(level)
    app_logger.addHandler(handler)
    app_logger.setLevel(level)
    # output is owned by this handler; the root logger must not repeat it
    app_logger.propagate = False

    _configured = app_logger
    return app_logger


def set_debug(logger: logging.Logger) -> None:
    logger.setLevel(logging.DEBUG)
    for h in logger.handlers:
        h.setLevel(logging.DEBUG)
    logger.debug("debug mode enabled")


def get_logger() -> logging.Logger:
    return _configured if _configured is not None else setup_logging()


def log_summary(message: str) -> None:
    get_logger().log(SUMMARY_LEVEL, message)


def reset_logging() -> None:
    """Forget the configured logger so the next setup_logging() starts over."""
    global _configured
    _configured = None
