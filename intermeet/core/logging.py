# intermeet/core/logging.py

import logging
import os
import re
import sys


DEFAULT_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# logger name -> level it is held at
NOISY_LOGGERS = {
    "redis": logging.WARNING,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "uvicorn": logging.INFO,
    "uvicorn.error": logging.INFO,
    "uvicorn.access": logging.WARNING,
}

_TOKEN_IN_URL = re.compile(r"([?&]token=)[^&\s\"]+")


class TokenRedactingFilter(logging.Filter):
    """Masks ``?token=...`` query values (WebSocket URLs carry the bearer token)."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.args:
            record.msg = record.getMessage()
            record.args = None
        if isinstance(record.msg, str) and "token=" in record.msg:
            record.msg = _TOKEN_IN_URL.sub(r"\1***", record.msg)
        return True


def setup_logging(level_name: str | None = None) -> None:
    """
    Configure application-wide logging.

    Level comes from ``level_name`` or the LOG_LEVEL env var (default INFO).
    Output goes to stdout with access tokens masked.
    """
    level_name = (level_name or os.getenv("LOG_LEVEL", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Uvicorn may have configured handlers already; only add ours once
    if not root_logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(DEFAULT_FORMAT))
        root_logger.addHandler(handler)

    for handler in root_logger.handlers:
        if not any(isinstance(f, TokenRedactingFilter) for f in handler.filters):
            handler.addFilter(TokenRedactingFilter())

    for name, noisy_level in NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(noisy_level)


def get_logger(name: str | None = None) -> logging.Logger:
    """
    Usage:
        logger = get_logger(__name__)
        logger.info("Room %s created", room.room_code)
    """
    return logging.getLogger(name)
