"""Centralized logging configuration for the payment relay.

Every module logs through the ``paylink`` logger exposed here. Messages name
the order they concern; structured fields passed with ``extra=`` are appended
as ``key=value`` pairs so status changes can be traced from the log alone.
"""
from __future__ import annotations

import logging
import os

_LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

CONTEXT_FIELDS = ("status", "from", "to", "outcome", "current", "path", "total", "recipients", "elapsed")

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s%(context)s"


class ContextFilter(logging.Filter):
    """Collects the known ``extra=`` fields of a record into ``record.context``."""

    def filter(self, record: logging.LogRecord) -> bool:
        pairs = [
            f"{name}={getattr(record, name)}"
            for name in CONTEXT_FIELDS
            if getattr(record, name, None) is not None
        ]
        record.context = f" [{' '.join(pairs)}]" if pairs else ""
        return True


def build_formatter() -> logging.Formatter:
    return logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")


def _create_logger() -> logging.Logger:
    logger = logging.getLogger("paylink")
    if logger.handlers:
        return logger

    handler = logging.StreamHandler()
    handler.setFormatter(build_formatter())

    logger.setLevel(_LOG_LEVEL)
    logger.addFilter(ContextFilter())
    logger.addHandler(handler)
    logger.propagate = False

    return logger


logger = _create_logger()
