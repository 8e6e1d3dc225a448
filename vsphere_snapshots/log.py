"""Logging setup. Log records go to stderr; stdout carries plugin output."""

import logging
import re
import sys

PACKAGE_LOGGER = "vsphere_snapshots"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_LEVELS = {
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}


class SensitiveDataFilter(logging.Filter):
    """Mask passwords in log messages."""

    PATTERN = re.compile(r"(password[\"']?\s*[:=]\s*[\"']?)([^\"'}\s,]+)", re.IGNORECASE)

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = self.PATTERN.sub(r"\1***MASKED***", record.msg)
        return True


def setup_logging(level: str = "info") -> logging.Logger:
    """Configure and return the package logger."""
    logger = logging.getLogger(PACKAGE_LOGGER)

    if level == "disabled":
        logger.disabled = True
        return logger

    logger.disabled = False
    logger.setLevel(_LEVELS.get(level, logging.INFO))

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        handler.addFilter(SensitiveDataFilter())
        logger.addHandler(handler)
        logger.propagate = False

    return logger
