"""Structured logging configuration.

Emits one JSON object per log record so that schedule computations, repayment
postings and document downloads can be traced per loan.
"""

import json
import logging
from datetime import datetime, timezone


class JSONFormatter(logging.Formatter):
    """Render a record as a single JSON line.

    ``loan_number`` and ``action`` are picked up from ``extra=`` when the
    caller supplies them; keys without a value are left out.
    """

    def format(self, record):
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "module": record.module if hasattr(record, "module") else record.name,
            "logger": record.name,
            "message": record.getMessage(),
            "loan_number": getattr(record, "loan_number", None),
            "action": getattr(record, "action", None),
        }
        log_entry = {k: v for k, v in log_entry.items() if v is not None}

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


def setup_logging(level: str = "INFO", logger_name: str = "loan_schedule") -> logging.Logger:
    """
    Attach a single JSON stream handler to the ``loan_schedule`` logger tree.

    Args:
        level: Level name such as ``"DEBUG"`` or ``"warning"``; unknown
            names fall back to INFO.
        logger_name: Root of the logger tree to configure. The engine, store
            and web app log under ``loan_schedule.*``.

    Returns:
        The configured logger. Calling this again replaces the handler
        instead of stacking a second one.
    """
    logger = logging.getLogger(logger_name)

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter())
    logger.addHandler(handler)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logger.propagate = False

    return logger


def get_logger(name: str = "loan_schedule") -> logging.Logger:
    return logging.getLogger(name)
