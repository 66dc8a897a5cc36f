"""Structured logging setup for allowsmoke.

Engine records that concern a single virtual user carry ``vu_id`` through
``extra``; the JSON format emits it as its own key so a run's log lines can
be grouped per user.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime

HANDLER_NAME = "allowsmoke"

_TEXT_FORMAT = "%(asctime)s [%(levelname)-8s] %(name)s: %(message)s"
_TEXT_DATEFMT = "%Y-%m-%d %H:%M:%S"


class _JsonFormatter(logging.Formatter):
    """One-line JSON formatter with keys: timestamp, level, logger, message.

    ``vu_id`` and ``exception`` are added when the record carries them.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        vu_id = getattr(record, "vu_id", None)
        if vu_id is not None:
            log_entry["vu_id"] = vu_id
        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry)


class _StderrHandler(logging.StreamHandler):
    """Stream handler that writes to whatever ``sys.stderr`` is at emit time."""

    def __init__(self) -> None:
        logging.Handler.__init__(self)

    @property
    def stream(self):  # type: ignore[override]
        return sys.stderr


def _make_formatter(json_format: bool) -> logging.Formatter:
    if json_format:
        return _JsonFormatter()
    return logging.Formatter(_TEXT_FORMAT, datefmt=_TEXT_DATEFMT)


def _own_handler(logger: logging.Logger) -> logging.Handler | None:
    for handler in logger.handlers:
        if handler.get_name() == HANDLER_NAME:
            return handler
    return None


def setup_logging(
    level: int = logging.INFO,
    *,
    json_format: bool = False,
) -> logging.Logger:
    """Configure and return the root ``allowsmoke`` logger.

    The logger owns exactly one handler named ``HANDLER_NAME``. Repeated
    calls reconfigure that handler's level and format in place instead of
    adding another, so the CLI and the engine can both call this without
    duplicating output. Handlers installed by other code are left alone.

    Args:
        level: Logging level (e.g., ``logging.DEBUG``). Defaults to INFO.
        json_format: If True, emit structured JSON logs. If False, emit
            human-readable logs.

    Returns:
        The configured ``allowsmoke`` logger.
    """
    logger = logging.getLogger("allowsmoke")
    logger.setLevel(level)

    handler = _own_handler(logger)
    if handler is None:
        handler = _StderrHandler()
        handler.set_name(HANDLER_NAME)
        logger.addHandler(handler)

    handler.setLevel(level)
    handler.setFormatter(_make_formatter(json_format))

    # Keep output off the root logger
    logger.propagate = False

    return logger


def get_logger(name: str) -> logging.Logger:
    """Return a child logger under the ``allowsmoke`` namespace.

    ``get_logger("engine.session")`` returns
    ``logging.getLogger("allowsmoke.engine.session")``.
    """
    return logging.getLogger(f"allowsmoke.{name}")
