"""
logging setup:
- root handler with a key=value structured formatter
- audit channel routed through a QueueHandler so emitting never blocks
  the request on handler I/O
"""
from __future__ import annotations

import atexit
import logging
import logging.handlers
import queue

AUDIT_LOGGER_NAME = "session_auth.audit"

_RESERVED = set(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}

_audit_listener: logging.handlers.QueueListener | None = None


class StructuredFormatter(logging.Formatter):
    """Appends any `extra=` fields to the line as key=value pairs."""

    def __init__(self):
        super().__init__("%(asctime)s %(levelname)s %(name)s: %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        extras = {k: v for k, v in record.__dict__.items() if k not in _RESERVED}
        if extras:
            line += " " + " ".join(f"{k}={v}" for k, v in sorted(extras.items()))
        return line


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    root.setLevel(level.upper())
    if not any(getattr(h, "_session_auth", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(StructuredFormatter())
        handler._session_auth = True
        root.addHandler(handler)
    _configure_audit_channel()


def _configure_audit_channel() -> None:
    global _audit_listener
    if _audit_listener is not None:
        return

    audit_logger = logging.getLogger(AUDIT_LOGGER_NAME)
    records: queue.SimpleQueue = queue.SimpleQueue()
    sink = logging.StreamHandler()
    sink.setFormatter(StructuredFormatter())

    audit_logger.addHandler(logging.handlers.QueueHandler(records))
    audit_logger.propagate = False

    _audit_listener = logging.handlers.QueueListener(records, sink, respect_handler_level=True)
    _audit_listener.start()
    atexit.register(_audit_listener.stop)
