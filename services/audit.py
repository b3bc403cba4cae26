"""
Audit log helper.

Every authentication attempt and outcome is reported here as a structured
event. Emitting is fire-and-forget: a failing sink is logged locally and
never turns an authentication outcome into an error.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict

from utils.logging_setup import AUDIT_LOGGER_NAME

log = logging.getLogger(__name__)

SEVERITY_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}


@dataclass(frozen=True)
class AuditEvent:
    event: str
    message: str
    severity: str = "info"
    fields: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def reason(self) -> str | None:
        return self.fields.get("reason")

    def to_dict(self) -> Dict[str, Any]:
        d = {"event": self.event, "severity": self.severity, "timestamp": self.timestamp.isoformat()}
        d.update(self.fields)
        return d


class AuditLog:
    """
    Structured security event sink backed by the audit logger.

    Subclasses override write() to ship events elsewhere; emit() is the only
    entry point the session core uses.
    """

    def __init__(self, logger: logging.Logger | None = None):
        self.logger = logger or logging.getLogger(AUDIT_LOGGER_NAME)

    def emit(self, event: str, message: str, severity: str = "info", **fields: Any) -> None:
        try:
            self.write(AuditEvent(event=event, message=message, severity=severity, fields=fields))
        except Exception:
            log.exception("Audit write failed for event %s", event)

    def write(self, entry: AuditEvent) -> None:
        level = SEVERITY_LEVELS.get(entry.severity, logging.INFO)
        self.logger.log(level, entry.message, extra=entry.to_dict())
