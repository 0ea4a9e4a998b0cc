"""
Audit events for authorization decisions.

The guard emits one event per decision (allowed or denied). Persisting the
event is the sink's job; the guard never decides where audit data lives.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy.orm import Session, sessionmaker

from permguard.logging_config import AUDIT_LOGGER_NAME
from permguard.models.security import AuditLog

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger(AUDIT_LOGGER_NAME)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class AuditEvent:
    actor_id: str | None
    org_id: str | None
    module: str
    action: str
    allowed: bool
    resource: str | None = None
    target_id: str | None = None
    reason: str | None = None
    timestamp: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> dict[str, object]:
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        return data


class AuditSink(Protocol):
    def emit(self, event: AuditEvent) -> None: ...


class LoggingAuditSink:
    """Writes each event as one structured line on the ``permguard.audit`` logger."""

    def emit(self, event: AuditEvent) -> None:
        audit_logger.info(
            "authz decision=%s actor=%s org=%s module=%s resource=%s action=%s target=%s reason=%s",
            "allow" if event.allowed else "deny",
            event.actor_id,
            event.org_id,
            event.module,
            event.resource,
            event.action,
            event.target_id,
            event.reason,
        )


class SqlAuditSink:
    """
    Persists events to the ``audit_log`` table in their own short transaction.

    A failure to persist is logged and does not change the decision already
    made by the guard.
    """

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def emit(self, event: AuditEvent) -> None:
        try:
            with self._session_factory() as db:
                db.add(
                    AuditLog(
                        actor_id=event.actor_id,
                        org_id=event.org_id,
                        module=event.module,
                        resource=event.resource,
                        action=event.action,
                        target_id=event.target_id,
                        allowed=event.allowed,
                        reason=event.reason,
                        created_at=event.timestamp.replace(tzinfo=None),
                    )
                )
                db.commit()
        except Exception:
            logger.exception("Failed to persist audit event module=%s action=%s", event.module, event.action)


class MemoryAuditSink:
    """Collects events in a list. Handy for tests and for batch tooling."""

    def __init__(self) -> None:
        self.events: list[AuditEvent] = []

    def emit(self, event: AuditEvent) -> None:
        self.events.append(event)
