"""Audit event records, filters and aggregate statistics.

Events are immutable.  The decision engine creates one per authorization
call; the access control service adds one per grant administration call.

Example
-------
>>> event = AuditEvent.create(
...     subject="u-1",
...     event_type=AuditEventType.REGION_ACCESS_DENIED,
...     success=False,
...     reason="You don't have access to Gujarat",
...     region="Gujarat",
... )
>>> event.severity
<AuditSeverity.WARNING: 'warning'>
"""
from __future__ import annotations

import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class AuditEventType(str, Enum):
    """Kinds of events recorded in the audit trail."""

    REGION_ACCESS_GRANTED = "REGION_ACCESS_GRANTED"
    REGION_ACCESS_DENIED = "REGION_ACCESS_DENIED"
    PERMISSION_GRANTED = "PERMISSION_GRANTED"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    REGION_ASSIGNED = "REGION_ASSIGNED"
    REGION_REVOKED = "REGION_REVOKED"


class AuditSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


_DEFAULT_SEVERITY: dict[AuditEventType, AuditSeverity] = {
    AuditEventType.REGION_ACCESS_GRANTED: AuditSeverity.INFO,
    AuditEventType.REGION_ACCESS_DENIED: AuditSeverity.WARNING,
    AuditEventType.PERMISSION_GRANTED: AuditSeverity.INFO,
    AuditEventType.PERMISSION_DENIED: AuditSeverity.WARNING,
    AuditEventType.REGION_ASSIGNED: AuditSeverity.INFO,
    AuditEventType.REGION_REVOKED: AuditSeverity.WARNING,
}


@dataclass(frozen=True)
class AuditEvent:
    """A single audit trail entry.

    Attributes
    ----------
    event_id:
        Unique identifier.
    timestamp:
        Aware UTC datetime of the decision.
    subject:
        Identifier of the subject the event is about.
    event_type:
        The :class:`AuditEventType`.
    success:
        Whether the action was allowed (or the administrative call
        succeeded).
    reason:
        Human-readable explanation.
    region:
        Region involved, when one was determined.
    severity:
        :class:`AuditSeverity`; derived from the event type by default.
    context:
        Extra string key/value details.
    """

    event_id: str
    timestamp: datetime
    subject: str
    event_type: AuditEventType
    success: bool
    reason: str
    region: str | None = None
    severity: AuditSeverity = AuditSeverity.INFO
    context: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def create(
        cls,
        subject: str,
        event_type: AuditEventType,
        success: bool,
        reason: str,
        region: str | None = None,
        severity: AuditSeverity | None = None,
        context: Mapping[str, object] | None = None,
        timestamp: datetime | None = None,
    ) -> AuditEvent:
        """Build an event with a fresh id and a derived severity."""
        return cls(
            event_id=str(uuid.uuid4()),
            timestamp=timestamp or datetime.now(tz=timezone.utc),
            subject=subject,
            event_type=event_type,
            success=success,
            reason=reason,
            region=region,
            severity=severity or _DEFAULT_SEVERITY[event_type],
            context={str(k): str(v) for k, v in (context or {}).items() if v is not None},
        )

    def to_dict(self) -> dict[str, object]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "event_id": self.event_id,
            "subject": self.subject,
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "region": self.region,
            "success": self.success,
            "reason": self.reason,
            "context": dict(self.context),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> AuditEvent:
        return cls(
            event_id=str(data["event_id"]),
            timestamp=datetime.fromisoformat(str(data["timestamp"])),
            subject=str(data["subject"]),
            event_type=AuditEventType(str(data["event_type"])),
            success=bool(data["success"]),
            reason=str(data.get("reason") or ""),
            region=str(data["region"]) if data.get("region") else None,
            severity=AuditSeverity(str(data.get("severity") or "info")),
            context={str(k): str(v) for k, v in dict(data.get("context") or {}).items()},  # type: ignore[call-overload]
        )


@dataclass(frozen=True)
class AuditFilter:
    """Criteria for selecting audit events.  Unset fields match everything.

    ``region`` matches case-insensitively; ``start`` and ``end`` are
    inclusive bounds on the event timestamp.
    """

    subject: str | None = None
    event_type: AuditEventType | None = None
    severity: AuditSeverity | None = None
    success: bool | None = None
    region: str | None = None
    start: datetime | None = None
    end: datetime | None = None

    def matches(self, event: AuditEvent) -> bool:
        if self.subject is not None and event.subject != self.subject:
            return False
        if self.event_type is not None and event.event_type != self.event_type:
            return False
        if self.severity is not None and event.severity != self.severity:
            return False
        if self.success is not None and event.success != self.success:
            return False
        if self.region is not None and (event.region or "").casefold() != self.region.casefold():
            return False
        if self.start is not None and event.timestamp < self.start:
            return False
        if self.end is not None and event.timestamp > self.end:
            return False
        return True


@dataclass(frozen=True)
class AuditStats:
    """Aggregate counts over a set of audit events."""

    total: int = 0
    successful: int = 0
    failed: int = 0
    by_type: dict[str, int] = field(default_factory=dict)
    by_region: dict[str, int] = field(default_factory=dict)
    by_subject: dict[str, int] = field(default_factory=dict)


__all__ = [
    "AuditEvent",
    "AuditEventType",
    "AuditFilter",
    "AuditSeverity",
    "AuditStats",
]
