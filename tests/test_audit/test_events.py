"""Tests for AuditEvent construction and AuditFilter matching."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

from regionguard.audit.events import AuditEvent, AuditEventType, AuditFilter, AuditSeverity

NOW = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


def _event(**overrides: object) -> AuditEvent:
    fields: dict[str, object] = {
        "subject": "u-1",
        "event_type": AuditEventType.REGION_ACCESS_DENIED,
        "success": False,
        "reason": "You don't have access to Gujarat",
        "region": "Gujarat",
        "timestamp": NOW,
    }
    fields.update(overrides)
    return AuditEvent.create(**fields)  # type: ignore[arg-type]


class TestAuditEventCreate:
    def test_denial_defaults_to_warning(self) -> None:
        assert _event().severity == AuditSeverity.WARNING

    def test_grant_defaults_to_info(self) -> None:
        event = _event(event_type=AuditEventType.REGION_ACCESS_GRANTED, success=True)
        assert event.severity == AuditSeverity.INFO

    def test_revocation_defaults_to_warning(self) -> None:
        assert _event(event_type=AuditEventType.REGION_REVOKED, success=True).severity == AuditSeverity.WARNING

    def test_explicit_severity(self) -> None:
        assert _event(severity=AuditSeverity.CRITICAL).severity == AuditSeverity.CRITICAL

    def test_context_stringified_and_none_dropped(self) -> None:
        event = _event(context={"lat": 19.07, "actor": None, "exact": True})
        assert event.context == {"lat": "19.07", "exact": "True"}

    def test_unique_ids(self) -> None:
        assert _event().event_id != _event().event_id

    def test_dict_preserves_fields(self) -> None:
        event = _event(context={"permission": "gis.distance.use"})
        assert AuditEvent.from_dict(event.to_dict()) == event


class TestAuditFilter:
    def test_empty_filter_matches(self) -> None:
        assert AuditFilter().matches(_event()) is True

    def test_subject(self) -> None:
        assert AuditFilter(subject="u-2").matches(_event()) is False

    def test_event_type(self) -> None:
        assert AuditFilter(event_type=AuditEventType.REGION_ACCESS_DENIED).matches(_event()) is True
        assert AuditFilter(event_type=AuditEventType.PERMISSION_DENIED).matches(_event()) is False

    def test_success(self) -> None:
        assert AuditFilter(success=True).matches(_event()) is False

    def test_region_case_insensitive(self) -> None:
        assert AuditFilter(region="gujarat").matches(_event()) is True
        assert AuditFilter(region="Goa").matches(_event()) is False

    def test_time_bounds_inclusive(self) -> None:
        assert AuditFilter(start=NOW, end=NOW).matches(_event()) is True
        assert AuditFilter(start=NOW + timedelta(seconds=1)).matches(_event()) is False
        assert AuditFilter(end=NOW - timedelta(seconds=1)).matches(_event()) is False

    def test_severity(self) -> None:
        assert AuditFilter(severity=AuditSeverity.INFO).matches(_event()) is False
