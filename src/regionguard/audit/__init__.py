"""Audit trail package for regionguard.

Provides the bounded in-memory audit emitter, durable JSONL sink, query
filters, statistics and CSV/JSON export.
"""
from __future__ import annotations

from regionguard.audit.emitter import AuditEmitter
from regionguard.audit.events import (
    AuditEvent,
    AuditEventType,
    AuditFilter,
    AuditSeverity,
    AuditStats,
)
from regionguard.audit.exporter import AuditExporter
from regionguard.audit.sink import AuditSink, JsonlAuditSink

__all__ = [
    "AuditEmitter",
    "AuditEvent",
    "AuditEventType",
    "AuditExporter",
    "AuditFilter",
    "AuditSeverity",
    "AuditSink",
    "AuditStats",
    "JsonlAuditSink",
]
