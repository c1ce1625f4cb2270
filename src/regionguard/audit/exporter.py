"""Audit event export to CSV and JSON.

The CSV layout has a fixed column set so exports from different periods
line up; the ``context`` mapping is JSON-encoded into a single column.

Example
-------
>>> from pathlib import Path
>>> exporter = AuditExporter(emitter)
>>> exporter.to_csv(Path("/tmp/audit_export.csv"))
>>> exporter.to_json(Path("/tmp/audit_export.json"), AuditFilter(success=False))
"""
from __future__ import annotations

import csv
import io
import json
from collections.abc import Iterable
from pathlib import Path
from typing import TYPE_CHECKING

from regionguard.audit.events import AuditEvent, AuditFilter

if TYPE_CHECKING:
    from regionguard.audit.emitter import AuditEmitter

CSV_COLUMNS: tuple[str, ...] = (
    "timestamp",
    "event_id",
    "subject",
    "event_type",
    "severity",
    "region",
    "success",
    "reason",
    "context",
)


def events_to_csv(events: Iterable[AuditEvent]) -> bytes:
    """Render *events* as UTF-8 CSV with a header row."""
    buffer = io.StringIO(newline="")
    writer = csv.DictWriter(buffer, fieldnames=list(CSV_COLUMNS), extrasaction="ignore")
    writer.writeheader()
    for event in events:
        row = event.to_dict()
        row["region"] = row["region"] or ""
        row["success"] = "true" if event.success else "false"
        row["context"] = json.dumps(row["context"], sort_keys=True)
        writer.writerow(row)
    return buffer.getvalue().encode("utf-8")


def events_to_json(events: Iterable[AuditEvent], indent: int | None = 2) -> str:
    """Render *events* as a JSON array."""
    return json.dumps([event.to_dict() for event in events], indent=indent, default=str)


class AuditExporter:
    """Writes the events held by an :class:`AuditEmitter` to files.

    Parameters
    ----------
    emitter:
        The emitter whose in-memory events are exported.
    """

    def __init__(self, emitter: AuditEmitter) -> None:
        self._emitter = emitter

    def to_csv(self, output_path: Path, audit_filter: AuditFilter | None = None) -> int:
        """Export matching events to a CSV file.

        Returns
        -------
        int
            Number of events written.
        """
        events = self._emitter.query(audit_filter)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_bytes(events_to_csv(events))
        return len(events)

    def to_json(self, output_path: Path, audit_filter: AuditFilter | None = None, indent: int = 2) -> int:
        """Export matching events to a JSON array file."""
        events = self._emitter.query(audit_filter)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(events_to_json(events, indent=indent), encoding="utf-8")
        return len(events)


__all__ = ["AuditExporter", "CSV_COLUMNS", "events_to_csv", "events_to_json"]
