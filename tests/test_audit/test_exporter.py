"""Tests for CSV / JSON audit export."""
from __future__ import annotations

import csv
import io
import json
from pathlib import Path

from regionguard.audit.emitter import AuditEmitter
from regionguard.audit.events import AuditEvent, AuditEventType, AuditFilter
from regionguard.audit.exporter import CSV_COLUMNS, AuditExporter, events_to_csv, events_to_json


def _events() -> list[AuditEvent]:
    return [
        AuditEvent.create("u-1", AuditEventType.REGION_ACCESS_GRANTED, True, "Access granted to Goa", region="Goa"),
        AuditEvent.create(
            "u-2",
            AuditEventType.PERMISSION_DENIED,
            False,
            "no applicable rule",
            context={"permission": "data.export"},
        ),
    ]


class TestEventsToCsv:
    def test_header_and_rows(self) -> None:
        rows = list(csv.DictReader(io.StringIO(events_to_csv(_events()).decode("utf-8"))))
        assert len(rows) == 2
        assert tuple(rows[0].keys()) == CSV_COLUMNS

    def test_field_rendering(self) -> None:
        rows = list(csv.DictReader(io.StringIO(events_to_csv(_events()).decode("utf-8"))))
        assert rows[0]["success"] == "true"
        assert rows[1]["success"] == "false"
        assert rows[1]["region"] == ""
        assert json.loads(rows[1]["context"]) == {"permission": "data.export"}

    def test_empty(self) -> None:
        assert events_to_csv([]).decode("utf-8").strip() == ",".join(CSV_COLUMNS)


class TestEventsToJson:
    def test_array(self) -> None:
        data = json.loads(events_to_json(_events()))
        assert [item["subject"] for item in data] == ["u-1", "u-2"]
        assert data[0]["event_type"] == "REGION_ACCESS_GRANTED"


class TestAuditExporter:
    def test_to_csv_file(self, tmp_path: Path) -> None:
        emitter = AuditEmitter()
        for event in _events():
            emitter.record(event)
        count = AuditExporter(emitter).to_csv(tmp_path / "out" / "audit.csv")
        assert count == 2
        assert (tmp_path / "out" / "audit.csv").exists()

    def test_to_json_filtered(self, tmp_path: Path) -> None:
        emitter = AuditEmitter()
        for event in _events():
            emitter.record(event)
        path = tmp_path / "denied.json"
        count = AuditExporter(emitter).to_json(path, AuditFilter(success=False))
        assert count == 1
        assert json.loads(path.read_text(encoding="utf-8"))[0]["subject"] == "u-2"
