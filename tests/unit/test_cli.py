"""Tests for the regionguard CLI commands."""
from __future__ import annotations

import json
import textwrap
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from click.testing import CliRunner

from regionguard.cli.main import cli
from regionguard.grants.store import JsonFileGrantStore


def _box(name: str, min_lat: float, min_lng: float, max_lat: float, max_lng: float) -> dict[str, object]:
    ring = [[min_lng, min_lat], [max_lng, min_lat], [max_lng, max_lat], [min_lng, max_lat], [min_lng, min_lat]]
    return {"type": "Feature", "properties": {"ST_NM": name}, "geometry": {"type": "Polygon", "coordinates": [ring]}}


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def config_path(tmp_path: Path) -> Path:
    (tmp_path / "states.geojson").write_text(
        json.dumps(
            {
                "type": "FeatureCollection",
                "features": [
                    _box("Maharashtra", 15.6, 72.6, 21.0, 80.9),
                    _box("Gujarat", 21.5, 68.5, 24.5, 74.5),
                ],
            }
        ),
        encoding="utf-8",
    )
    (tmp_path / "permissions.yaml").write_text(
        'version: "1.0"\nsubjects:\n  u-1:\n    - pattern: "gis.*.use"\n      effect: grant\n',
        encoding="utf-8",
    )
    store = JsonFileGrantStore(tmp_path / "grants.json")
    store.grant_permanent("u-1", "Maharashtra", granted_by="admin")
    path = tmp_path / "regionguard.yaml"
    path.write_text(
        textwrap.dedent(
            """\
            regions:
              boundary_path: states.geojson
            grants:
              store_path: grants.json
            permissions:
              rules_path: permissions.yaml
            audit:
              log_path: audit.jsonl
            """
        ),
        encoding="utf-8",
    )
    return path


# ---------------------------------------------------------------------------
# version / locate
# ---------------------------------------------------------------------------


class TestVersionAndLocate:
    def test_version(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["version"])
        assert result.exit_code == 0
        assert "regionguard" in result.output

    def test_locate_exact(self, runner: CliRunner, config_path: Path) -> None:
        result = runner.invoke(cli, ["locate", "--lat", "19.07", "--lng", "72.87", "-c", str(config_path)])
        assert result.exit_code == 0
        assert "Maharashtra" in result.output
        assert "exact" in result.output

    def test_locate_undetermined(self, runner: CliRunner, config_path: Path) -> None:
        result = runner.invoke(cli, ["locate", "--lat", "0", "--lng", "0", "-c", str(config_path)])
        assert result.exit_code == 1
        assert "UNDETERMINED" in result.output

    def test_locate_invalid_coordinate(self, runner: CliRunner, config_path: Path) -> None:
        result = runner.invoke(cli, ["locate", "--lat", "95", "--lng", "0", "-c", str(config_path)])
        assert result.exit_code == 2

    def test_bad_config(self, runner: CliRunner, tmp_path: Path) -> None:
        bad = tmp_path / "regionguard.yaml"
        bad.write_text("log_level: chatty\n", encoding="utf-8")
        result = runner.invoke(cli, ["locate", "--lat", "19", "--lng", "73", "-c", str(bad)])
        assert result.exit_code == 2

    def test_missing_boundary_dataset(self, runner: CliRunner, tmp_path: Path) -> None:
        cfg = tmp_path / "regionguard.yaml"
        cfg.write_text("regions:\n  boundary_path: missing.geojson\n", encoding="utf-8")
        result = runner.invoke(cli, ["locate", "--lat", "19", "--lng", "73", "-c", str(cfg)])
        assert result.exit_code == 2


# ---------------------------------------------------------------------------
# check-region / check-permission
# ---------------------------------------------------------------------------


class TestChecks:
    def test_region_allowed(self, runner: CliRunner, config_path: Path) -> None:
        result = runner.invoke(
            cli, ["check-region", "-s", "u-1", "--lat", "19.07", "--lng", "72.87", "-c", str(config_path)]
        )
        assert result.exit_code == 0
        assert "ALLOWED" in result.output

    def test_region_denied(self, runner: CliRunner, config_path: Path) -> None:
        result = runner.invoke(
            cli, ["check-region", "-s", "u-1", "--lat", "23.02", "--lng", "72.57", "-c", str(config_path)]
        )
        assert result.exit_code == 1
        assert "DENIED" in result.output
        assert "region_not_authorized" in result.output

    def test_region_admin(self, runner: CliRunner, config_path: Path) -> None:
        result = runner.invoke(
            cli,
            ["check-region", "-s", "root", "--admin", "--lat", "23.02", "--lng", "72.57", "-c", str(config_path)],
        )
        assert result.exit_code == 0

    def test_permission_allowed(self, runner: CliRunner, config_path: Path) -> None:
        result = runner.invoke(cli, ["check-permission", "gis.distance.use", "-s", "u-1", "-c", str(config_path)])
        assert result.exit_code == 0
        assert "ALLOWED" in result.output

    def test_permission_no_rule(self, runner: CliRunner, config_path: Path) -> None:
        result = runner.invoke(cli, ["check-permission", "data.export", "-s", "u-1", "-c", str(config_path)])
        assert result.exit_code == 1
        assert "no_rule" in result.output

    def test_invalid_context_json(self, runner: CliRunner, config_path: Path) -> None:
        result = runner.invoke(
            cli, ["check-permission", "gis.distance.use", "-s", "u-1", "--context", "{oops", "-c", str(config_path)]
        )
        assert result.exit_code == 2

    def test_context_must_be_object(self, runner: CliRunner, config_path: Path) -> None:
        result = runner.invoke(
            cli, ["check-permission", "gis.distance.use", "-s", "u-1", "--context", "[1, 2]", "-c", str(config_path)]
        )
        assert result.exit_code == 2


# ---------------------------------------------------------------------------
# audit
# ---------------------------------------------------------------------------


class TestAuditCommands:
    def test_show_empty(self, runner: CliRunner, config_path: Path) -> None:
        result = runner.invoke(cli, ["audit", "show", "-c", str(config_path)])
        assert result.exit_code == 0
        assert "No audit entries found" in result.output

    def test_show_after_check(self, runner: CliRunner, config_path: Path) -> None:
        runner.invoke(cli, ["check-region", "-s", "u-1", "--lat", "19.07", "--lng", "72.87", "-c", str(config_path)])
        result = runner.invoke(cli, ["audit", "show", "-c", str(config_path)])
        assert result.exit_code == 0
        assert "u-1" in result.output

    def test_show_denied_only(self, runner: CliRunner, config_path: Path) -> None:
        runner.invoke(cli, ["check-region", "-s", "u-1", "--lat", "19.07", "--lng", "72.87", "-c", str(config_path)])
        result = runner.invoke(cli, ["audit", "show", "--denied", "-c", str(config_path)])
        assert "No audit entries found" in result.output

    def test_export_json(self, runner: CliRunner, config_path: Path, tmp_path: Path) -> None:
        runner.invoke(cli, ["check-region", "-s", "u-1", "--lat", "23.02", "--lng", "72.57", "-c", str(config_path)])
        out = tmp_path / "export" / "audit.json"
        result = runner.invoke(cli, ["audit", "export", "-f", "json", "-o", str(out), "-c", str(config_path)])
        assert result.exit_code == 0
        assert "Exported" in result.output
        records = json.loads(out.read_text(encoding="utf-8"))
        assert len(records) == 1
        assert records[0]["event_type"] == "REGION_ACCESS_DENIED"

    def test_export_csv(self, runner: CliRunner, config_path: Path, tmp_path: Path) -> None:
        runner.invoke(cli, ["check-region", "-s", "u-1", "--lat", "19.07", "--lng", "72.87", "-c", str(config_path)])
        out = tmp_path / "audit.csv"
        result = runner.invoke(cli, ["audit", "export", "-o", str(out), "-c", str(config_path)])
        assert result.exit_code == 0
        assert "REGION_ACCESS_GRANTED" in out.read_text(encoding="utf-8")


# ---------------------------------------------------------------------------
# grants
# ---------------------------------------------------------------------------


class TestGrantCommands:
    def test_list(self, runner: CliRunner, config_path: Path) -> None:
        result = runner.invoke(cli, ["grants", "list", "-c", str(config_path)])
        assert result.exit_code == 0
        assert "Maharashtra" in result.output

    def test_list_other_subject(self, runner: CliRunner, config_path: Path) -> None:
        result = runner.invoke(cli, ["grants", "list", "-s", "u-2", "-c", str(config_path)])
        assert result.exit_code == 0
        assert "No grants found" in result.output

    def test_sweep(self, runner: CliRunner, config_path: Path) -> None:
        past = datetime.now(tz=timezone.utc) - timedelta(days=1)
        store = JsonFileGrantStore(config_path.parent / "grants.json")
        store.grant_temporary("u-1", "Gujarat", expires_at=past + timedelta(hours=1), now=past)
        result = runner.invoke(cli, ["grants", "sweep", "-c", str(config_path)])
        assert result.exit_code == 0
        assert "Swept" in result.output
        assert "1 expired" in result.output
        assert len(JsonFileGrantStore(config_path.parent / "grants.json").all_grants()) == 1
