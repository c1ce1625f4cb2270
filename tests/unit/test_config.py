"""Tests for ConfigLoader and the RegionGuardConfig schema."""
from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from regionguard.config import ConfigLoader, RegionGuardConfig
from regionguard.errors import ConfigError


# ---------------------------------------------------------------------------
# ConfigLoader: defaults
# ---------------------------------------------------------------------------


class TestConfigLoaderDefaults:
    def test_defaults_returns_config(self) -> None:
        assert isinstance(ConfigLoader().defaults(), RegionGuardConfig)

    def test_default_threshold(self) -> None:
        assert ConfigLoader().defaults().regions.fallback_threshold_km == 50.0

    def test_default_sweep_interval(self) -> None:
        assert ConfigLoader().defaults().grants.sweep_interval_seconds == 30.0

    def test_default_audit_retention(self) -> None:
        config = ConfigLoader().defaults()
        assert config.audit.max_events == 10_000
        assert config.audit.log_path is None

    def test_default_paths_unset(self) -> None:
        config = ConfigLoader().defaults()
        assert config.regions.boundary_path is None
        assert config.grants.store_path is None
        assert config.permissions.rules_path is None


# ---------------------------------------------------------------------------
# ConfigLoader: load_string
# ---------------------------------------------------------------------------


class TestConfigLoaderString:
    def test_full_document(self) -> None:
        config = ConfigLoader().load_string(
            textwrap.dedent(
                """\
                log_level: debug
                regions:
                  fallback_threshold_km: 25
                  synonyms:
                    Bombay State: Maharashtra
                grants:
                  sweep_interval_seconds: 5
                  zones:
                    Coast: [Goa, Kerala]
                permissions:
                  use_role_defaults: true
                audit:
                  max_events: 50
                  retry_attempts: 5
                """
            )
        )
        assert config.log_level == "DEBUG"
        assert config.regions.fallback_threshold_km == 25.0
        assert config.regions.synonyms == {"Bombay State": "Maharashtra"}
        assert config.grants.zones == {"Coast": ["Goa", "Kerala"]}
        assert config.permissions.use_role_defaults is True
        assert config.audit.max_events == 50

    def test_empty_string_gives_defaults(self) -> None:
        assert ConfigLoader().load_string("") == RegionGuardConfig()

    def test_unknown_keys_allowed(self) -> None:
        config = ConfigLoader().load_string("future_feature: true\n")
        assert isinstance(config, RegionGuardConfig)

    def test_negative_threshold_rejected(self) -> None:
        with pytest.raises(ConfigError):
            ConfigLoader().load_string("regions:\n  fallback_threshold_km: -1\n")

    def test_zero_interval_rejected(self) -> None:
        with pytest.raises(ConfigError):
            ConfigLoader().load_string("grants:\n  sweep_interval_seconds: 0\n")

    def test_empty_zone_rejected(self) -> None:
        with pytest.raises(ConfigError, match="Empty"):
            ConfigLoader().load_string("grants:\n  zones:\n    Empty: []\n")

    def test_bad_log_level(self) -> None:
        with pytest.raises(ConfigError):
            ConfigLoader().load_string("log_level: chatty\n")

    def test_invalid_yaml(self) -> None:
        with pytest.raises(ConfigError, match="parse"):
            ConfigLoader().load_string("regions: [unclosed")

    def test_non_mapping(self) -> None:
        with pytest.raises(ConfigError, match="mapping"):
            ConfigLoader().load_string("- one\n- two\n")

    def test_config_error_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            ConfigLoader().load_string("audit:\n  max_events: 0\n")


# ---------------------------------------------------------------------------
# ConfigLoader: load (file)
# ---------------------------------------------------------------------------


class TestConfigLoaderFile:
    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            ConfigLoader().load(tmp_path / "regionguard.yaml")

    def test_relative_paths_resolved(self, tmp_path: Path) -> None:
        path = tmp_path / "regionguard.yaml"
        path.write_text(
            "regions:\n  boundary_path: data/states.geojson\n"
            "grants:\n  store_path: /var/lib/grants.json\n"
            "audit:\n  log_path: audit.jsonl\n",
            encoding="utf-8",
        )
        config = ConfigLoader().load(path)
        assert config.regions.boundary_path == tmp_path / "data" / "states.geojson"
        assert config.grants.store_path == Path("/var/lib/grants.json")
        assert config.audit.log_path == tmp_path / "audit.jsonl"

    def test_error_carries_path(self, tmp_path: Path) -> None:
        path = tmp_path / "regionguard.yaml"
        path.write_text("audit:\n  queue_size: -5\n", encoding="utf-8")
        with pytest.raises(ConfigError) as exc_info:
            ConfigLoader().load(path)
        assert exc_info.value.config_path == str(path)
