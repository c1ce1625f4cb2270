"""Tests for PermissionLoader (YAML and dict rule documents)."""
from __future__ import annotations

import pathlib
from datetime import time

import pytest

from regionguard.errors import PermissionConfigError
from regionguard.identity import Subject
from regionguard.permissions.conditions import TimeWindowCondition
from regionguard.permissions.loader import PermissionLoader
from regionguard.permissions.rules import PermissionRuleBook

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

_VALID_CONFIG: dict[str, object] = {
    "version": "1.0",
    "subjects": {
        "u-1": [{"id": "u1-gis", "pattern": "gis.*.use", "effect": "grant"}],
    },
    "groups": {
        "field": [{"pattern": "gis.distance.delete.any", "effect": "deny"}],
        "night": [{"pattern": "data.export", "effect": "grant"}],
    },
    "roles": {
        "Auditor": [{"pattern": "audit.*", "effect": "grant"}],
    },
    "inactive_groups": ["night"],
}

_YAML = """
version: "1.0"
groups:
  office:
    - pattern: "data.export"
      effect: grant
      conditions:
        - type: time_window
          start: 9:00
          end: 18:00
          weekdays: [0, 1, 2, 3, 4]
          tz: Asia/Kolkata
"""


@pytest.fixture()
def loader() -> PermissionLoader:
    return PermissionLoader()


@pytest.fixture()
def strict_loader() -> PermissionLoader:
    return PermissionLoader(strict=True)


# ---------------------------------------------------------------------------
# load_from_dict
# ---------------------------------------------------------------------------


class TestPermissionLoaderFromDict:
    def test_returns_rule_book(self, loader: PermissionLoader) -> None:
        assert isinstance(loader.load_from_dict(_VALID_CONFIG), PermissionRuleBook)

    def test_rule_count(self, loader: PermissionLoader) -> None:
        assert len(loader.load_from_dict(_VALID_CONFIG)) == 4

    def test_explicit_rule_id(self, loader: PermissionLoader) -> None:
        book = loader.load_from_dict(_VALID_CONFIG)
        assert book.rules_for(Subject("u-1"))[0].rule_id == "u1-gis"

    def test_group_origin(self, loader: PermissionLoader) -> None:
        book = loader.load_from_dict(_VALID_CONFIG)
        rules = book.rules_for(Subject("u-9", groups=("field",)))
        assert rules[0].origin == "group:field"

    def test_inactive_groups_applied(self, loader: PermissionLoader) -> None:
        book = loader.load_from_dict(_VALID_CONFIG)
        assert book.rules_for(Subject("u-9", groups=("night",))) == []

    def test_role_rules(self, loader: PermissionLoader) -> None:
        book = loader.load_from_dict(_VALID_CONFIG)
        assert book.rules_for(Subject("u-9", role="Auditor"))[0].pattern.text == "audit.*"

    def test_role_defaults_flag(self) -> None:
        book = PermissionLoader(use_role_defaults=True).load_from_dict({"version": "1"})
        assert len(book.rules_for(Subject("u-9", role="User"))) > 0

    def test_empty_config(self, loader: PermissionLoader) -> None:
        assert len(loader.load_from_dict({})) == 0


class TestPermissionLoaderErrors:
    def test_unsupported_version(self, loader: PermissionLoader) -> None:
        with pytest.raises(PermissionConfigError, match="Unsupported"):
            loader.load_from_dict({"version": "2.0"})

    def test_section_must_be_mapping(self, loader: PermissionLoader) -> None:
        with pytest.raises(PermissionConfigError):
            loader.load_from_dict({"subjects": ["u-1"]})

    def test_rules_must_be_list(self, loader: PermissionLoader) -> None:
        with pytest.raises(PermissionConfigError, match="subjects.u-1"):
            loader.load_from_dict({"subjects": {"u-1": {"pattern": "gis.*"}}})

    def test_bad_rule_reports_position(self, loader: PermissionLoader) -> None:
        config = {"groups": {"field": [{"pattern": "gis.*"}, {"pattern": "gis.dist*"}]}}
        with pytest.raises(PermissionConfigError, match=r"groups.field\[1\]"):
            loader.load_from_dict(config)

    def test_bad_condition(self, loader: PermissionLoader) -> None:
        config = {"subjects": {"u-1": [{"pattern": "gis.*", "conditions": [{"type": "moon_phase"}]}]}}
        with pytest.raises(PermissionConfigError):
            loader.load_from_dict(config)

    def test_inactive_groups_must_be_list(self, loader: PermissionLoader) -> None:
        with pytest.raises(PermissionConfigError, match="inactive_groups"):
            loader.load_from_dict({"version": "1.0", "inactive_groups": "night"})

    def test_strict_rejects_unknown_keys(self, strict_loader: PermissionLoader) -> None:
        with pytest.raises(PermissionConfigError, match="Unknown top-level"):
            strict_loader.load_from_dict({"version": "1.0", "policies": []})

    def test_lenient_ignores_unknown_keys(self, loader: PermissionLoader) -> None:
        assert len(loader.load_from_dict({"version": "1.0", "policies": []})) == 0

    def test_error_is_value_error(self, loader: PermissionLoader) -> None:
        with pytest.raises(ValueError):
            loader.load_from_dict({"version": "9"})


# ---------------------------------------------------------------------------
# YAML
# ---------------------------------------------------------------------------


class TestPermissionLoaderYaml:
    def test_unquoted_times(self, loader: PermissionLoader) -> None:
        book = loader.load_from_yaml_string(_YAML)
        condition = book.rules_for(Subject("u-1", groups=("office",)))[0].conditions[0]
        assert isinstance(condition, TimeWindowCondition)
        assert (condition.start, condition.end) == (time(9, 0), time(18, 0))
        assert condition.tz == "Asia/Kolkata"

    def test_invalid_yaml(self, loader: PermissionLoader) -> None:
        with pytest.raises(PermissionConfigError):
            loader.load_from_yaml_string("subjects: [unclosed")

    def test_non_mapping_yaml(self, loader: PermissionLoader) -> None:
        with pytest.raises(PermissionConfigError, match="mapping"):
            loader.load_from_yaml_string("- a\n- b\n")

    def test_load_file(self, tmp_path: pathlib.Path, loader: PermissionLoader) -> None:
        path = tmp_path / "permissions.yaml"
        path.write_text(_YAML, encoding="utf-8")
        assert len(loader.load(path)) == 1

    def test_load_missing_file(self, tmp_path: pathlib.Path, loader: PermissionLoader) -> None:
        with pytest.raises(FileNotFoundError):
            loader.load(tmp_path / "missing.yaml")

    def test_error_carries_path(self, tmp_path: pathlib.Path, loader: PermissionLoader) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("version: '7'\n", encoding="utf-8")
        with pytest.raises(PermissionConfigError) as exc_info:
            loader.load(path)
        assert exc_info.value.config_path == str(path)
