"""YAML-based permission rule loader.

PermissionLoader reads permission rule documents and builds
:class:`PermissionRuleBook` instances.

Schema
------
::

    version: "1.0"
    subjects:
      u-1:
        - id: "u1-gis"
          pattern: "gis.*.use"
          effect: grant
    groups:
      field-north:
        - pattern: "gis.distance.delete.any"
          effect: deny
          conditions:
            - type: time_window
              start: "09:00"
              end: "18:00"
              weekdays: [0, 1, 2, 3, 4]
              tz: "Asia/Kolkata"
    roles:
      Auditor:
        - pattern: "audit.*"
          effect: grant

Example
-------
::

    loader = PermissionLoader()
    book = loader.load("/path/to/permissions.yaml")
"""
from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path

import yaml

from regionguard.errors import PermissionConfigError
from regionguard.permissions.rules import PermissionRule, PermissionRuleBook

logger = logging.getLogger(__name__)

_SUPPORTED_VERSIONS: frozenset[str] = frozenset(["1.0", "1"])


class PermissionLoader:
    """Loads PermissionRuleBook configurations from YAML files or dicts.

    Parameters
    ----------
    strict:
        When ``True``, unknown top-level keys are treated as an error.
    use_role_defaults:
        Passed to every :class:`PermissionRuleBook` the loader creates.
    """

    _KNOWN_TOP_KEYS: frozenset[str] = frozenset(
        ["version", "subjects", "groups", "roles", "inactive_groups", "metadata", "description"]
    )

    def __init__(self, strict: bool = False, use_role_defaults: bool = False) -> None:
        self._strict = strict
        self._use_role_defaults = use_role_defaults

    def load(self, config_path: str | Path) -> PermissionRuleBook:
        """Load a rule book from a YAML file on disk.

        Raises
        ------
        PermissionConfigError
            If the file cannot be read, parsed, or is structurally invalid.
        FileNotFoundError
            If the config file does not exist.
        """
        config_path = Path(config_path)
        if not config_path.exists():
            raise FileNotFoundError(f"Permission config not found: {config_path}")

        try:
            with config_path.open("r", encoding="utf-8") as fh:
                raw = yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise PermissionConfigError(f"Failed to parse YAML: {exc}", str(config_path)) from exc

        return self._build(raw, config_path=str(config_path))

    def load_from_dict(self, config: Mapping[str, object], config_path: str | None = None) -> PermissionRuleBook:
        return self._build(config, config_path=config_path)

    def load_from_yaml_string(self, yaml_string: str, config_path: str | None = None) -> PermissionRuleBook:
        try:
            raw = yaml.safe_load(yaml_string) or {}
        except yaml.YAMLError as exc:
            raise PermissionConfigError(f"Failed to parse YAML string: {exc}", config_path) from exc
        return self._build(raw, config_path=config_path)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _build(self, raw: object, config_path: str | None = None) -> PermissionRuleBook:
        if not isinstance(raw, Mapping):
            raise PermissionConfigError("Permission config must be a YAML mapping (dict).", config_path)
        if self._strict:
            unknown = set(raw) - self._KNOWN_TOP_KEYS
            if unknown:
                raise PermissionConfigError(f"Unknown top-level keys: {sorted(unknown)}.", config_path)

        version = str(raw.get("version", "1.0"))
        if version not in _SUPPORTED_VERSIONS:
            raise PermissionConfigError(
                f"Unsupported config version {version!r}. Supported: {sorted(_SUPPORTED_VERSIONS)}.",
                config_path,
            )

        book = PermissionRuleBook(use_role_defaults=self._use_role_defaults)
        for owner, rules in self._sections(raw, "subjects", config_path):
            book.add_subject_rules(owner, self._rules(rules, "direct", f"subjects.{owner}", config_path))
        for owner, rules in self._sections(raw, "groups", config_path):
            book.add_group_rules(owner, self._rules(rules, f"group:{owner}", f"groups.{owner}", config_path))
        for owner, rules in self._sections(raw, "roles", config_path):
            book.set_role_rules(owner, self._rules(rules, f"role:{owner}", f"roles.{owner}", config_path))
        inactive = raw.get("inactive_groups") or []
        if not isinstance(inactive, list):
            raise PermissionConfigError("'inactive_groups' must be a list of group ids.", config_path)
        for group_id in inactive:
            book.set_group_active(str(group_id), False)

        logger.info("Loaded %d permission rules from %s", len(book), config_path or "<dict>")
        return book

    def _sections(self, raw: Mapping[str, object], key: str, config_path: str | None) -> list[tuple[str, object]]:
        section = raw.get(key) or {}
        if not isinstance(section, Mapping):
            raise PermissionConfigError(f"'{key}' must be a mapping of id to rule list.", config_path)
        return [(str(owner), rules) for owner, rules in section.items()]

    def _rules(self, raw_rules: object, origin: str, where: str, config_path: str | None) -> list[PermissionRule]:
        if not isinstance(raw_rules, list):
            raise PermissionConfigError(f"'{where}' must be a list of rules.", config_path)
        rules: list[PermissionRule] = []
        for index, raw_rule in enumerate(raw_rules):
            if not isinstance(raw_rule, Mapping):
                raise PermissionConfigError(f"Rule {where}[{index}] must be a mapping.", config_path)
            try:
                rules.append(PermissionRule.from_dict(raw_rule, origin=origin))
            except (ValueError, KeyError, TypeError) as exc:
                raise PermissionConfigError(f"Error in rule {where}[{index}]: {exc}", config_path) from exc
        return rules


__all__ = ["PermissionLoader"]
