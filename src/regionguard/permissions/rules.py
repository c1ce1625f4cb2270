"""Permission rules and the per-subject / per-group / per-role rule book.

A :class:`PermissionRule` pairs a compiled wildcard pattern with an effect
(grant or deny) and optional conditions.  :class:`PermissionRuleBook`
collects the rules that apply to a subject:

1. direct rules attached to the subject,
2. rules inherited from each *active* group in ``Subject.groups``,
3. role default rules for ``Subject.role`` (when enabled).

The resolver evaluates all of them together; the order only affects which
rule is reported when several match with the same outcome.

Example
-------
::

    book = PermissionRuleBook()
    book.add_subject_rules("u-1", [PermissionRule.grant("gis.*.use")])
    book.add_group_rules("field", [PermissionRule.deny("gis.distance.delete.any")])
    rules = book.rules_for(Subject("u-1", groups=("field",)))
"""
from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum

from regionguard.identity import Subject
from regionguard.permissions.conditions import ConditionContext, PermissionCondition, build_condition
from regionguard.permissions.pattern import PermissionPattern

logger = logging.getLogger(__name__)


class RuleEffect(str, Enum):
    GRANT = "grant"
    DENY = "deny"


# ---------------------------------------------------------------------------
# PermissionRule
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PermissionRule:
    """A single grant or deny rule.

    Attributes
    ----------
    pattern:
        Compiled permission pattern.
    effect:
        :class:`RuleEffect` applied when the pattern matches and every
        condition holds.
    conditions:
        Conditions that must all hold for the rule to apply.
    rule_id:
        Identifier reported in decisions and audit events.
    origin:
        ``"direct"``, ``"group:<id>"`` or ``"role:<name>"``.
    """

    pattern: PermissionPattern
    effect: RuleEffect = RuleEffect.GRANT
    conditions: tuple[PermissionCondition, ...] = field(default_factory=tuple)
    rule_id: str = ""
    origin: str = "direct"

    def __post_init__(self) -> None:
        object.__setattr__(self, "effect", RuleEffect(self.effect))
        object.__setattr__(self, "conditions", tuple(self.conditions))
        if not self.rule_id:
            object.__setattr__(self, "rule_id", f"{self.origin}:{self.effect.value}:{self.pattern.text}")

    @classmethod
    def grant(cls, pattern: str, conditions: Sequence[PermissionCondition] = (), rule_id: str = "", origin: str = "direct") -> PermissionRule:
        return cls(PermissionPattern.compile(pattern), RuleEffect.GRANT, tuple(conditions), rule_id, origin)

    @classmethod
    def deny(cls, pattern: str, conditions: Sequence[PermissionCondition] = (), rule_id: str = "", origin: str = "direct") -> PermissionRule:
        return cls(PermissionPattern.compile(pattern), RuleEffect.DENY, tuple(conditions), rule_id, origin)

    @classmethod
    def from_dict(cls, data: Mapping[str, object], origin: str = "direct") -> PermissionRule:
        """Build a rule from a config mapping.

        Expected keys: ``pattern`` (required), ``effect`` (``grant`` or
        ``deny``, default ``grant``), ``id`` and ``conditions`` (list of
        condition mappings).

        Raises
        ------
        KeyError
            If ``pattern`` is missing.
        ValueError
            If the effect, pattern or a condition is invalid.
        """
        pattern = PermissionPattern.compile(str(data["pattern"]))
        effect = RuleEffect(str(data.get("effect", "grant")).lower())
        raw_conditions = data.get("conditions") or []
        if not isinstance(raw_conditions, list):
            raise ValueError("'conditions' must be a list.")
        conditions = tuple(build_condition(c) for c in raw_conditions)
        return cls(pattern, effect, conditions, str(data.get("id") or ""), origin)

    def matches(self, permission_id: str) -> bool:
        return self.pattern.matches(permission_id)

    def first_failed_condition(self, ctx: ConditionContext) -> PermissionCondition | None:
        """Return the first condition that does not hold, or ``None``."""
        for condition in self.conditions:
            if not condition.evaluate(ctx):
                return condition
        return None


# ---------------------------------------------------------------------------
# Role defaults
# ---------------------------------------------------------------------------

_GIS_TOOLS = ("distance", "polygon", "circle", "elevation", "infrastructure")

DEFAULT_ROLE_PERMISSIONS: dict[str, tuple[str, ...]] = {
    "Manager": (
        *(f"gis.{tool}.{action}" for tool in _GIS_TOOLS for action in ("use", "save", "delete.any")),
        "gis.infrastructure.import",
        "data.view.all",
        "data.edit.all",
        "data.delete.all",
        "data.export",
        "users.view",
        "users.edit",
        "users.assign_regions",
        "users.assign_groups",
        "groups.view",
        "settings.view",
        "settings.boundary.edit",
        "settings.map.edit",
        "search.use",
        "search.history.view",
        "bookmarks.create",
    ),
    "Technician": (
        *(f"gis.{tool}.{action}" for tool in _GIS_TOOLS for action in ("use", "save", "delete.own")),
        "data.view.own",
        "data.edit.own",
        "data.delete.own",
        "settings.view",
        "search.use",
        "bookmarks.create",
    ),
    "User": (
        "gis.distance.use",
        "gis.polygon.use",
        "gis.circle.use",
        "data.view.own",
        "search.use",
    ),
}


def role_default_rules(role: str, permissions: Iterable[str]) -> list[PermissionRule]:
    origin = f"role:{role}"
    return [PermissionRule.grant(p, origin=origin, rule_id=f"{origin}:{p}") for p in permissions]


# ---------------------------------------------------------------------------
# PermissionRuleBook
# ---------------------------------------------------------------------------


class PermissionRuleBook:
    """Thread-safe registry of direct, group and role rules.

    Parameters
    ----------
    use_role_defaults:
        When ``True`` the :data:`DEFAULT_ROLE_PERMISSIONS` are installed as
        role rules.
    """

    def __init__(self, use_role_defaults: bool = False) -> None:
        self._lock = threading.Lock()
        self._subject_rules: dict[str, tuple[PermissionRule, ...]] = {}
        self._group_rules: dict[str, tuple[PermissionRule, ...]] = {}
        self._inactive_groups: frozenset[str] = frozenset()
        self._role_rules: dict[str, tuple[PermissionRule, ...]] = {}
        if use_role_defaults:
            for role, permissions in DEFAULT_ROLE_PERMISSIONS.items():
                self.set_role_rules(role, role_default_rules(role, permissions))

    # ------------------------------------------------------------------
    # Write API
    # ------------------------------------------------------------------

    def add_subject_rules(self, subject_id: str, rules: Iterable[PermissionRule]) -> None:
        with self._lock:
            self._subject_rules = {
                **self._subject_rules,
                subject_id: self._subject_rules.get(subject_id, ()) + tuple(rules),
            }

    def add_group_rules(self, group_id: str, rules: Iterable[PermissionRule]) -> None:
        with self._lock:
            self._group_rules = {
                **self._group_rules,
                group_id: self._group_rules.get(group_id, ()) + tuple(rules),
            }

    def set_group_active(self, group_id: str, active: bool) -> None:
        """Enable or disable inheritance from *group_id*."""
        with self._lock:
            if active:
                self._inactive_groups = self._inactive_groups - {group_id}
            else:
                self._inactive_groups = self._inactive_groups | {group_id}
        logger.info("Group %s %s", group_id, "activated" if active else "deactivated")

    def set_role_rules(self, role: str, rules: Iterable[PermissionRule]) -> None:
        with self._lock:
            self._role_rules = {**self._role_rules, role: tuple(rules)}

    def clear_subject(self, subject_id: str) -> None:
        with self._lock:
            self._subject_rules = {k: v for k, v in self._subject_rules.items() if k != subject_id}

    def merge(self, other: PermissionRuleBook) -> None:
        """Add every rule of *other* to this book."""
        for subject_id, rules in other._subject_rules.items():
            self.add_subject_rules(subject_id, rules)
        for group_id, rules in other._group_rules.items():
            self.add_group_rules(group_id, rules)
        for role, rules in other._role_rules.items():
            self.set_role_rules(role, rules)

    # ------------------------------------------------------------------
    # Read API
    # ------------------------------------------------------------------

    def rules_for(self, subject: Subject) -> list[PermissionRule]:
        """Return the ordered rule list that applies to *subject*."""
        rules = list(self._subject_rules.get(subject.subject_id, ()))
        inactive = self._inactive_groups
        for group_id in subject.groups:
            if group_id not in inactive:
                rules.extend(self._group_rules.get(group_id, ()))
        if subject.role:
            rules.extend(self._role_rules.get(subject.role, ()))
        return rules

    @property
    def subject_ids(self) -> list[str]:
        return list(self._subject_rules)

    @property
    def group_ids(self) -> list[str]:
        return list(self._group_rules)

    def __len__(self) -> int:
        return (
            sum(len(r) for r in self._subject_rules.values())
            + sum(len(r) for r in self._group_rules.values())
            + sum(len(r) for r in self._role_rules.values())
        )


__all__ = [
    "DEFAULT_ROLE_PERMISSIONS",
    "PermissionRule",
    "PermissionRuleBook",
    "RuleEffect",
    "role_default_rules",
]
