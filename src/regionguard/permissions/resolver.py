"""Permission resolution with explicit deny precedence.

Precedence, highest first:

1. Admin subjects are always allowed.
2. A matching deny rule whose conditions all hold denies, whatever the
   grant rules say.
3. A matching grant rule whose conditions all hold allows.
4. Matching rules that all failed a condition deny with
   ``CONDITION_FAILED``, naming the failing condition.
5. No matching rule denies with ``NO_RULE``.

Example
-------
>>> book = PermissionRuleBook()
>>> book.add_subject_rules("u-1", [PermissionRule.grant("gis.*.use")])
>>> resolver = PermissionResolver(book)
>>> resolver.resolve(Subject("u-1"), "gis.distance.use").allowed
True
"""
from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime

from regionguard.errors import DenialKind
from regionguard.grants.models import EffectiveRegions, utc_now
from regionguard.identity import Subject
from regionguard.permissions.conditions import ConditionContext, PermissionCondition
from regionguard.permissions.pattern import split_permission
from regionguard.permissions.rules import PermissionRule, PermissionRuleBook, RuleEffect
from regionguard.regions.names import SynonymTable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Resolution:
    """Outcome of a permission resolution.

    Attributes
    ----------
    allowed:
        Whether the permission is granted.
    reason:
        Human-readable explanation.
    denial:
        Why the permission was denied; ``None`` when allowed.
    matched_rule:
        The rule that decided the outcome, if any.
    """

    allowed: bool
    reason: str
    denial: DenialKind | None = None
    matched_rule: PermissionRule | None = None

    def __bool__(self) -> bool:
        return self.allowed


class PermissionResolver:
    """Evaluates a permission id against a subject's rules.

    Parameters
    ----------
    rule_book:
        Source of rules per subject.
    synonyms:
        Synonym table passed to region conditions.
    """

    def __init__(self, rule_book: PermissionRuleBook, synonyms: SynonymTable | None = None) -> None:
        self._rule_book = rule_book
        self._synonyms = synonyms or SynonymTable()

    @property
    def rule_book(self) -> PermissionRuleBook:
        return self._rule_book

    def resolve(
        self,
        subject: Subject,
        permission_id: str,
        context: Mapping[str, object] | None = None,
        now: datetime | None = None,
        effective_regions: EffectiveRegions | None = None,
    ) -> Resolution:
        """Decide whether *subject* holds *permission_id*.

        Admins are allowed before *permission_id* is parsed.

        Raises
        ------
        ValueError
            If *permission_id* is not a valid dot-separated identifier.
        """
        if subject.is_admin:
            return Resolution(True, f"Admin bypass for {permission_id}")
        tokens = split_permission(permission_id)

        ctx = ConditionContext(
            subject=subject,
            attributes=dict(context or {}),
            now=now or utc_now(),
            effective_regions=effective_regions,
            synonyms=self._synonyms,
        )

        granted: PermissionRule | None = None
        failures: list[tuple[PermissionRule, PermissionCondition]] = []

        for rule in self._rule_book.rules_for(subject):
            if not rule.pattern.matches(tokens):
                continue
            failed = rule.first_failed_condition(ctx)
            if failed is not None:
                # A deny rule whose conditions fail does not apply.
                if rule.effect == RuleEffect.GRANT:
                    failures.append((rule, failed))
                continue
            if rule.effect == RuleEffect.DENY:
                logger.debug("Deny rule %s matched %s for %s", rule.rule_id, permission_id, subject.subject_id)
                return Resolution(
                    False,
                    f"Permission {permission_id} explicitly denied by rule {rule.rule_id}",
                    DenialKind.EXPLICIT_DENY,
                    rule,
                )
            if granted is None:
                granted = rule

        if granted is not None:
            return Resolution(True, f"Permission {permission_id} granted by rule {granted.rule_id}", None, granted)

        if failures:
            rule, condition = failures[0]
            return Resolution(
                False,
                f"Permission {permission_id}: condition failed for rule {rule.rule_id}: {condition.describe()}",
                DenialKind.CONDITION_FAILED,
                rule,
            )

        return Resolution(False, f"Permission {permission_id}: no applicable rule", DenialKind.NO_RULE)


__all__ = ["PermissionResolver", "Resolution"]
