"""Wildcard permission rules with explicit deny precedence.

Example
-------
::

    from regionguard.identity import Subject
    from regionguard.permissions import PermissionLoader, PermissionResolver

    book = PermissionLoader().load_from_dict({
        "version": "1.0",
        "subjects": {"u-1": [{"pattern": "gis.*.use", "effect": "grant"}]},
    })
    result = PermissionResolver(book).resolve(Subject("u-1"), "gis.distance.use")
    assert result.allowed
"""
from __future__ import annotations

from regionguard.permissions.conditions import (
    ConditionContext,
    OwnerOnlyCondition,
    PermissionCondition,
    QuotaCondition,
    RegionCondition,
    TimeWindowCondition,
    build_condition,
)
from regionguard.permissions.loader import PermissionLoader
from regionguard.permissions.pattern import PermissionPattern
from regionguard.permissions.quota import QuotaTracker
from regionguard.permissions.resolver import PermissionResolver, Resolution
from regionguard.permissions.rules import (
    DEFAULT_ROLE_PERMISSIONS,
    PermissionRule,
    PermissionRuleBook,
    RuleEffect,
)

__all__ = [
    # Patterns and rules
    "DEFAULT_ROLE_PERMISSIONS",
    "PermissionPattern",
    "PermissionRule",
    "PermissionRuleBook",
    "RuleEffect",
    # Conditions
    "ConditionContext",
    "OwnerOnlyCondition",
    "PermissionCondition",
    "QuotaCondition",
    "RegionCondition",
    "TimeWindowCondition",
    "build_condition",
    # Resolution
    "PermissionLoader",
    "PermissionResolver",
    "QuotaTracker",
    "Resolution",
]
