"""Composable conditions attached to permission rules.

A rule applies only when every attached condition holds (AND semantics,
evaluated in order, stopping at the first failure).  Conditions are pure
functions of the :class:`ConditionContext`: the subject, the caller-supplied
attributes and the evaluation time.

Supported condition types:

- RegionCondition     -- ``attributes["region"]`` must be an assigned region
- TimeWindowCondition -- local time must fall inside a daily window
- OwnerOnlyCondition  -- the subject must own the resource (or be on its team)
- QuotaCondition      -- ``daily_count`` / ``monthly_count`` below the limits

Factory
-------
Use :func:`build_condition` to construct the right subclass from a config
dictionary (used by :meth:`PermissionRule.from_dict`).
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, time, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from regionguard.grants.models import EffectiveRegions
from regionguard.identity import Subject
from regionguard.regions.names import SynonymTable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConditionContext:
    """Everything a condition may look at.

    Attributes
    ----------
    subject:
        The caller.
    attributes:
        Request attributes such as ``region``, ``owner_id``,
        ``team_member_ids``, ``daily_count`` and ``monthly_count``.
    now:
        Evaluation time (aware).
    effective_regions:
        The subject's current regions, or ``None`` when they could not be
        determined.
    synonyms:
        Synonym table for region comparisons.
    """

    subject: Subject
    attributes: Mapping[str, object] = field(default_factory=dict)
    now: datetime = field(default_factory=lambda: datetime.now(tz=timezone.utc))
    effective_regions: EffectiveRegions | None = None
    synonyms: SynonymTable = field(default_factory=SynonymTable)


# ---------------------------------------------------------------------------
# Abstract base
# ---------------------------------------------------------------------------


class PermissionCondition(ABC):
    """Abstract base for rule conditions."""

    @abstractmethod
    def evaluate(self, ctx: ConditionContext) -> bool:
        """Return True if the condition holds for *ctx*."""

    @property
    @abstractmethod
    def condition_type(self) -> str:
        """Short type identifier, as used in YAML."""

    def describe(self) -> str:
        return self.condition_type


# ---------------------------------------------------------------------------
# RegionCondition
# ---------------------------------------------------------------------------


@dataclass
class RegionCondition(PermissionCondition):
    """The resource's region must be one the subject may access.

    Reads ``attributes["region"]``.  When it is absent the condition holds
    only if ``require_assigned`` is ``False``.  When the subject's effective
    regions are unknown the condition fails.

    Examples
    --------
    ::

        c = RegionCondition()
        c.evaluate(ConditionContext(subject, {"region": "Delhi"}, now, regions))
    """

    require_assigned: bool = True

    @property
    def condition_type(self) -> str:
        return "region"

    def evaluate(self, ctx: ConditionContext) -> bool:
        region = ctx.attributes.get("region")
        if region is None:
            return not self.require_assigned
        regions = ctx.effective_regions
        if regions is None:
            return False
        if regions.is_all:
            return True
        return bool(regions.matching(str(region), ctx.synonyms))

    def describe(self) -> str:
        return "region (resource region not assigned)"


# ---------------------------------------------------------------------------
# TimeWindowCondition
# ---------------------------------------------------------------------------


@dataclass
class TimeWindowCondition(PermissionCondition):
    """Restrict a rule to a daily local-time window.

    The window includes ``start`` and excludes ``end``.  ``end`` earlier
    than ``start`` expresses an overnight window (e.g. 22:00-06:00);
    ``start == end`` covers the whole day.

    Attributes
    ----------
    start:
        Window start (local time).
    end:
        Window end (local time).
    weekdays:
        Permitted weekdays (0=Monday ... 6=Sunday).  Empty means every day.
    tz:
        IANA time zone name used to convert *now* to local time.

    Examples
    --------
    ::

        c = TimeWindowCondition(time(9), time(18), (0, 1, 2, 3, 4), "Asia/Kolkata")
    """

    start: time
    end: time
    weekdays: tuple[int, ...] = field(default_factory=tuple)
    tz: str = "UTC"

    def __post_init__(self) -> None:
        self.weekdays = tuple(int(d) for d in self.weekdays)
        for day in self.weekdays:
            if not 0 <= day <= 6:
                raise ValueError(f"TimeWindowCondition.weekdays contains invalid day {day!r}.")
        try:
            self._zone = ZoneInfo(self.tz)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown time zone {self.tz!r}.") from exc

    @property
    def condition_type(self) -> str:
        return "time_window"

    def evaluate(self, ctx: ConditionContext) -> bool:
        now = ctx.now if ctx.now.tzinfo else ctx.now.replace(tzinfo=timezone.utc)
        local = now.astimezone(self._zone)
        if self.weekdays and local.weekday() not in self.weekdays:
            return False

        current = local.time().replace(tzinfo=None)
        if self.start == self.end:
            return True
        if self.start < self.end:
            return self.start <= current < self.end
        return current >= self.start or current < self.end

    def describe(self) -> str:
        days = f" on days {list(self.weekdays)}" if self.weekdays else ""
        return f"time_window {self.start:%H:%M}-{self.end:%H:%M} {self.tz}{days}"


# ---------------------------------------------------------------------------
# OwnerOnlyCondition
# ---------------------------------------------------------------------------


@dataclass
class OwnerOnlyCondition(PermissionCondition):
    """The subject must own the resource, or be on its team.

    Reads ``attributes["owner_id"]`` and ``attributes["team_member_ids"]``.
    A resource without an owner passes.
    """

    allow_team: bool = False

    @property
    def condition_type(self) -> str:
        return "owner_only"

    def evaluate(self, ctx: ConditionContext) -> bool:
        owner = ctx.attributes.get("owner_id")
        if owner is None or str(owner) == ctx.subject.subject_id:
            return True
        if self.allow_team:
            return ctx.subject.subject_id in _member_ids(ctx.attributes.get("team_member_ids"))
        return False

    def describe(self) -> str:
        return "owner_only (subject is not the owner" + (" or a team member)" if self.allow_team else ")")


def _member_ids(value: object) -> set[str]:
    """Read a team list from request context.  A lone id counts as a one-member team."""
    if value is None:
        return set()
    if isinstance(value, (str, int)):
        return {str(value)}
    if isinstance(value, Iterable):
        return {str(member) for member in value}
    logger.warning("OwnerOnlyCondition: ignoring team_member_ids of type %s", type(value).__name__)
    return set()


# ---------------------------------------------------------------------------
# QuotaCondition
# ---------------------------------------------------------------------------


@dataclass
class QuotaCondition(PermissionCondition):
    """Usage must stay below daily and monthly limits.

    Reads the usage already consumed from ``attributes["daily_count"]`` and
    ``attributes["monthly_count"]`` (missing counts are zero).  A limit of
    ``None`` is not enforced.
    """

    max_per_day: int | None = None
    max_per_month: int | None = None

    def __post_init__(self) -> None:
        for name, limit in (("max_per_day", self.max_per_day), ("max_per_month", self.max_per_month)):
            if limit is not None and limit < 0:
                raise ValueError(f"QuotaCondition.{name} must be non-negative; got {limit!r}.")

    @property
    def condition_type(self) -> str:
        return "quota"

    def evaluate(self, ctx: ConditionContext) -> bool:
        daily = _as_count(ctx.attributes.get("daily_count"))
        monthly = _as_count(ctx.attributes.get("monthly_count"))
        if self.max_per_day is not None and daily >= self.max_per_day:
            return False
        if self.max_per_month is not None and monthly >= self.max_per_month:
            return False
        return True

    def describe(self) -> str:
        return f"quota (day={self.max_per_day}, month={self.max_per_month})"


def _as_count(value: object) -> int:
    if value is None:
        return 0
    try:
        return int(value)  # type: ignore[call-overload]
    except (TypeError, ValueError):
        logger.warning("QuotaCondition: could not cast usage count %r to int", value)
        return 0


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

CONDITION_TYPES: frozenset[str] = frozenset(["region", "time_window", "owner_only", "quota"])


def _parse_time(value: object) -> time:
    if isinstance(value, time):
        return value
    if isinstance(value, int):
        # PyYAML reads an unquoted 09:00 as the base-60 integer 540.
        hours, minutes = divmod(value, 60)
        return time(hours, minutes)
    return time.fromisoformat(str(value))


def _optional_int(value: object) -> int | None:
    return None if value is None else int(value)  # type: ignore[call-overload]


def build_condition(data: Mapping[str, object]) -> PermissionCondition:
    """Build a PermissionCondition subclass from a config dictionary.

    Raises
    ------
    ValueError
        If the ``type`` key is missing or unknown, or a field is invalid.
    """
    condition_type = str(data.get("type", ""))
    if not condition_type:
        raise ValueError("Condition dict must have a 'type' key.")
    if condition_type not in CONDITION_TYPES:
        raise ValueError(
            f"Unknown condition type {condition_type!r}. Known types: {sorted(CONDITION_TYPES)}."
        )

    match condition_type:
        case "region":
            return RegionCondition(require_assigned=bool(data.get("require_assigned", True)))

        case "time_window":
            if "start" not in data or "end" not in data:
                raise ValueError("time_window condition requires 'start' and 'end'.")
            return TimeWindowCondition(
                start=_parse_time(data["start"]),
                end=_parse_time(data["end"]),
                weekdays=tuple(data.get("weekdays") or ()),  # type: ignore[arg-type]
                tz=str(data.get("tz", "UTC")),
            )

        case "owner_only":
            return OwnerOnlyCondition(allow_team=bool(data.get("allow_team", False)))

        case _:
            return QuotaCondition(
                max_per_day=_optional_int(data.get("max_per_day")),
                max_per_month=_optional_int(data.get("max_per_month")),
            )


__all__ = [
    "CONDITION_TYPES",
    "ConditionContext",
    "OwnerOnlyCondition",
    "PermissionCondition",
    "QuotaCondition",
    "RegionCondition",
    "TimeWindowCondition",
    "build_condition",
]
