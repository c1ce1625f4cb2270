"""The decision engine: one place that answers "may this subject do this?".

DecisionEngine combines the region index, the grant store, the permission
resolver and the audit emitter.  Every public ``authorize_*`` /
``check_*`` call records exactly one audit event before returning.

Region access flow
------------------
1. Admins (subject flag or admin bypass grant) are allowed everywhere.
2. The point is located; an undetermined point cannot be authorized.
3. A subject with no effective regions is denied.
4. The located region is compared with each assigned region after
   normalization (equality or substring, see
   :mod:`regionguard.regions.names`).
5. A match through temporary grants only yields ``TEMPORARY`` access,
   any permanent or zone-derived match yields ``PERMANENT`` access.
6. Anything else is denied, naming the located and assigned regions.

Example
-------
::

    engine = DecisionEngine(index, store, resolver, emitter)
    decision = engine.authorize_region_access(Subject("u-1"), (19.07, 72.87))
    if not decision:
        print(decision.reason)
"""
from __future__ import annotations

import dataclasses
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from regionguard.audit.emitter import AuditEmitter
from regionguard.audit.events import AuditEvent, AuditEventType, AuditSeverity
from regionguard.errors import DenialKind, GrantStoreUnavailable
from regionguard.grants.models import EffectiveRegions, GrantSource, utc_now
from regionguard.grants.store import GrantStore
from regionguard.identity import Subject
from regionguard.permissions.resolver import PermissionResolver, Resolution
from regionguard.regions.geometry import GeoPoint
from regionguard.regions.index import Located, RegionIndex, RegionIndexHolder
from regionguard.regions.names import SynonymTable

logger = logging.getLogger(__name__)

ALL_REGIONS_ADMIN = "All Regions (Admin)"


class AccessKind(str, Enum):
    """How an allowed request was authorized."""

    PERMANENT = "permanent"
    TEMPORARY = "temporary"
    ADMIN = "admin"
    NONE = "none"


@dataclass(frozen=True)
class Decision:
    """Outcome of an authorization call.

    Attributes
    ----------
    allowed:
        Whether the request is allowed.
    reason:
        Human-readable explanation, always present.
    region:
        Display name of the region involved, when one was determined.
    access_kind:
        :class:`AccessKind` for allowed region decisions; ``ADMIN`` or
        ``NONE`` for permission decisions.
    denial:
        :class:`DenialKind` when denied, ``None`` when allowed.
    exact:
        For region decisions: ``True`` for true containment, ``False`` for
        the proximity fallback, ``None`` when no region was located.
    matched_rule:
        Identifier of the deciding permission rule, if any.
    event_id:
        Identifier of the audit event recorded for this decision.
    """

    allowed: bool
    reason: str
    region: str | None = None
    access_kind: AccessKind = AccessKind.NONE
    denial: DenialKind | None = None
    exact: bool | None = None
    matched_rule: str | None = None
    event_id: str | None = None

    def __bool__(self) -> bool:
        return self.allowed


class DecisionEngine:
    """Authorizes region access and permissions, auditing every decision.

    Parameters
    ----------
    regions:
        A :class:`RegionIndex`, or a :class:`RegionIndexHolder` whose
        current index is used on every call.
    grants:
        Grant store consulted for effective regions.
    resolver:
        Permission resolver.
    audit:
        Audit emitter receiving one event per decision.
    synonyms:
        Synonym table for region comparisons.  Defaults to the grant
        store's table.
    """

    def __init__(
        self,
        regions: RegionIndex | RegionIndexHolder,
        grants: GrantStore,
        resolver: PermissionResolver,
        audit: AuditEmitter,
        synonyms: SynonymTable | None = None,
    ) -> None:
        self._regions = regions if isinstance(regions, RegionIndexHolder) else RegionIndexHolder(regions)
        self._grants = grants
        self._resolver = resolver
        self._audit = audit
        self._synonyms = synonyms or grants.synonyms

    # ------------------------------------------------------------------
    # Region access
    # ------------------------------------------------------------------

    def authorize_region_access(
        self,
        subject: Subject,
        point: GeoPoint | tuple[float, float],
        now: datetime | None = None,
    ) -> Decision:
        """Decide whether *subject* may work at *point*.

        Raises
        ------
        ValueError
            If *point* is outside the valid latitude/longitude range.
        """
        target = GeoPoint.of(point)
        effective_now = now or utc_now()
        located = self._regions.locate(target)
        context: dict[str, object] = {"lat": target.lat, "lng": target.lng}
        if isinstance(located, Located):
            context["exact"] = located.exact
            if not located.exact:
                context["distance_km"] = f"{located.distance_km:.1f}"

        if subject.is_admin:
            return self._record_region(subject, self._admin_decision(located), context)

        try:
            effective = self._grants.effective_regions(subject.subject_id, effective_now)
        except GrantStoreUnavailable as exc:
            logger.error("Grant store unavailable for %s: %s", subject.subject_id, exc)
            decision = Decision(
                allowed=False,
                reason=f"Grant store unavailable: {exc}",
                region=located.name if isinstance(located, Located) else None,
                denial=DenialKind.GRANT_STORE_UNAVAILABLE,
                exact=located.exact if isinstance(located, Located) else None,
            )
            return self._record_region(subject, decision, context)

        if effective.is_all:
            return self._record_region(subject, self._admin_decision(located), context)

        if not isinstance(located, Located):
            decision = Decision(
                allowed=False,
                reason=f"Could not determine region from coordinates ({target.lat}, {target.lng})",
                denial=DenialKind.REGION_UNDETERMINED,
            )
            return self._record_region(subject, decision, context)

        if not effective:
            decision = Decision(
                allowed=False,
                reason="No regions assigned to your account",
                region=located.name,
                denial=DenialKind.NO_REGIONS_ASSIGNED,
                exact=located.exact,
            )
            return self._record_region(subject, decision, context)

        matches = effective.matching(located.name, self._synonyms)
        if not matches:
            assigned = ", ".join(effective.regions)
            decision = Decision(
                allowed=False,
                reason=f"You don't have access to {located.name}. Assigned regions: {assigned}",
                region=located.name,
                denial=DenialKind.REGION_NOT_AUTHORIZED,
                exact=located.exact,
            )
            context["assigned_regions"] = assigned
            return self._record_region(subject, decision, context)

        sources = frozenset().union(*matches.values())
        if sources <= {GrantSource.TEMPORARY}:
            decision = Decision(
                allowed=True,
                reason=f"Access granted to {located.name} (Temporary Access)",
                region=located.name,
                access_kind=AccessKind.TEMPORARY,
                exact=located.exact,
            )
        else:
            decision = Decision(
                allowed=True,
                reason=f"Access granted to {located.name}",
                region=located.name,
                access_kind=AccessKind.PERMANENT,
                exact=located.exact,
            )
        context["sources"] = ",".join(sorted(s.value for s in sources))
        return self._record_region(subject, decision, context)

    # ------------------------------------------------------------------
    # Permissions
    # ------------------------------------------------------------------

    def authorize_permission(
        self,
        subject: Subject,
        permission_id: str,
        context: Mapping[str, object] | None = None,
        now: datetime | None = None,
    ) -> Decision:
        """Decide whether *subject* holds *permission_id* given *context*."""
        decision = self._resolve_or_record(subject, permission_id, context, now)
        return self._record_permission(subject, permission_id, decision, context)

    def check_with_ownership(
        self,
        subject: Subject,
        base_permission: str,
        owner_id: str | None = None,
        team_member_ids: Iterable[str] = (),
        allow_team: bool = False,
        now: datetime | None = None,
    ) -> Decision:
        """Check ``<base>.any`` first, then ``<base>.own`` against the owner.

        With only the ``.own`` permission the subject is allowed when the
        resource has no owner, when they own it, or (with *allow_team*)
        when they are one of *team_member_ids*.
        """
        team = tuple(str(m) for m in team_member_ids)
        context: dict[str, object] = {"owner_id": owner_id, "team_member_ids": team}

        any_permission = f"{base_permission}.any"
        decision = self._resolve_or_record(subject, any_permission, context, now)
        if decision.allowed:
            return self._record_permission(subject, any_permission, decision, context)

        own_permission = f"{base_permission}.own"
        own = self._resolve_or_record(subject, own_permission, context, now)
        if own.allowed:
            is_owner = owner_id is None or owner_id == subject.subject_id
            on_team = allow_team and subject.subject_id in team
            if is_owner or on_team:
                return self._record_permission(subject, own_permission, own, context)
            own = dataclasses.replace(
                own,
                allowed=False,
                reason=f"{own_permission} only applies to resources you own",
                denial=DenialKind.CONDITION_FAILED,
            )
        elif decision.denial == DenialKind.EXPLICIT_DENY:
            return self._record_permission(subject, any_permission, decision, context)

        return self._record_permission(subject, own_permission, own, context)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _admin_decision(self, located: object) -> Decision:
        if isinstance(located, Located):
            return Decision(
                allowed=True,
                reason=f"Admin access to {located.name}",
                region=located.name,
                access_kind=AccessKind.ADMIN,
                exact=located.exact,
            )
        return Decision(
            allowed=True,
            reason="Admin access to all regions",
            region=ALL_REGIONS_ADMIN,
            access_kind=AccessKind.ADMIN,
        )

    def _effective_regions(self, subject: Subject, now: datetime) -> EffectiveRegions | None:
        try:
            return self._grants.effective_regions(subject.subject_id, now)
        except GrantStoreUnavailable as exc:
            logger.warning("Grant store unavailable while resolving permissions for %s: %s", subject.subject_id, exc)
            return None

    def _resolve(
        self,
        subject: Subject,
        permission_id: str,
        context: Mapping[str, object] | None,
        now: datetime | None,
    ) -> Decision:
        effective_now = now or utc_now()
        effective = None if subject.is_admin else self._effective_regions(subject, effective_now)
        if effective is not None and effective.is_all:
            subject = dataclasses.replace(subject, is_admin=True)

        try:
            resolution: Resolution = self._resolver.resolve(
                subject, permission_id, context, effective_now, effective
            )
        except ValueError as exc:
            return Decision(allowed=False, reason=str(exc), denial=DenialKind.NO_RULE)

        region = (context or {}).get("region")
        return Decision(
            allowed=resolution.allowed,
            reason=resolution.reason,
            region=str(region) if region is not None else None,
            access_kind=AccessKind.ADMIN if subject.is_admin else AccessKind.NONE,
            denial=resolution.denial,
            matched_rule=resolution.matched_rule.rule_id if resolution.matched_rule else None,
        )

    def _resolve_or_record(
        self,
        subject: Subject,
        permission_id: str,
        context: Mapping[str, object] | None,
        now: datetime | None,
    ) -> Decision:
        """Resolve, recording a denial before re-raising any unexpected error."""
        try:
            return self._resolve(subject, permission_id, context, now)
        except Exception as exc:
            logger.error("Permission evaluation failed for %s on %s: %s", subject.subject_id, permission_id, exc)
            failure = Decision(
                allowed=False,
                reason=f"Permission {permission_id}: evaluation failed: {exc}",
                denial=DenialKind.CONDITION_FAILED,
            )
            self._record_permission(subject, permission_id, failure, context, AuditSeverity.ERROR)
            raise

    def _record_region(self, subject: Subject, decision: Decision, context: dict[str, object]) -> Decision:
        context["access_kind"] = decision.access_kind.value
        if decision.denial is not None:
            context["denial"] = decision.denial.value
        event = AuditEvent.create(
            subject=subject.subject_id,
            event_type=(
                AuditEventType.REGION_ACCESS_GRANTED if decision.allowed else AuditEventType.REGION_ACCESS_DENIED
            ),
            success=decision.allowed,
            reason=decision.reason,
            region=decision.region,
            context=context,
        )
        self._audit.record(event)
        logger.debug("Region decision for %s: %s", subject.subject_id, decision.reason)
        return dataclasses.replace(decision, event_id=event.event_id)

    def _record_permission(
        self,
        subject: Subject,
        permission_id: str,
        decision: Decision,
        context: Mapping[str, object] | None,
        severity: AuditSeverity | None = None,
    ) -> Decision:
        details: dict[str, object] = {"permission": permission_id, "access_kind": decision.access_kind.value}
        if decision.matched_rule:
            details["rule"] = decision.matched_rule
        if decision.denial is not None:
            details["denial"] = decision.denial.value
        if context and context.get("owner_id") is not None:
            details["owner_id"] = context["owner_id"]
        event = AuditEvent.create(
            subject=subject.subject_id,
            event_type=AuditEventType.PERMISSION_GRANTED if decision.allowed else AuditEventType.PERMISSION_DENIED,
            success=decision.allowed,
            reason=decision.reason,
            region=decision.region,
            severity=severity,
            context=details,
        )
        self._audit.record(event)
        logger.debug("Permission decision for %s on %s: %s", subject.subject_id, permission_id, decision.reason)
        return dataclasses.replace(decision, event_id=event.event_id)

    @property
    def regions(self) -> RegionIndexHolder:
        return self._regions

    @property
    def grants(self) -> GrantStore:
        return self._grants

    @property
    def resolver(self) -> PermissionResolver:
        return self._resolver

    @property
    def audit(self) -> AuditEmitter:
        return self._audit


__all__ = ["ALL_REGIONS_ADMIN", "AccessKind", "Decision", "DecisionEngine"]
