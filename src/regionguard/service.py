"""AccessControlService: wires every regionguard subsystem together.

The service owns the region index holder, grant store, zone catalog,
permission rule book, audit emitter and decision engine, builds them from
a :class:`~regionguard.config.RegionGuardConfig`, and exposes:

- ``load_config(path)`` / ``load_config_defaults()`` -- build subsystems
- ``start()`` / ``stop()`` -- background expiry sweep and audit drain
- ``reload_boundaries()`` -- rebuild and atomically swap the region index
- ``authorize_region_access`` / ``authorize_permission`` /
  ``check_with_ownership`` -- audited decisions
- grant administration (``grant_permanent``, ``grant_temporary``,
  ``assign_zone``, ``revoke``, ``extend`` ...) -- audited as
  ``REGION_ASSIGNED`` / ``REGION_REVOKED``

Example
-------
>>> service = AccessControlService()
>>> service.load_config(Path("regionguard.yaml"))
>>> grant = service.grant_permanent("u-1", "Maharashtra", granted_by="admin")
>>> service.authorize_region_access(Subject("u-1"), (19.07, 72.87)).allowed
True
"""
from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime, timedelta
from pathlib import Path
from typing import TypeVar

from regionguard.audit.emitter import AuditEmitter
from regionguard.audit.events import AuditEvent, AuditEventType, AuditSeverity
from regionguard.audit.sink import JsonlAuditSink
from regionguard.config import ConfigLoader, RegionGuardConfig
from regionguard.engine.decision import Decision, DecisionEngine
from regionguard.errors import GrantStoreUnavailable, RegionGuardError
from regionguard.grants.models import AccessGrant, GrantSource
from regionguard.grants.store import GrantStore, InMemoryGrantStore, JsonFileGrantStore
from regionguard.grants.sweeper import ExpirySweeper
from regionguard.grants.zones import ZoneCatalog
from regionguard.identity import Subject
from regionguard.permissions.loader import PermissionLoader
from regionguard.permissions.quota import QuotaTracker
from regionguard.permissions.resolver import PermissionResolver
from regionguard.permissions.rules import PermissionRuleBook
from regionguard.regions.geometry import GeoPoint
from regionguard.regions.index import LocateResult, RegionIndexHolder
from regionguard.regions.loader import BoundaryLoader
from regionguard.regions.names import SynonymTable

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AccessControlService:
    """Main entry point for hosts embedding regionguard.

    Instantiate once per process and call :meth:`load_config` (or
    :meth:`load_config_defaults`) before any other method.

    Parameters
    ----------
    config_loader:
        Optional :class:`ConfigLoader` override (for testing).
    """

    def __init__(self, config_loader: ConfigLoader | None = None) -> None:
        self._config_loader = config_loader or ConfigLoader()
        self._config: RegionGuardConfig | None = None

        # Subsystem instances, initialised in configure().
        self._synonyms = SynonymTable()
        self._regions = RegionIndexHolder()
        self._grants: GrantStore | None = None
        self._zones: ZoneCatalog | None = None
        self._rules: PermissionRuleBook | None = None
        self._audit: AuditEmitter | None = None
        self._engine: DecisionEngine | None = None
        self._sweeper: ExpirySweeper | None = None
        self._quota = QuotaTracker()

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def load_config(self, path: str | Path) -> None:
        """Load a YAML configuration file and build every subsystem.

        Raises
        ------
        FileNotFoundError:
            When the config file does not exist.
        ConfigError:
            When the configuration is invalid.
        BoundaryDatasetError:
            When the configured boundary dataset cannot be loaded.
        """
        self.configure(self._config_loader.load(Path(path)))
        logger.info("AccessControlService loaded config from %s", path)

    def load_config_defaults(self) -> None:
        """Initialise with all-default configuration (no file required)."""
        self.configure(self._config_loader.defaults())

    def configure(self, config: RegionGuardConfig) -> None:
        """Build every subsystem from *config*."""
        self._config = config
        self._init_subsystems()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the expiry sweeper and the audit drain thread."""
        sweeper = self._require(self._sweeper, "expiry sweeper")
        audit = self._require(self._audit, "audit emitter")
        sweeper.start()
        audit.start()

    def stop(self) -> None:
        """Stop background threads and flush pending audit events."""
        if self._sweeper is not None:
            self._sweeper.stop()
        if self._audit is not None:
            self._audit.stop()

    def reload_boundaries(self, path: str | Path | None = None) -> int:
        """Rebuild the region index from *path* (or the configured path).

        The new index replaces the old one atomically; on failure the old
        index stays in place and the error propagates.

        Returns
        -------
        int
            Number of regions in the new index.
        """
        config = self._ensure_initialised()
        source = Path(path) if path is not None else config.regions.boundary_path
        if source is None:
            raise ValueError("No boundary dataset configured.")
        index = self._boundary_loader().load(source)
        self._regions.swap(index)
        return len(index)

    def load_boundaries_from_dict(self, data: Mapping[str, object]) -> int:
        """Rebuild the region index from an already-parsed GeoJSON document."""
        self._ensure_initialised()
        index = self._boundary_loader().load_from_dict(data, source="<dict>")
        self._regions.swap(index)
        return len(index)

    def reload_rules(self, path: str | Path | None = None) -> int:
        """Reload permission rules from *path* (or the configured path)."""
        config = self._ensure_initialised()
        source = Path(path) if path is not None else config.permissions.rules_path
        book = self._build_rule_book(source)
        self._rules = book
        self._engine = DecisionEngine(
            self._regions,
            self._require(self._grants, "grant store"),
            PermissionResolver(book, self._synonyms),
            self._require(self._audit, "audit emitter"),
            self._synonyms,
        )
        return len(book)

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    def locate(self, point: GeoPoint | tuple[float, float]) -> LocateResult:
        return self._regions.locate(point)

    def authorize_region_access(
        self,
        subject: Subject,
        point: GeoPoint | tuple[float, float],
        now: datetime | None = None,
    ) -> Decision:
        return self._require_engine().authorize_region_access(subject, point, now)

    def authorize_permission(
        self,
        subject: Subject,
        permission_id: str,
        context: Mapping[str, object] | None = None,
        now: datetime | None = None,
        record_usage: bool = False,
    ) -> Decision:
        """Authorize a permission, feeding quota counts into the context.

        With *record_usage* an allowed decision counts as one use for
        quota conditions.
        """
        merged: dict[str, object] = {**self._quota.context(subject.subject_id, permission_id, now), **(context or {})}
        decision = self._require_engine().authorize_permission(subject, permission_id, merged, now)
        if decision.allowed and record_usage:
            self._quota.record(subject.subject_id, permission_id, now)
        return decision

    def check_with_ownership(
        self,
        subject: Subject,
        base_permission: str,
        owner_id: str | None = None,
        team_member_ids: Iterable[str] = (),
        allow_team: bool = False,
        now: datetime | None = None,
    ) -> Decision:
        return self._require_engine().check_with_ownership(
            subject, base_permission, owner_id, team_member_ids, allow_team, now
        )

    # ------------------------------------------------------------------
    # Grant administration
    # ------------------------------------------------------------------

    def grant_permanent(self, subject_id: str, region: str, granted_by: str = "", reason: str = "") -> AccessGrant:
        grants = self._require_grants()
        return self._audited_assign(
            subject_id,
            region,
            granted_by,
            lambda: grants.grant_permanent(subject_id, region, granted_by=granted_by, reason=reason),
            {"source": GrantSource.PERMANENT.value},
        )

    def grant_temporary(
        self,
        subject_id: str,
        region: str,
        expires_at: datetime | None = None,
        duration: timedelta | None = None,
        granted_by: str = "",
        reason: str = "",
        now: datetime | None = None,
    ) -> AccessGrant:
        grants = self._require_grants()
        grant = self._audited_assign(
            subject_id,
            region,
            granted_by,
            lambda: grants.grant_temporary(
                subject_id, region, expires_at=expires_at, duration=duration,
                granted_by=granted_by, reason=reason, now=now,
            ),
            {"source": GrantSource.TEMPORARY.value},
        )
        return grant

    def assign_zone(self, subject_id: str, zone: str, granted_by: str = "") -> list[AccessGrant]:
        grants = self._require_grants()
        zones = self._require(self._zones, "zone catalog")
        return self._audited_assign(
            subject_id,
            zone,
            granted_by,
            lambda: zones.assign(grants, subject_id, zone, granted_by=granted_by),
            {"source": GrantSource.ZONE_DERIVED.value, "zone": zone},
        )

    def unassign_zone(self, subject_id: str, zone: str, revoked_by: str = "") -> list[AccessGrant]:
        grants = self._require_grants()
        zones = self._require(self._zones, "zone catalog")
        return self._audited_revoke(
            subject_id, zone, revoked_by, lambda: zones.unassign(grants, subject_id, zone), {"zone": zone}
        )

    def grant_admin_bypass(self, subject_id: str, granted_by: str = "", reason: str = "") -> AccessGrant:
        grants = self._require_grants()
        return self._audited_assign(
            subject_id,
            None,
            granted_by,
            lambda: grants.grant_admin_bypass(subject_id, granted_by=granted_by, reason=reason),
            {"source": GrantSource.ADMIN_BYPASS.value},
        )

    def revoke(self, grant_id: str, revoked_by: str = "") -> AccessGrant:
        """Revoke one grant by id.

        Raises
        ------
        KeyError
            If the grant does not exist.
        """
        grants = self._require_grants()
        grant = grants.get(grant_id)
        return self._audited_revoke(
            grant.subject, grant.region, revoked_by, lambda: grants.revoke(grant_id), {"grant_id": grant_id}
        )

    def revoke_region(
        self,
        subject_id: str,
        region: str,
        revoked_by: str = "",
        source: GrantSource | None = None,
    ) -> list[AccessGrant]:
        grants = self._require_grants()
        return self._audited_revoke(
            subject_id, region, revoked_by, lambda: grants.revoke_region(subject_id, region, source), {}
        )

    def extend(self, grant_id: str, new_expires_at: datetime, extended_by: str = "", now: datetime | None = None) -> AccessGrant:
        grants = self._require_grants()
        grant = grants.get(grant_id)
        return self._audited_assign(
            grant.subject,
            grant.region,
            extended_by,
            lambda: grants.extend(grant_id, new_expires_at, now),
            {"action": "extend", "grant_id": grant_id, "expires_at": new_expires_at.isoformat()},
        )

    # ------------------------------------------------------------------
    # Status and properties
    # ------------------------------------------------------------------

    def get_status(self) -> dict[str, object]:
        """Return a health summary of the service."""
        if self._audit is None:
            return {"initialised": False}
        index = self._regions.current
        try:
            grant_count: int | None = len(self._grants.all_grants()) if self._grants else 0
        except GrantStoreUnavailable:
            grant_count = None
        return {
            "initialised": True,
            "regions_loaded": len(index) if index is not None else 0,
            "grant_count": grant_count,
            "rule_count": len(self._rules) if self._rules else 0,
            "audit_count": len(self._audit),
            "sweeper_running": self._sweeper.running if self._sweeper else False,
        }

    @property
    def config(self) -> RegionGuardConfig | None:
        return self._config

    @property
    def regions(self) -> RegionIndexHolder:
        return self._regions

    @property
    def grants(self) -> GrantStore | None:
        return self._grants

    @property
    def zones(self) -> ZoneCatalog | None:
        return self._zones

    @property
    def rules(self) -> PermissionRuleBook | None:
        return self._rules

    @property
    def audit(self) -> AuditEmitter | None:
        return self._audit

    @property
    def engine(self) -> DecisionEngine | None:
        return self._engine

    @property
    def sweeper(self) -> ExpirySweeper | None:
        return self._sweeper

    @property
    def quota(self) -> QuotaTracker:
        return self._quota

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _init_subsystems(self) -> None:
        """Initialise all subsystems from the loaded config."""
        cfg = self._ensure_initialised()
        self.stop()

        self._synonyms = SynonymTable(cfg.regions.synonyms)

        # Grants.
        if cfg.grants.store_path is not None:
            self._grants = JsonFileGrantStore(cfg.grants.store_path, self._synonyms)
        else:
            self._grants = InMemoryGrantStore(self._synonyms)
        self._zones = ZoneCatalog(cfg.grants.zones)
        self._sweeper = ExpirySweeper(self._grants, cfg.grants.sweep_interval_seconds)

        # Permissions.
        self._rules = self._build_rule_book(cfg.permissions.rules_path)

        # Audit trail.
        sink = JsonlAuditSink(cfg.audit.log_path) if cfg.audit.log_path is not None else None
        self._audit = AuditEmitter(
            max_events=cfg.audit.max_events,
            sink=sink,
            retry_attempts=cfg.audit.retry_attempts,
            queue_size=cfg.audit.queue_size,
        )

        # Decision engine over an empty index until boundaries are loaded.
        self._regions = RegionIndexHolder()
        self._engine = DecisionEngine(
            self._regions, self._grants, PermissionResolver(self._rules, self._synonyms), self._audit,
            self._synonyms,
        )
        if cfg.regions.boundary_path is not None:
            self.reload_boundaries(cfg.regions.boundary_path)

    def _build_rule_book(self, path: Path | None) -> PermissionRuleBook:
        use_defaults = self._ensure_initialised().permissions.use_role_defaults
        if path is None:
            return PermissionRuleBook(use_role_defaults=use_defaults)
        return PermissionLoader(use_role_defaults=use_defaults).load(path)

    def _boundary_loader(self) -> BoundaryLoader:
        return BoundaryLoader(self._synonyms, self._ensure_initialised().regions.fallback_threshold_km)

    def _audited_assign(
        self,
        subject_id: str,
        region: str | None,
        actor: str,
        operation: Callable[[], T],
        details: dict[str, object],
    ) -> T:
        return self._audited(AuditEventType.REGION_ASSIGNED, subject_id, region, actor, operation, details)

    def _audited_revoke(
        self,
        subject_id: str,
        region: str | None,
        actor: str,
        operation: Callable[[], T],
        details: dict[str, object],
    ) -> T:
        return self._audited(AuditEventType.REGION_REVOKED, subject_id, region, actor, operation, details)

    def _audited(
        self,
        event_type: AuditEventType,
        subject_id: str,
        region: str | None,
        actor: str,
        operation: Callable[[], T],
        details: dict[str, object],
    ) -> T:
        audit = self._require(self._audit, "audit emitter")
        verb = "assigned" if event_type == AuditEventType.REGION_ASSIGNED else "revoked"
        target = region or "all regions"
        context = {**details, "actor": actor or None}
        try:
            result = operation()
        except (RegionGuardError, KeyError, ValueError) as exc:
            audit.record(
                AuditEvent.create(
                    subject=subject_id,
                    event_type=event_type,
                    success=False,
                    reason=f"Failed to mark {target} {verb}: {exc}",
                    region=region,
                    severity=AuditSeverity.ERROR,
                    context=context,
                )
            )
            logger.warning("Grant administration failed for %s (%s): %s", subject_id, target, exc)
            raise
        audit.record(
            AuditEvent.create(
                subject=subject_id,
                event_type=event_type,
                success=True,
                reason=f"{target} {verb} by {actor or 'system'}",
                region=region,
                context=context,
            )
        )
        return result

    def _ensure_initialised(self) -> RegionGuardConfig:
        if self._config is None:
            raise RuntimeError(
                "AccessControlService is not initialised. Call load_config() or load_config_defaults() first."
            )
        return self._config

    def _require(self, subsystem: T | None, name: str) -> T:
        self._ensure_initialised()
        if subsystem is None:
            raise RuntimeError(f"AccessControlService has no {name}; configure() did not complete.")
        return subsystem

    def _require_engine(self) -> DecisionEngine:
        return self._require(self._engine, "decision engine")

    def _require_grants(self) -> GrantStore:
        return self._require(self._grants, "grant store")


__all__ = ["AccessControlService"]
