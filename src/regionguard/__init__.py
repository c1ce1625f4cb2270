"""regionguard: region and permission access control engine.

Public API
----------
The stable public surface is everything exported from this module.
Anything inside submodules not re-exported here is considered private
and may change without notice.

Example
-------
>>> import regionguard as rg
>>> rg.__version__
'0.1.0'
>>> service = rg.AccessControlService()
>>> service.load_config_defaults()
>>> grant = service.grant_permanent("u-1", "Maharashtra", granted_by="admin")
>>> service.authorize_permission(rg.Subject("u-1"), "gis.distance.use").allowed
False
"""
from __future__ import annotations

__version__: str = "0.1.0"

from regionguard.identity import Subject
from regionguard.service import AccessControlService

# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------
from regionguard.errors import (
    AuditSinkUnavailable,
    BoundaryDatasetError,
    ConfigError,
    DenialKind,
    GrantStoreUnavailable,
    PermissionConfigError,
    RegionGuardError,
)

# ---------------------------------------------------------------------------
# Regions
# ---------------------------------------------------------------------------
from regionguard.regions.geometry import GeoPoint
from regionguard.regions.index import UNDETERMINED, Located, Region, RegionIndex, RegionIndexHolder
from regionguard.regions.loader import BoundaryLoader
from regionguard.regions.names import SynonymTable

# ---------------------------------------------------------------------------
# Grants
# ---------------------------------------------------------------------------
from regionguard.grants.models import AccessGrant, EffectiveRegions, GrantSource, time_remaining
from regionguard.grants.store import GrantStore, InMemoryGrantStore, JsonFileGrantStore
from regionguard.grants.sweeper import ExpirySweeper
from regionguard.grants.zones import ZoneCatalog

# ---------------------------------------------------------------------------
# Permissions
# ---------------------------------------------------------------------------
from regionguard.permissions.loader import PermissionLoader
from regionguard.permissions.resolver import PermissionResolver, Resolution
from regionguard.permissions.rules import PermissionRule, PermissionRuleBook, RuleEffect

# ---------------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------------
from regionguard.audit.emitter import AuditEmitter
from regionguard.audit.events import AuditEvent, AuditEventType, AuditFilter, AuditSeverity
from regionguard.audit.exporter import AuditExporter
from regionguard.audit.sink import JsonlAuditSink

# ---------------------------------------------------------------------------
# Engine and configuration
# ---------------------------------------------------------------------------
from regionguard.config import ConfigLoader, RegionGuardConfig
from regionguard.engine.decision import AccessKind, Decision, DecisionEngine

__all__ = [
    "__version__",
    "AccessControlService",
    "Subject",
    # Errors
    "AuditSinkUnavailable",
    "BoundaryDatasetError",
    "ConfigError",
    "DenialKind",
    "GrantStoreUnavailable",
    "PermissionConfigError",
    "RegionGuardError",
    # Regions
    "BoundaryLoader",
    "GeoPoint",
    "Located",
    "Region",
    "RegionIndex",
    "RegionIndexHolder",
    "SynonymTable",
    "UNDETERMINED",
    # Grants
    "AccessGrant",
    "EffectiveRegions",
    "ExpirySweeper",
    "GrantSource",
    "GrantStore",
    "InMemoryGrantStore",
    "JsonFileGrantStore",
    "ZoneCatalog",
    "time_remaining",
    # Permissions
    "PermissionLoader",
    "PermissionResolver",
    "PermissionRule",
    "PermissionRuleBook",
    "Resolution",
    "RuleEffect",
    # Audit
    "AuditEmitter",
    "AuditEvent",
    "AuditEventType",
    "AuditExporter",
    "AuditFilter",
    "AuditSeverity",
    "JsonlAuditSink",
    # Engine and configuration
    "AccessKind",
    "ConfigLoader",
    "Decision",
    "DecisionEngine",
    "RegionGuardConfig",
]
