"""Exception types and denial categories for regionguard.

Lookups that simply find nothing (a point outside every region, a subject
without grants, a permission without a rule) are reported as decision
variants carrying a :class:`DenialKind`, never as exceptions.  The exception
classes below cover infrastructure failures only.
"""
from __future__ import annotations

from enum import Enum


class DenialKind(str, Enum):
    """Why an authorization request was not allowed."""

    REGION_UNDETERMINED = "region_undetermined"
    NO_REGIONS_ASSIGNED = "no_regions_assigned"
    REGION_NOT_AUTHORIZED = "region_not_authorized"
    NO_RULE = "no_rule"
    EXPLICIT_DENY = "explicit_deny"
    CONDITION_FAILED = "condition_failed"
    GRANT_STORE_UNAVAILABLE = "grant_store_unavailable"


class RegionGuardError(Exception):
    """Base class for all regionguard errors."""


class BoundaryDatasetError(RegionGuardError):
    """Raised when a boundary dataset is missing or structurally invalid.

    Attributes
    ----------
    source:
        The path or identifier of the dataset, if known.
    """

    def __init__(self, message: str, source: str | None = None) -> None:
        self.source = source
        prefix = f"[{source}] " if source else ""
        super().__init__(f"{prefix}{message}")


class GrantStoreUnavailable(RegionGuardError):
    """Raised when a persistent grant backend cannot be read or written."""


class AuditSinkUnavailable(RegionGuardError):
    """Raised by an audit sink that cannot accept an event.

    The audit emitter catches this, retries a bounded number of times and
    then writes the event to the fallback log.  It never reaches callers of
    the decision engine.
    """


class ConfigError(RegionGuardError, ValueError):
    """Raised when a configuration file is malformed or invalid.

    Attributes
    ----------
    config_path:
        The path to the config file that caused the error, if known.
    """

    def __init__(self, message: str, config_path: str | None = None) -> None:
        self.config_path = config_path
        prefix = f"[{config_path}] " if config_path else ""
        super().__init__(f"{prefix}{message}")


class PermissionConfigError(ConfigError):
    """Raised when a permission rules YAML document is malformed."""


__all__ = [
    "AuditSinkUnavailable",
    "BoundaryDatasetError",
    "ConfigError",
    "DenialKind",
    "GrantStoreUnavailable",
    "PermissionConfigError",
    "RegionGuardError",
]
