"""Region grants: permanent, temporary, zone-derived and admin bypass.

Example
-------
::

    from datetime import timedelta
    from regionguard.grants import InMemoryGrantStore

    store = InMemoryGrantStore()
    store.grant_permanent("u-1", "Maharashtra")
    store.grant_temporary("u-1", "Delhi", duration=timedelta(minutes=5))
    store.effective_regions("u-1").regions
"""
from __future__ import annotations

from regionguard.grants.models import (
    ALL_REGIONS,
    AccessGrant,
    EffectiveRegions,
    GrantSource,
    GrantStats,
    TimeRemaining,
    time_remaining,
)
from regionguard.grants.store import GrantStore, InMemoryGrantStore, JsonFileGrantStore
from regionguard.grants.sweeper import ExpirySweeper
from regionguard.grants.zones import DEFAULT_ZONES, ZoneCatalog

__all__ = [
    # Models
    "ALL_REGIONS",
    "AccessGrant",
    "EffectiveRegions",
    "GrantSource",
    "GrantStats",
    "TimeRemaining",
    "time_remaining",
    # Stores
    "GrantStore",
    "InMemoryGrantStore",
    "JsonFileGrantStore",
    # Background and zones
    "DEFAULT_ZONES",
    "ExpirySweeper",
    "ZoneCatalog",
]
