"""Named zones: groups of regions assigned as a unit.

Assigning a zone to a subject materializes one zone-derived grant per
region in the zone; unassigning revokes exactly those grants and leaves
permanent or temporary grants for the same regions untouched.

Example
-------
>>> from regionguard.grants.store import InMemoryGrantStore
>>> store = InMemoryGrantStore()
>>> catalog = ZoneCatalog()
>>> grants = catalog.assign(store, "u-1", "West")
>>> sorted(g.region for g in grants)[:2]
['Dadra and Nagar Haveli and Daman and Diu', 'Goa']
"""
from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence

from regionguard.grants.models import AccessGrant
from regionguard.grants.store import GrantStore

logger = logging.getLogger(__name__)

DEFAULT_ZONES: dict[str, tuple[str, ...]] = {
    "North": (
        "Punjab",
        "Haryana",
        "Delhi",
        "Himachal Pradesh",
        "Uttarakhand",
        "Chandigarh",
        "Jammu and Kashmir",
        "Ladakh",
    ),
    "South": (
        "Karnataka",
        "Tamil Nadu",
        "Kerala",
        "Andhra Pradesh",
        "Telangana",
        "Puducherry",
        "Lakshadweep",
        "Andaman and Nicobar Islands",
    ),
    "East": (
        "West Bengal",
        "Bihar",
        "Jharkhand",
        "Odisha",
        "Assam",
        "Arunachal Pradesh",
        "Manipur",
        "Meghalaya",
        "Mizoram",
        "Nagaland",
        "Sikkim",
        "Tripura",
    ),
    "West": (
        "Maharashtra",
        "Gujarat",
        "Goa",
        "Rajasthan",
        "Dadra and Nagar Haveli and Daman and Diu",
    ),
    "Central": (
        "Madhya Pradesh",
        "Chhattisgarh",
        "Uttar Pradesh",
    ),
}


class ZoneCatalog:
    """Registry of zone name to member regions.

    Parameters
    ----------
    zones:
        Extra or overriding zones.  A zone with the same name as a default
        replaces the default's member list.
    include_defaults:
        When ``False`` the built-in :data:`DEFAULT_ZONES` are not loaded.
    """

    def __init__(
        self,
        zones: Mapping[str, Sequence[str]] | None = None,
        include_defaults: bool = True,
    ) -> None:
        self._zones: dict[str, tuple[str, ...]] = dict(DEFAULT_ZONES) if include_defaults else {}
        for name, regions in (zones or {}).items():
            self.define(name, regions)

    def define(self, name: str, regions: Sequence[str]) -> None:
        """Add or replace a zone."""
        if not name:
            raise ValueError("Zone name must not be empty.")
        members = tuple(r for r in regions if r)
        if not members:
            raise ValueError(f"Zone {name!r} must contain at least one region.")
        self._zones[name] = members

    def regions(self, name: str) -> tuple[str, ...]:
        """Return the member regions of zone *name*.

        Raises
        ------
        KeyError
            If the zone is not defined.
        """
        try:
            return self._zones[name]
        except KeyError:
            raise KeyError(f"Unknown zone {name!r}. Known zones: {sorted(self._zones)}.") from None

    def names(self) -> list[str]:
        return list(self._zones)

    def assign(self, store: GrantStore, subject: str, zone: str, granted_by: str = "") -> list[AccessGrant]:
        """Grant *subject* every region of *zone* as zone-derived grants."""
        members = self.regions(zone)
        return store.replace_zone(subject, zone, members, granted_by=granted_by)

    def unassign(self, store: GrantStore, subject: str, zone: str) -> list[AccessGrant]:
        removed = store.revoke_zone(subject, zone)
        logger.info("Zone %s unassigned from %s (%d grants)", zone, subject, len(removed))
        return removed

    def __contains__(self, name: object) -> bool:
        return name in self._zones

    def __len__(self) -> int:
        return len(self._zones)


__all__ = ["DEFAULT_ZONES", "ZoneCatalog"]
