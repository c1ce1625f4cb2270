"""Immutable region index answering "which region contains this point?".

A :class:`RegionIndex` is built once from boundary data and never mutated.
Reloading boundary data builds a new index and swaps it into a
:class:`RegionIndexHolder`; ``locate`` calls already running keep using the
index they started with.

Lookup order
------------
1. Exact containment, testing regions (and each region's parts) in
   insertion order.  The first hit wins, so overlapping or malformed data
   yields a reproducible answer.
2. Proximity fallback: the region whose centroid is nearest to the point,
   provided the haversine distance is below ``fallback_threshold_km``.
3. Otherwise :data:`UNDETERMINED`, which callers must treat as "cannot
   authorize" and never as an explicit deny.

Example
-------
>>> square = Polygon(outer=((0, 0), (0, 1), (1, 1), (1, 0)))
>>> index = RegionIndex([Region.build("Test Region", [square])])
>>> result = index.locate(GeoPoint(0.5, 0.5))
>>> result.name, result.exact
('Test Region', True)
"""
from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from regionguard.regions.geometry import GeoPoint, Polygon, bounds_center, haversine_km
from regionguard.regions.names import SynonymTable

logger = logging.getLogger(__name__)

DEFAULT_FALLBACK_THRESHOLD_KM: float = 50.0


# ---------------------------------------------------------------------------
# Region
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Region:
    """A named administrative boundary.

    Attributes
    ----------
    key:
        Normalized name (see :mod:`regionguard.regions.names`); the region's
        identity.
    display_name:
        Name as it appears in the boundary dataset.
    parts:
        One :class:`Polygon` for simple regions, several for multi-part ones.
    centroid:
        Reference point used by the proximity fallback.
    """

    key: str
    display_name: str
    parts: tuple[Polygon, ...]
    centroid: GeoPoint

    def __post_init__(self) -> None:
        if not self.key:
            raise ValueError("Region.key must not be empty.")
        if not self.parts:
            raise ValueError(f"Region {self.display_name!r} has no polygon parts.")

    @classmethod
    def build(
        cls,
        name: str,
        parts: Iterable[Polygon],
        synonyms: SynonymTable | None = None,
        centroid: GeoPoint | None = None,
    ) -> Region:
        """Construct a region, deriving its key and (if absent) its centroid."""
        table = synonyms or SynonymTable()
        frozen_parts = tuple(parts)
        return cls(
            key=table.normalize(name),
            display_name=name.strip(),
            parts=frozen_parts,
            centroid=centroid or bounds_center(frozen_parts),
        )

    def contains(self, point: GeoPoint) -> bool:
        """Return True if any part contains *point*."""
        return any(part.contains(point) for part in self.parts)

    @property
    def is_multi_part(self) -> bool:
        return len(self.parts) > 1


# ---------------------------------------------------------------------------
# Locate results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Located:
    """A successful ``locate`` result.

    Attributes
    ----------
    region:
        The region that contains (or is nearest to) the point.
    exact:
        ``True`` for true containment, ``False`` for the proximity fallback.
    distance_km:
        Distance to the region centroid for fallback results; ``0.0`` for
        exact matches.
    """

    region: Region
    exact: bool
    distance_km: float = 0.0

    @property
    def key(self) -> str:
        return self.region.key

    @property
    def name(self) -> str:
        return self.region.display_name

    def __bool__(self) -> bool:
        return True


class Undetermined:
    """Sentinel type for "no region could be determined"."""

    _instance: Undetermined | None = None

    def __new__(cls) -> Undetermined:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "UNDETERMINED"


UNDETERMINED = Undetermined()

LocateResult = Located | Undetermined


# ---------------------------------------------------------------------------
# RegionIndex
# ---------------------------------------------------------------------------


class RegionIndex:
    """Read-only, thread-safe collection of regions.

    Parameters
    ----------
    regions:
        Regions in evaluation order.  Keys must be unique.
    fallback_threshold_km:
        Maximum centroid distance accepted by the proximity fallback.
        Distances must be strictly below this value.
    synonyms:
        Synonym table used by :meth:`get` for name lookups.

    Raises
    ------
    ValueError
        If two regions share a key or the threshold is negative.
    """

    def __init__(
        self,
        regions: Iterable[Region],
        fallback_threshold_km: float = DEFAULT_FALLBACK_THRESHOLD_KM,
        synonyms: SynonymTable | None = None,
    ) -> None:
        if fallback_threshold_km < 0:
            raise ValueError(
                f"fallback_threshold_km must be non-negative; got {fallback_threshold_km!r}."
            )
        ordered = tuple(regions)
        by_key: dict[str, Region] = {}
        for region in ordered:
            if region.key in by_key:
                raise ValueError(f"Duplicate region key {region.key!r} in index.")
            by_key[region.key] = region

        self._regions = ordered
        self._by_key = by_key
        self._threshold_km = float(fallback_threshold_km)
        self._synonyms = synonyms or SynonymTable()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def locate(self, point: GeoPoint | tuple[float, float]) -> LocateResult:
        """Return the region containing *point*, a nearby region, or UNDETERMINED."""
        target = GeoPoint.of(point)

        for region in self._regions:
            if region.contains(target):
                logger.debug("Point (%s, %s) inside %s", target.lat, target.lng, region.key)
                return Located(region=region, exact=True)

        nearest: Region | None = None
        nearest_km = float("inf")
        for region in self._regions:
            distance = haversine_km(target, region.centroid)
            if distance < nearest_km:
                nearest = region
                nearest_km = distance

        if nearest is not None and nearest_km < self._threshold_km:
            logger.warning(
                "No exact region for (%s, %s); using nearest %s at %.1f km",
                target.lat,
                target.lng,
                nearest.key,
                nearest_km,
            )
            return Located(region=nearest, exact=False, distance_km=nearest_km)

        logger.debug(
            "No region for (%s, %s); nearest %s",
            target.lat,
            target.lng,
            f"{nearest.key} at {nearest_km:.1f} km" if nearest else "none",
        )
        return UNDETERMINED

    def get(self, name: str) -> Region | None:
        """Return the region whose key equals the normalized *name*."""
        return self._by_key.get(self._synonyms.normalize(name))

    def keys(self) -> list[str]:
        return [r.key for r in self._regions]

    @property
    def regions(self) -> tuple[Region, ...]:
        return self._regions

    @property
    def fallback_threshold_km(self) -> float:
        return self._threshold_km

    @property
    def synonyms(self) -> SynonymTable:
        return self._synonyms

    def __len__(self) -> int:
        return len(self._regions)

    def __iter__(self) -> Iterator[Region]:
        return iter(self._regions)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.get(name) is not None


# ---------------------------------------------------------------------------
# Holder for atomic swaps
# ---------------------------------------------------------------------------


class RegionIndexHolder:
    """Shared reference to the current :class:`RegionIndex`.

    Reads take the current reference without locking.  :meth:`swap`
    replaces it in a single assignment, so a reader sees either the old or
    the new index in full.  Before the first swap the holder is empty and
    every ``locate`` returns :data:`UNDETERMINED`.
    """

    def __init__(self, index: RegionIndex | None = None) -> None:
        self._index = index
        self._swap_lock = threading.Lock()

    @property
    def current(self) -> RegionIndex | None:
        return self._index

    @property
    def loaded(self) -> bool:
        return self._index is not None

    def swap(self, index: RegionIndex) -> RegionIndex | None:
        """Install *index* and return the previous one."""
        with self._swap_lock:
            previous = self._index
            self._index = index
        logger.info("Region index swapped: %d regions", len(index))
        return previous

    def locate(self, point: GeoPoint | tuple[float, float]) -> LocateResult:
        index = self._index
        if index is None:
            logger.error("Region index not loaded; cannot locate point %s", point)
            return UNDETERMINED
        return index.locate(point)


__all__ = [
    "DEFAULT_FALLBACK_THRESHOLD_KM",
    "LocateResult",
    "Located",
    "Region",
    "RegionIndex",
    "RegionIndexHolder",
    "UNDETERMINED",
    "Undetermined",
]
