"""Region index: point-in-region lookup over administrative boundaries.

Example
-------
::

    from regionguard.regions import BoundaryLoader

    index = BoundaryLoader().load("/data/india_states.geojson")
    result = index.locate((19.07, 72.87))
    if result:
        print(result.name, result.exact)
"""
from __future__ import annotations

from regionguard.regions.geometry import GeoPoint, Polygon, haversine_km
from regionguard.regions.index import (
    UNDETERMINED,
    Located,
    LocateResult,
    Region,
    RegionIndex,
    RegionIndexHolder,
    Undetermined,
)
from regionguard.regions.loader import BoundaryLoader
from regionguard.regions.names import DEFAULT_SYNONYMS, SynonymTable

__all__ = [
    # Geometry
    "GeoPoint",
    "Polygon",
    "haversine_km",
    # Index
    "Located",
    "LocateResult",
    "Region",
    "RegionIndex",
    "RegionIndexHolder",
    "UNDETERMINED",
    "Undetermined",
    # Loading
    "BoundaryLoader",
    "DEFAULT_SYNONYMS",
    "SynonymTable",
]
