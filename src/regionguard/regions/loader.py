"""GeoJSON boundary dataset loader.

BoundaryLoader reads a GeoJSON ``FeatureCollection`` of administrative
boundaries and builds an immutable :class:`RegionIndex`.

Accepted input
--------------
::

    {
      "type": "FeatureCollection",
      "features": [
        {
          "type": "Feature",
          "properties": {"ST_NM": "Maharashtra", "centroid": [75.7, 19.4]},
          "geometry": {"type": "Polygon", "coordinates": [[[72.6, 15.6], ...]]}
        }
      ]
    }

- Geometry types ``Polygon`` and ``MultiPolygon``.  Other geometry types
  are skipped with a warning.
- The region name is read from the first present property among
  ``NAME_1``, ``ST_NM``, ``st_nm`` and ``name``.  Features without a name
  are skipped with a warning.
- An optional ``centroid`` property (GeoJSON ``[lng, lat]`` order) is used
  as the proximity-fallback reference point.
- Several features carrying the same normalized name are merged into one
  multi-part region, kept at the position of the first feature.

Example
-------
::

    loader = BoundaryLoader(fallback_threshold_km=50)
    index = loader.load("/data/india_states.geojson")
    located = index.locate((19.07, 72.87))
"""
from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from pathlib import Path

from regionguard.errors import BoundaryDatasetError
from regionguard.regions.geometry import GeoPoint, Polygon
from regionguard.regions.index import DEFAULT_FALLBACK_THRESHOLD_KM, Region, RegionIndex
from regionguard.regions.names import SynonymTable

logger = logging.getLogger(__name__)

NAME_PROPERTIES: tuple[str, ...] = ("NAME_1", "ST_NM", "st_nm", "name")


class BoundaryLoader:
    """Builds :class:`RegionIndex` instances from GeoJSON data.

    Parameters
    ----------
    synonyms:
        Synonym table used to derive region keys.
    fallback_threshold_km:
        Passed through to every index this loader builds.
    """

    def __init__(
        self,
        synonyms: SynonymTable | None = None,
        fallback_threshold_km: float = DEFAULT_FALLBACK_THRESHOLD_KM,
    ) -> None:
        self._synonyms = synonyms or SynonymTable()
        self._threshold_km = fallback_threshold_km

    def load(self, path: str | Path) -> RegionIndex:
        """Load a boundary dataset from a GeoJSON file.

        Raises
        ------
        BoundaryDatasetError
            If the file is missing, unreadable, not JSON, or not a valid
            FeatureCollection.
        """
        path = Path(path)
        if not path.exists():
            raise BoundaryDatasetError("Boundary dataset not found.", str(path))
        try:
            with path.open("r", encoding="utf-8") as fh:
                raw = json.load(fh)
        except (OSError, json.JSONDecodeError) as exc:
            raise BoundaryDatasetError(f"Failed to read GeoJSON: {exc}", str(path)) from exc
        return self.load_from_dict(raw, source=str(path))

    def load_from_dict(self, data: object, source: str | None = None) -> RegionIndex:
        """Build an index from an already-parsed GeoJSON document."""
        if not isinstance(data, Mapping) or data.get("type") != "FeatureCollection":
            raise BoundaryDatasetError("Expected a GeoJSON FeatureCollection.", source)
        features = data.get("features")
        if not isinstance(features, list):
            raise BoundaryDatasetError("FeatureCollection.features must be a list.", source)

        names: dict[str, str] = {}
        parts: dict[str, list[Polygon]] = {}
        centroids: dict[str, GeoPoint] = {}

        for position, feature in enumerate(features):
            if not isinstance(feature, Mapping):
                raise BoundaryDatasetError(f"Feature {position} is not an object.", source)
            properties = feature.get("properties") or {}
            name = _feature_name(properties)
            if name is None:
                logger.warning("Skipping feature %d in %s: no name property", position, source or "<dict>")
                continue

            try:
                polygons = _feature_polygons(feature.get("geometry"))
            except (TypeError, ValueError, IndexError) as exc:
                raise BoundaryDatasetError(
                    f"Invalid geometry for feature {position} ({name!r}): {exc}", source
                ) from exc
            if polygons is None:
                logger.warning(
                    "Skipping feature %d (%s): unsupported geometry", position, name
                )
                continue

            key = self._synonyms.normalize(name)
            if key not in parts:
                names[key] = name
                parts[key] = []
            parts[key].extend(polygons)

            centroid = properties.get("centroid")
            if centroid is not None and key not in centroids:
                try:
                    centroids[key] = GeoPoint(float(centroid[1]), float(centroid[0]))
                except (TypeError, ValueError, IndexError) as exc:
                    raise BoundaryDatasetError(
                        f"Invalid centroid for feature {position} ({name!r}): {exc}", source
                    ) from exc

        regions = [
            Region.build(names[key], parts[key], self._synonyms, centroids.get(key))
            for key in parts
        ]
        logger.info("Loaded %d regions from %s", len(regions), source or "<dict>")
        return RegionIndex(regions, fallback_threshold_km=self._threshold_km, synonyms=self._synonyms)


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------


def _feature_name(properties: Mapping[str, object]) -> str | None:
    for prop in NAME_PROPERTIES:
        value = properties.get(prop)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _to_ring(coordinates: list[list[float]]) -> tuple[tuple[float, float], ...]:
    # GeoJSON positions are [lng, lat]
    return tuple((float(pos[1]), float(pos[0])) for pos in coordinates)


def _to_polygon(rings: list[list[list[float]]]) -> Polygon:
    if not rings:
        raise ValueError("polygon has no rings")
    return Polygon(outer=_to_ring(rings[0]), holes=tuple(_to_ring(r) for r in rings[1:]))


def _feature_polygons(geometry: object) -> list[Polygon] | None:
    if not isinstance(geometry, Mapping):
        return None
    coordinates = geometry.get("coordinates")
    match geometry.get("type"):
        case "Polygon":
            return [_to_polygon(coordinates)]  # type: ignore[arg-type]
        case "MultiPolygon":
            return [_to_polygon(rings) for rings in coordinates]  # type: ignore[union-attr]
        case _:
            return None


__all__ = ["NAME_PROPERTIES", "BoundaryLoader"]
