"""Planar ring containment and great-circle distance helpers.

Coordinates are ``(lat, lng)`` decimal degrees.  Containment treats
longitude as the x axis and latitude as the y axis, which is accurate
enough for administrative boundaries that do not cross the antimeridian.

Example
-------
>>> ring = ((0.0, 0.0), (0.0, 10.0), (10.0, 10.0), (10.0, 0.0))
>>> point_in_ring(GeoPoint(5.0, 5.0), ring)
True
>>> round(haversine_km(GeoPoint(0.0, 0.0), GeoPoint(0.0, 1.0)), 1)
111.2
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field

EARTH_RADIUS_KM: float = 6371.0

# Tolerance (in degrees) for deciding that a point sits on a ring edge.
_EDGE_EPSILON: float = 1e-12

Ring = tuple[tuple[float, float], ...]


# ---------------------------------------------------------------------------
# Points and polygons
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GeoPoint:
    """A WGS84 coordinate in decimal degrees.

    Attributes
    ----------
    lat:
        Latitude in ``[-90, 90]``.
    lng:
        Longitude in ``[-180, 180]``.
    """

    lat: float
    lng: float

    def __post_init__(self) -> None:
        if not -90.0 <= self.lat <= 90.0:
            raise ValueError(f"GeoPoint.lat must be within [-90, 90]; got {self.lat!r}.")
        if not -180.0 <= self.lng <= 180.0:
            raise ValueError(f"GeoPoint.lng must be within [-180, 180]; got {self.lng!r}.")

    @classmethod
    def of(cls, value: GeoPoint | tuple[float, float]) -> GeoPoint:
        """Coerce a ``(lat, lng)`` tuple into a :class:`GeoPoint`."""
        if isinstance(value, GeoPoint):
            return value
        lat, lng = value
        return cls(float(lat), float(lng))


@dataclass(frozen=True)
class Polygon:
    """One polygon part: an outer ring plus optional holes.

    Rings are sequences of ``(lat, lng)`` vertices.  A closing vertex equal
    to the first one is accepted but not required.
    """

    outer: Ring
    holes: tuple[Ring, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "outer", _freeze_ring(self.outer))
        object.__setattr__(self, "holes", tuple(_freeze_ring(h) for h in self.holes))
        if len(self.outer) < 3:
            raise ValueError(
                f"Polygon outer ring needs at least 3 vertices; got {len(self.outer)}."
            )

    def contains(self, point: GeoPoint) -> bool:
        """Return True if *point* is inside the outer ring and outside all holes.

        Points on the outer boundary count as inside.  Points on a hole's
        boundary still belong to the polygon; only points strictly inside a
        hole are excluded.
        """
        if not point_in_ring(point, self.outer):
            return False
        for hole in self.holes:
            if point_in_ring(point, hole) and not point_on_ring(point, hole):
                return False
        return True

    def bounds(self) -> tuple[float, float, float, float]:
        """Return ``(min_lat, min_lng, max_lat, max_lng)`` of the outer ring."""
        lats = [v[0] for v in self.outer]
        lngs = [v[1] for v in self.outer]
        return min(lats), min(lngs), max(lats), max(lngs)


def _freeze_ring(ring: object) -> Ring:
    vertices = tuple((float(v[0]), float(v[1])) for v in ring)  # type: ignore[union-attr]
    if len(vertices) > 1 and vertices[0] == vertices[-1]:
        vertices = vertices[:-1]
    return vertices


# ---------------------------------------------------------------------------
# Containment
# ---------------------------------------------------------------------------


def point_on_ring(point: GeoPoint, ring: Ring) -> bool:
    """Return True if *point* lies on any edge (or vertex) of *ring*."""
    px, py = point.lng, point.lat
    count = len(ring)
    for i in range(count):
        ay, ax = ring[i]
        by, bx = ring[(i + 1) % count]
        cross = (bx - ax) * (py - ay) - (by - ay) * (px - ax)
        if abs(cross) > _EDGE_EPSILON:
            continue
        if min(ax, bx) - _EDGE_EPSILON <= px <= max(ax, bx) + _EDGE_EPSILON and (
            min(ay, by) - _EDGE_EPSILON <= py <= max(ay, by) + _EDGE_EPSILON
        ):
            return True
    return False


def point_in_ring(point: GeoPoint, ring: Ring) -> bool:
    """Even-odd ray casting test; boundary points are reported as inside."""
    if point_on_ring(point, ring):
        return True

    px, py = point.lng, point.lat
    inside = False
    count = len(ring)
    j = count - 1
    for i in range(count):
        yi, xi = ring[i]
        yj, xj = ring[j]
        # Half-open rule on y so a ray through a vertex is counted once.
        if (yi > py) != (yj > py):
            x_cross = xi + (py - yi) * (xj - xi) / (yj - yi)
            if px < x_cross:
                inside = not inside
        j = i
    return inside


# ---------------------------------------------------------------------------
# Distance and centroids
# ---------------------------------------------------------------------------


def haversine_km(a: GeoPoint, b: GeoPoint) -> float:
    """Great-circle distance between two points in kilometres."""
    lat1 = math.radians(a.lat)
    lat2 = math.radians(b.lat)
    dlat = lat2 - lat1
    dlng = math.radians(b.lng - a.lng)

    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlng / 2) ** 2
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def bounds_center(parts: tuple[Polygon, ...]) -> GeoPoint:
    """Return the centre of the bounding box enclosing every part."""
    if not parts:
        raise ValueError("bounds_center requires at least one polygon.")
    boxes = [p.bounds() for p in parts]
    min_lat = min(b[0] for b in boxes)
    min_lng = min(b[1] for b in boxes)
    max_lat = max(b[2] for b in boxes)
    max_lng = max(b[3] for b in boxes)
    return GeoPoint((min_lat + max_lat) / 2, (min_lng + max_lng) / 2)


__all__ = [
    "EARTH_RADIUS_KM",
    "GeoPoint",
    "Polygon",
    "Ring",
    "bounds_center",
    "haversine_km",
    "point_in_ring",
    "point_on_ring",
]
