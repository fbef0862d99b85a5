"""Geometry helpers for service areas.

Positions follow GeoJSON ordering: ``[longitude, latitude]``. Polygons are
GeoJSON ``Polygon`` geometries (``{"type": "Polygon", "coordinates":
[outer_ring, *holes]}``) or their bare ``coordinates`` list. Planar
predicates run on GEOS through shapely; distances are spherical.
"""
from __future__ import annotations

import math
from typing import Sequence

from django.core.exceptions import ValidationError
from shapely.geometry import Point, Polygon

EARTH_RADIUS_KM = 6371.0

Position = Sequence[float]


def haversine_km(a: Position, b: Position) -> float:
    """Great-circle distance in kilometers between two ``[lon, lat]`` points."""
    lon1, lat1 = float(a[0]), float(a[1])
    lon2, lat2 = float(b[0]), float(b[1])
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    return 2 * EARTH_RADIUS_KM * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def distance_from_center(center: Position, point: Position) -> float:
    return haversine_km(center, point)


def _rings(polygon) -> list:
    if isinstance(polygon, dict):
        return polygon.get("coordinates") or []
    return list(polygon or [])


def to_shape(polygon) -> Polygon | None:
    """Build a GEOS polygon from a GeoJSON Polygon or its ``coordinates``."""
    rings = _rings(polygon)
    if not rings or not rings[0]:
        return None
    return Polygon(rings[0], rings[1:])


def bounds(polygon) -> tuple[float, float, float, float] | None:
    """``(min_lon, min_lat, max_lon, max_lat)`` of the outer ring."""
    shape = to_shape(polygon)
    if shape is None:
        return None
    return shape.bounds


def point_in_polygon(point: Position, polygon) -> bool:
    """Containment test; boundary points are inside, points inside a hole are not."""
    shape = to_shape(polygon)
    if shape is None:
        return False
    return shape.intersects(Point(float(point[0]), float(point[1])))


def polygons_intersect(a, b) -> bool:
    """True when the polygons share any point, touching edges included."""
    shape_a, shape_b = to_shape(a), to_shape(b)
    if shape_a is None or shape_b is None:
        return False
    return shape_a.intersects(shape_b)


def search_box(point: Position, radius_km: float) -> tuple[float | None, float, float | None, float]:
    """Lon/lat box enclosing every position within ``radius_km`` of ``point``.

    Longitude bounds are ``None`` when the circle reaches a pole or wraps the
    antimeridian.
    """
    lon, lat = float(point[0]), float(point[1])
    angular = radius_km / EARTH_RADIUS_KM
    d_lat = math.degrees(angular)
    min_lat, max_lat = lat - d_lat, lat + d_lat
    if min_lat <= -90 or max_lat >= 90:
        return None, max(min_lat, -90.0), None, min(max_lat, 90.0)
    ratio = math.sin(angular) / math.cos(math.radians(lat))
    if ratio >= 1:
        return None, min_lat, None, max_lat
    d_lon = math.degrees(math.asin(ratio))
    if lon - d_lon < -180 or lon + d_lon > 180:
        return None, min_lat, None, max_lat
    return lon - d_lon, min_lat, lon + d_lon, max_lat


def create_circle_polygon(lat: float, lng: float, radius_km: float, points: int = 32) -> dict:
    """Regular ``points``-gon approximating a circle, closed (``points + 1`` positions)."""
    ring = []
    for i in range(points):
        angle = (i / points) * 2 * math.pi
        dx = radius_km * math.cos(angle)
        dy = radius_km * math.sin(angle)
        d_lng = dx / (EARTH_RADIUS_KM * math.cos(math.radians(lat))) * (180 / math.pi)
        d_lat = dy / EARTH_RADIUS_KM * (180 / math.pi)
        ring.append([lng + d_lng, lat + d_lat])
    ring.append(list(ring[0]))
    return {"type": "Polygon", "coordinates": [ring]}


def calculate_centroid(polygon) -> list[float]:
    """Arithmetic mean of the outer-ring positions, closing position included.

    Not an area-weighted centroid.
    """
    rings = _rings(polygon)
    if not rings or not rings[0]:
        return [0.0, 0.0]
    ring = rings[0]
    return [
        sum(float(pos[0]) for pos in ring) / len(ring),
        sum(float(pos[1]) for pos in ring) / len(ring),
    ]


def validate_position(value, field="coordinates") -> list[float]:
    if not isinstance(value, (list, tuple)) or len(value) < 2:
        raise ValidationError({field: "Position must be a [longitude, latitude] pair."})
    try:
        lon, lat = float(value[0]), float(value[1])
    except (TypeError, ValueError):
        raise ValidationError({field: "Position values must be numbers."})
    if not -180 <= lon <= 180 or not -90 <= lat <= 90:
        raise ValidationError({field: "Position is out of range."})
    return [lon, lat]


def validate_polygon(geometry, field="boundaries") -> dict:
    """Check a GeoJSON Polygon: closed rings of at least four positions."""
    if not isinstance(geometry, dict) or geometry.get("type") != "Polygon":
        raise ValidationError({field: "Boundaries must be a GeoJSON Polygon."})
    rings = geometry.get("coordinates")
    if not isinstance(rings, list) or not rings:
        raise ValidationError({field: "Polygon must have at least one ring."})
    clean = []
    for ring in rings:
        if not isinstance(ring, list) or len(ring) < 4:
            raise ValidationError({field: "Each ring must have at least 4 positions."})
        positions = [validate_position(pos, field) for pos in ring]
        if positions[0] != positions[-1]:
            raise ValidationError({field: "Polygon rings must be closed."})
        clean.append(positions)
    return {"type": "Polygon", "coordinates": clean}
