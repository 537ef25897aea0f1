"""Geo helpers for the hazard engine.

Distances are great-circle kilometres. Nearest-point search uses squared
lat/lon deltas instead, which is good enough at city scale and much cheaper.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from typing import Any

EARTH_RADIUS_KM = 6371.0


def point_field(item: Any, name: str) -> Any:
    """Read ``name`` from a mapping or an attribute-style object."""
    if isinstance(item, Mapping):
        return item.get(name)
    return getattr(item, name, None)


def finite_float(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return None
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return None
        try:
            number = float(stripped)
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def coords_of(item: Any) -> tuple[float, float] | None:
    """Return ``(lat, lon)`` if both are finite numbers, else ``None``."""
    if item is None:
        return None
    lat = point_field(item, "lat")
    lon = point_field(item, "lon")
    # Strings are not coordinates even if they parse.
    if isinstance(lat, str) or isinstance(lon, str):
        return None
    lat_f = finite_float(lat)
    lon_f = finite_float(lon)
    if lat_f is None or lon_f is None:
        return None
    return lat_f, lon_f


def distance_km(a: Any, b: Any) -> float | None:
    """Haversine distance between two coordinates, ``None`` if either is invalid."""
    first = coords_of(a)
    second = coords_of(b)
    if first is None or second is None:
        return None

    lat1, lon1 = first
    lat2, lon2 = second
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = phi2 - phi1
    dlambda = math.radians(lon2 - lon1)
    h = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def nearest_point(ref: Any, points: Iterable[Any] | None) -> Any | None:
    """Return the element of ``points`` closest to ``ref`` by squared lat/lon delta.

    Points without finite coordinates are skipped. The first point wins a tie.
    """
    origin = coords_of(ref)
    if origin is None or not points:
        return None

    best = None
    best_d2 = math.inf
    for point in points:
        location = coords_of(point)
        if location is None:
            continue
        dlat = location[0] - origin[0]
        dlon = location[1] - origin[1]
        d2 = dlat * dlat + dlon * dlon
        if d2 < best_d2:
            best_d2 = d2
            best = point
    return best


def _outer_rings(geometry: Mapping[str, Any]) -> list[Any]:
    geometry_type = geometry.get("type")
    coordinates = geometry.get("coordinates")
    if geometry_type == "Polygon":
        return [coordinates[0]]
    if geometry_type == "MultiPolygon":
        return [polygon[0] for polygon in coordinates]
    raise ValueError(f"Unsupported geometry type: {geometry_type!r}")


def _centroid(geometry: Mapping[str, Any]) -> dict[str, float] | None:
    if geometry.get("type") == "Point":
        lon, lat = geometry["coordinates"][:2]
        if coords_of({"lat": lat, "lon": lon}) is None:
            return None
        return {"lat": float(lat), "lon": float(lon)}

    sum_lat = 0.0
    sum_lon = 0.0
    count = 0
    for ring in _outer_rings(geometry):
        for vertex in ring:
            lon, lat = vertex[0], vertex[1]
            location = coords_of({"lat": lat, "lon": lon})
            if location is None:
                raise ValueError("Non-numeric vertex in polygon ring")
            sum_lat += location[0]
            sum_lon += location[1]
            count += 1
    if count == 0:
        return None
    return {"lat": sum_lat / count, "lon": sum_lon / count}


def polygon_centroid(geometry: Any) -> dict[str, float] | None:
    """Approximate the centre of a GeoJSON geometry.

    Point geometries are returned as-is. For Polygon and MultiPolygon this is
    the mean of every outer-ring vertex, not an area-weighted centroid. Any
    malformed or unsupported geometry yields ``None``.
    """
    if not isinstance(geometry, Mapping):
        return None
    try:
        return _centroid(geometry)
    except (KeyError, IndexError, TypeError, ValueError, OverflowError):
        return None
