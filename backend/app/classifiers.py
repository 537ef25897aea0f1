"""Per-hazard classifiers.

Each classifier reads the latest point snapshots and returns one
``HazardRecord`` for its kind. Missing or malformed input never raises; it
simply leaves the hazard at ``safe``.
"""

from __future__ import annotations

import math
import re
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from .geo import (
    coords_of,
    distance_km,
    finite_float,
    nearest_point,
    point_field,
    polygon_centroid,
)
from .heat_index import heat_index_c
from .schemas import (
    DengueMetrics,
    FloodMetrics,
    HazardRecord,
    HazeMetrics,
    HeatMetrics,
    WindMetrics,
)

# Flood: mm of rain in the last 5 minutes, RH in percent.
FLOOD_DANGER_MM = 20.0
FLOOD_WARNING_MM = 10.0
FLOOD_WARNING_RH = 85.0

# Haze: 1-hour PM2.5 in µg/m³. Warning band is inclusive on both ends.
HAZE_WARNING_MIN = 36.0
HAZE_WARNING_MAX = 55.0

# Dengue
DEFAULT_DENGUE_RADIUS_KM = 5.0
DENGUE_DANGER_CASES = 10

# Wind: knots
WIND_WARNING_KT = 15.0
WIND_DANGER_KT = 25.0

# Heat index: °C. Warning band is inclusive on both ends.
HEAT_WARNING_MIN = 32.0
HEAT_WARNING_MAX = 41.0

CASE_COUNT_KEYS = (
    "CASE_SIZE",
    "case_size",
    "Case_Size",
    "CASE COUNT",
    "CASECOUNT",
    "caseCount",
    "CASES",
    "cases",
    "NUM_CASES",
)
LOCALITY_KEYS = ("LOCALITY", "locality", "Locality", "NAME", "name")


def _points(points: Iterable[Any] | None) -> list[Any]:
    if points is None or isinstance(points, (str, bytes, Mapping)):
        return []
    try:
        return list(points)
    except TypeError:
        return []


def _label(point: Any) -> str | None:
    for field in ("name", "id"):
        value = point_field(point, field)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _max_reading(points: Iterable[Any] | None) -> tuple[Any, float] | None:
    """Return the point with the highest finite value. The first max wins."""
    best: tuple[Any, float] | None = None
    for point in _points(points):
        value = finite_float(point_field(point, "value"))
        if value is None:
            continue
        if best is None or value > best[1]:
            best = (point, value)
    return best


def _region_label(station: Any, pm_points: Iterable[Any] | None) -> str | None:
    regions = _points(pm_points)
    if regions:
        region = nearest_point(station, regions)
        region_name = _label(region) if region is not None else None
        if region_name:
            return f"{region_name} Region"
    return _label(station)


def _description_attribute(description: Any, key: str) -> Any:
    if not isinstance(description, str):
        return None
    match = re.search(
        rf"<th>\s*{re.escape(key)}\s*</th>\s*<td>(.*?)</td>",
        description,
        flags=re.IGNORECASE | re.DOTALL,
    )
    if not match:
        return None
    text = match.group(1).strip()
    return text or None


def lookup_property(properties: Any, candidates: Sequence[str]) -> Any:
    """Probe ``candidates`` in order and return the first present value.

    Falls back to the attribute table embedded in an HTML ``Description``
    property, which is how the data.gov.sg KML exports carry their fields.
    """
    if not isinstance(properties, Mapping):
        return None
    for key in candidates:
        value = properties.get(key)
        if value is not None and value != "":
            return value
    description = properties.get("Description") or properties.get("description")
    for key in candidates:
        value = _description_attribute(description, key)
        if value is not None:
            return value
    return None


def _case_count(value: Any) -> int | None:
    number = finite_float(value)
    if number is None:
        return None
    return int(number)


def classify_flood(
    center: Any = None,
    rainfall_points: Iterable[Any] | None = None,
    hum_points: Iterable[Any] | None = None,
) -> HazardRecord:
    near_rain = nearest_point(center, _points(rainfall_points))
    near_hum = nearest_point(center, _points(hum_points))

    mm = finite_float(point_field(near_rain, "value")) if near_rain is not None else None
    rh = finite_float(point_field(near_hum, "value")) if near_hum is not None else None
    name = _label(near_rain) if near_rain is not None else None
    metrics = FloodMetrics(mm=mm, rh=rh)

    if mm is None:
        return HazardRecord(kind="flood", severity="safe", title="No Flood Risk", metrics=metrics)

    place = name or "nearest station"
    if mm >= FLOOD_DANGER_MM:
        return HazardRecord(
            kind="flood",
            severity="danger",
            title="Flash Flood Warning",
            location_name=name,
            reason=f"Heavy downpour near {place} ({mm:.1f} mm/5min)",
            metrics=metrics,
        )
    if mm >= FLOOD_WARNING_MM and rh is not None and rh >= FLOOD_WARNING_RH:
        return HazardRecord(
            kind="flood",
            severity="warning",
            title="Flash Flood Watch",
            location_name=name,
            reason=f"Moderate rain ({mm:.1f} mm/5min) & high RH ({round(rh)}%)",
            metrics=metrics,
        )
    return HazardRecord(
        kind="flood",
        severity="safe",
        title="No Flood Risk",
        location_name=name,
        reason=f"{mm:.1f} mm/5min near {place}",
        metrics=metrics,
    )


def classify_haze(pm_points: Iterable[Any] | None = None) -> HazardRecord:
    worst = _max_reading(pm_points)
    if worst is None:
        return HazardRecord(kind="haze", severity="safe", title="Haze (Safe)", metrics=HazeMetrics())

    point, value = worst
    name = _label(point)
    region = f"{name} Region" if name else None

    if value > HAZE_WARNING_MAX:
        severity = "danger"
    elif value >= HAZE_WARNING_MIN:
        severity = "warning"
    else:
        severity = "safe"

    return HazardRecord(
        kind="haze",
        severity=severity,
        title=f"Haze ({severity.capitalize()})",
        location_name=region,
        reason=f"Highest PM2.5 {name or 'region'}: {value:g} µg/m³",
        metrics=HazeMetrics(pm25=value, region=region),
    )


def classify_dengue(
    center: Any = None,
    dengue_geojson: Any = None,
    km_radius: Any = DEFAULT_DENGUE_RADIUS_KM,
) -> HazardRecord:
    radius = finite_float(km_radius)
    if radius is None or radius < 0:
        radius = DEFAULT_DENGUE_RADIUS_KM

    safe = HazardRecord(
        kind="dengue",
        severity="safe",
        title="No Dengue Cluster Nearby",
        reason=f"No active cluster within {radius:g} km",
        metrics=DengueMetrics(),
    )

    features = dengue_geojson.get("features") if isinstance(dengue_geojson, Mapping) else None
    if coords_of(center) is None or not isinstance(features, list):
        return safe

    nearest: Mapping[str, Any] | None = None
    nearest_km = math.inf
    for feature in features:
        if not isinstance(feature, Mapping):
            continue
        centroid = polygon_centroid(feature.get("geometry"))
        if centroid is None:
            continue
        km = distance_km(center, centroid)
        if km is not None and km < nearest_km:
            nearest = feature
            nearest_km = km

    if nearest is None or nearest_km > radius:
        return safe

    properties = nearest.get("properties")
    cases = _case_count(lookup_property(properties, CASE_COUNT_KEYS))
    raw_locality = lookup_property(properties, LOCALITY_KEYS)
    locality = str(raw_locality).strip() if raw_locality is not None else None
    metrics = DengueMetrics(cases=cases, km=nearest_km, locality=locality)
    place = locality or "an active cluster"

    # An unknown case count is still an active cluster.
    if cases is not None and cases >= DENGUE_DANGER_CASES:
        return HazardRecord(
            kind="dengue",
            severity="danger",
            title="Dengue Cluster (High Risk)",
            location_name=locality,
            reason=f"{cases} cases at {place}, {nearest_km:.1f} km away",
            metrics=metrics,
        )
    cases_text = f"{cases} cases" if cases is not None else "case count unknown"
    return HazardRecord(
        kind="dengue",
        severity="warning",
        title="Dengue Cluster Nearby",
        location_name=locality,
        reason=f"Cluster at {place}, {nearest_km:.1f} km away ({cases_text})",
        metrics=metrics,
    )


def classify_wind(
    wind_points: Iterable[Any] | None = None,
    pm_points: Iterable[Any] | None = None,
) -> HazardRecord:
    strongest = _max_reading(wind_points)
    if strongest is None:
        return HazardRecord(kind="wind", severity="safe", title="Calm Winds", metrics=WindMetrics())

    station, kt = strongest
    region = _region_label(station, pm_points)

    if kt >= WIND_DANGER_KT:
        severity, title = "danger", "Damaging Winds"
    elif kt >= WIND_WARNING_KT:
        severity, title = "warning", "Strong Winds"
    else:
        severity, title = "safe", "Calm Winds"

    return HazardRecord(
        kind="wind",
        severity=severity,
        title=title,
        location_name=region,
        reason=f"Max wind {kt:.1f} kt at {_label(station) or 'station'}",
        metrics=WindMetrics(kt=kt, region=region),
    )


def classify_heat(
    temp_points: Iterable[Any] | None = None,
    hum_points: Iterable[Any] | None = None,
    pm_points: Iterable[Any] | None = None,
) -> HazardRecord:
    humidity_stations = _points(hum_points)

    hottest: tuple[Any, float, float, float] | None = None
    for station in _points(temp_points):
        temp_c = finite_float(point_field(station, "value"))
        if temp_c is None:
            continue
        # Paired by location, station ids differ between the two feeds.
        partner = nearest_point(station, humidity_stations)
        if partner is None:
            continue
        rh = finite_float(point_field(partner, "value"))
        hi = heat_index_c(temp_c, rh)
        if hi is None:
            continue
        if hottest is None or hi > hottest[1]:
            hottest = (station, hi, temp_c, rh)

    if hottest is None:
        return HazardRecord(kind="heat", severity="safe", title="Heat (Safe)", metrics=HeatMetrics())

    station, hi, temp_c, rh = hottest
    region = _region_label(station, pm_points)

    if hi > HEAT_WARNING_MAX:
        severity = "danger"
    elif hi >= HEAT_WARNING_MIN:
        severity = "warning"
    else:
        severity = "safe"

    return HazardRecord(
        kind="heat",
        severity=severity,
        title=f"Heat ({severity.capitalize()})",
        location_name=region,
        reason=f"HI {hi:.1f} °C at {_label(station) or 'station'} ({temp_c:.1f} °C, {round(rh)}% RH)",
        metrics=HeatMetrics(hi=hi, region=region),
    )
