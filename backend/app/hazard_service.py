from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from .classifiers import (
    DEFAULT_DENGUE_RADIUS_KM,
    classify_dengue,
    classify_flood,
    classify_haze,
    classify_heat,
    classify_wind,
)
from .mock_hazards import mocked_hazards, parse_mock_flags
from .schemas import HAZARD_KINDS, SEVERITY_RANK, HazardRecord

# Tie-break when two hazards share a severity. Earlier wins.
HAZARD_PRIORITY = ("flood", "heat", "haze", "dengue", "wind")

NO_HAZARD = HazardRecord(kind="none", severity="safe", title="No Hazard Detected")


def _priority_index(kind: str) -> int:
    try:
        return HAZARD_PRIORITY.index(kind)
    except ValueError:
        return len(HAZARD_PRIORITY)


def _sort_key(hazard: HazardRecord) -> tuple[int, int]:
    return (-SEVERITY_RANK[hazard.severity], _priority_index(hazard.kind))


def pick_top(candidates: Iterable[HazardRecord] | None) -> HazardRecord:
    """Pick the most severe hazard; ties go to the higher-priority kind."""
    best: HazardRecord | None = None
    for hazard in candidates or ():
        if best is None or _sort_key(hazard) < _sort_key(best):
            best = hazard
    return best if best is not None else NO_HAZARD


def _classify_all(
    *,
    center: Any,
    rainfall_points: Any,
    hum_points: Any,
    pm_points: Any,
    wind_points: Any,
    temp_points: Any,
    dengue_geojson: Any,
    km_radius: Any,
) -> list[HazardRecord]:
    return [
        classify_flood(center, rainfall_points, hum_points),
        classify_haze(pm_points),
        classify_dengue(center, dengue_geojson, km_radius),
        classify_wind(wind_points, pm_points),
        classify_heat(temp_points, hum_points, pm_points),
    ]


def decide_global_hazard(
    *,
    center: Any = None,
    rainfall_points: Any = None,
    hum_points: Any = None,
    pm_points: Any = None,
    wind_points: Any = None,
    temp_points: Any = None,
    dengue_geojson: Any = None,
    mock_flags: Any = None,
    km_radius: Any = DEFAULT_DENGUE_RADIUS_KM,
) -> HazardRecord:
    """Return the single hazard for the status banner.

    Any enabled mock flag short-circuits to the canned hazards and ignores
    every real input.
    """
    flags = parse_mock_flags(mock_flags)
    if flags.any_enabled:
        return pick_top(mocked_hazards(flags, center))

    results = _classify_all(
        center=center,
        rainfall_points=rainfall_points,
        hum_points=hum_points,
        pm_points=pm_points,
        wind_points=wind_points,
        temp_points=temp_points,
        dengue_geojson=dengue_geojson,
        km_radius=km_radius,
    )
    if all(hazard.severity == "safe" for hazard in results):
        return NO_HAZARD
    return pick_top(results)


def evaluate_all_hazards(
    *,
    center: Any = None,
    rainfall_points: Any = None,
    hum_points: Any = None,
    pm_points: Any = None,
    wind_points: Any = None,
    temp_points: Any = None,
    dengue_geojson: Any = None,
    mock_flags: Any = None,
    km_radius: Any = DEFAULT_DENGUE_RADIUS_KM,
) -> list[HazardRecord]:
    """Return one record per kind, always in flood/haze/dengue/wind/heat order.

    With any mock flag enabled, kinds without a canned record come back as
    plain ``safe`` placeholders even if live data says otherwise.
    """
    flags = parse_mock_flags(mock_flags)
    if not flags.any_enabled:
        return _classify_all(
            center=center,
            rainfall_points=rainfall_points,
            hum_points=hum_points,
            pm_points=pm_points,
            wind_points=wind_points,
            temp_points=temp_points,
            dengue_geojson=dengue_geojson,
            km_radius=km_radius,
        )

    mocked_by_kind = {hazard.kind: hazard for hazard in mocked_hazards(flags, center)}
    return [
        mocked_by_kind.get(kind) or HazardRecord(kind=kind, severity="safe")
        for kind in HAZARD_KINDS
    ]
