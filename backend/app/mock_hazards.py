"""Canned hazards for demo and QA runs without live data."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from .geo import distance_km
from .schemas import (
    HAZARD_KINDS,
    DengueMetrics,
    FloodMetrics,
    HazardRecord,
    HazeMetrics,
    HeatMetrics,
    MockFlags,
    WindMetrics,
)

# Approximate centre of the canned Tampines cluster.
MOCK_DENGUE_CLUSTER = {"lat": 1.3546, "lon": 103.9437}
MOCK_DENGUE_KM = 1.2


def parse_mock_flags(flags: Any) -> MockFlags:
    """Accept a ``MockFlags``, a sparse mapping, or an iterable of kind names."""
    if isinstance(flags, MockFlags):
        return flags
    if flags is None:
        return MockFlags()
    if isinstance(flags, Mapping):
        return MockFlags(**{kind: bool(flags.get(kind)) for kind in HAZARD_KINDS})
    if isinstance(flags, str):
        flags = flags.split(",")
    if isinstance(flags, Iterable):
        enabled = {str(item).strip().lower() for item in flags}
        return MockFlags(**{kind: kind in enabled for kind in HAZARD_KINDS})
    return MockFlags()


def _mock_dengue_km(center: Any) -> float:
    km = distance_km(center, MOCK_DENGUE_CLUSTER)
    return round(km, 2) if km is not None else MOCK_DENGUE_KM


def _canned(kind: str, center: Any) -> HazardRecord:
    if kind == "flood":
        return HazardRecord(
            kind="flood",
            severity="danger",
            title="Flash Flood Warning",
            location_name="Clementi Park",
            reason="Mock flood (demo)",
            metrics=FloodMetrics(mm=24.6, rh=92.0),
        )
    if kind == "haze":
        return HazardRecord(
            kind="haze",
            severity="warning",
            title="Haze (Warning)",
            location_name="West Region",
            reason="Mock haze (demo)",
            metrics=HazeMetrics(pm25=48.0, region="West Region"),
        )
    if kind == "dengue":
        return HazardRecord(
            kind="dengue",
            severity="danger",
            title="Dengue Cluster (High Risk)",
            location_name="Tampines St 81",
            reason="Mock dengue cluster (demo)",
            metrics=DengueMetrics(cases=23, km=_mock_dengue_km(center), locality="Tampines St 81"),
        )
    if kind == "wind":
        return HazardRecord(
            kind="wind",
            severity="warning",
            title="Strong Winds",
            location_name="East Region",
            reason="Mock strong winds (demo)",
            metrics=WindMetrics(kt=19.4, region="East Region"),
        )
    return HazardRecord(
        kind="heat",
        severity="danger",
        title="Heat (Danger)",
        location_name="Central Region",
        reason="Mock heat (demo)",
        metrics=HeatMetrics(hi=42.3, region="Central Region"),
    )


def mocked_hazards(flags: Any, center: Any = None) -> list[HazardRecord]:
    """One canned record per enabled flag, in flood/haze/dengue/wind/heat order.

    ``center`` only feeds the canned dengue distance; nothing else depends on
    live inputs.
    """
    parsed = parse_mock_flags(flags)
    return [_canned(kind, center) for kind in parsed.enabled_kinds()]
