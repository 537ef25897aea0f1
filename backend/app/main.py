from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware

from .cards import build_card_items
from .config import load_settings
from .feed_service import FeedSnapshot, fetch_snapshot
from .hazard_service import decide_global_hazard, evaluate_all_hazards
from .mock_hazards import parse_mock_flags
from .schemas import (
    Coordinate,
    HazardEvaluationResponse,
    HazardGridResponse,
    HazardRecord,
    HazardSnapshotRequest,
)

logger = logging.getLogger(__name__)

settings = load_settings()

app = FastAPI(title="Hazard Decision API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _center(lat: float | None, lon: float | None) -> Coordinate | None:
    if lat is None and lon is None:
        return None
    if lat is None or lon is None:
        raise HTTPException(status_code=422, detail="lat and lon must be provided together.")
    return Coordinate(lat=lat, lon=lon)


async def _live_snapshot() -> FeedSnapshot:
    # Mock mode ignores live readings, so skip the upstream round trip.
    if parse_mock_flags(settings.mock_flags).any_enabled:
        logger.info("Mock hazard flags enabled: %s", ",".join(settings.mock_flags))
        return FeedSnapshot()
    return await fetch_snapshot(settings)


@app.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/api/hazards/top", response_model=HazardRecord)
async def top_hazard(
    lat: float | None = Query(None, ge=-90, le=90),
    lon: float | None = Query(None, ge=-180, le=180),
) -> HazardRecord:
    """Single hazard for the status banner, from the latest live feeds."""
    center = _center(lat, lon)
    snapshot = await _live_snapshot()
    return decide_global_hazard(
        center=center,
        mock_flags=settings.mock_flags,
        km_radius=settings.dengue_radius_km,
        **snapshot.engine_inputs(),
    )


@app.get("/api/hazards", response_model=HazardGridResponse)
async def hazard_grid(
    lat: float | None = Query(None, ge=-90, le=90),
    lon: float | None = Query(None, ge=-180, le=180),
    limit: int = Query(5, ge=1, le=5),
) -> HazardGridResponse:
    """One record per hazard kind plus display cards for the first ``limit``."""
    center = _center(lat, lon)
    snapshot = await _live_snapshot()
    hazards = evaluate_all_hazards(
        center=center,
        mock_flags=settings.mock_flags,
        km_radius=settings.dengue_radius_km,
        **snapshot.engine_inputs(),
    )
    return HazardGridResponse(hazards=hazards, cards=build_card_items(hazards, limit))


@app.post("/api/hazards/evaluate", response_model=HazardEvaluationResponse)
def evaluate_snapshot(payload: HazardSnapshotRequest) -> HazardEvaluationResponse:
    """Classify a caller-supplied snapshot without touching any upstream feed."""
    inputs = {
        "center": payload.center,
        "rainfall_points": payload.rainfall_points,
        "hum_points": payload.hum_points,
        "pm_points": payload.pm_points,
        "wind_points": payload.wind_points,
        "temp_points": payload.temp_points,
        "dengue_geojson": payload.dengue_geojson,
        "mock_flags": payload.mock_flags,
        "km_radius": payload.km_radius,
    }
    return HazardEvaluationResponse(
        top=decide_global_hazard(**inputs),
        hazards=evaluate_all_hazards(**inputs),
    )
