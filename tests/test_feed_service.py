"""Tests for the data.gov.sg feed fan-out.

Upstream HTTP is served by ``httpx.MockTransport`` so no real network calls
are made.
"""
from __future__ import annotations

import asyncio

import httpx
import pytest

import backend.app.feed_service as feed_service
from backend.app.config import Settings
from backend.app.feed_service import (
    FeedSnapshot,
    fetch_snapshot,
    map_pm25_to_points,
    map_station_readings,
)

REALTIME = "https://feeds.test/rt"
DATASETS = "https://feeds.test/ds"
SIGNED_URL = "https://signed.test/dengue.geojson"

SETTINGS = Settings(
    api_key="test-key",
    realtime_api_base=REALTIME,
    dataset_api_base=DATASETS,
    dengue_dataset_id="d_test",
    retries=0,
)


def _station_payload(value: float | None = 12.4, unit: str = "mm") -> dict:
    return {
        "code": 0,
        "data": {
            "stations": [
                {
                    "id": "S1",
                    "deviceId": "S1",
                    "name": "Clementi Road",
                    "location": {"latitude": 1.3337, "longitude": 103.7768},
                },
                {
                    "id": "S2",
                    "name": "Label Only",
                    "labelLocation": {"latitude": 1.35, "longitude": 103.82},
                },
                {"id": "S9", "name": "No Location"},
            ],
            "readings": [
                {
                    "timestamp": "2026-10-19T10:05:00+08:00",
                    "data": [
                        {"stationId": "S1", "value": value},
                        {"stationId": "S2", "value": "3.5"},
                        {"stationId": "S9", "value": 40},
                        {"stationId": "S404", "value": 40},
                    ],
                }
            ],
            "readingUnit": unit,
        },
    }


def _pm25_payload() -> dict:
    return {
        "code": 0,
        "data": {
            "regionMetadata": [
                {"name": "west", "labelLocation": {"latitude": 1.35735, "longitude": 103.7}},
                {"name": "national", "labelLocation": {"latitude": 0, "longitude": 0}},
            ],
            "items": [
                {
                    "timestamp": "2026-10-19T10:00:00+08:00",
                    "readings": {"pm25_one_hourly": {"west": 48, "national": 30, "east": 12}},
                }
            ],
        },
    }


def _dengue_geojson() -> dict:
    return {
        "type": "FeatureCollection",
        "features": [
            {
                "type": "Feature",
                "properties": {"CASE_SIZE": 12, "LOCALITY": "Tampines St 81"},
                "geometry": {
                    "type": "Polygon",
                    "coordinates": [[[103.94, 1.35], [103.95, 1.35], [103.95, 1.36], [103.94, 1.35]]],
                },
            }
        ],
    }


def _make_handler(overrides: dict | None = None, seen: list | None = None):
    overrides = overrides or {}
    routes = {
        "/rt/rainfall": lambda: httpx.Response(200, json=_station_payload(12.4, "mm")),
        "/rt/relative-humidity": lambda: httpx.Response(200, json=_station_payload(91, "percentage")),
        "/rt/wind-speed": lambda: httpx.Response(200, json=_station_payload(18, "knots")),
        "/rt/air-temperature": lambda: httpx.Response(200, json=_station_payload(31.2, "deg C")),
        "/rt/pm25": lambda: httpx.Response(200, json=_pm25_payload()),
        "/ds/datasets/d_test/poll-download": lambda: httpx.Response(
            200, json={"code": 0, "data": {"url": SIGNED_URL}}
        ),
        "/dengue.geojson": lambda: httpx.Response(200, json=_dengue_geojson()),
    }
    routes.update(overrides)

    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        route = routes.get(request.url.path)
        if route is None:
            return httpx.Response(404, text="not found")
        return route()

    return handler


def _run_snapshot(handler, settings: Settings = SETTINGS) -> FeedSnapshot:
    async def _go() -> FeedSnapshot:
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await fetch_snapshot(settings, client=client)

    return asyncio.run(_go())


@pytest.fixture(autouse=True)
def _fresh_cache():
    feed_service.clear_cache()
    yield
    feed_service.clear_cache()


# ---------------------------------------------------------------------------
# Mappers
# ---------------------------------------------------------------------------


def test_map_station_readings_joins_stations_and_drops_unlocated():
    mapped = map_station_readings(_station_payload())
    assert mapped["unit"] == "mm"
    assert mapped["timestamp"] == "2026-10-19T10:05:00+08:00"
    assert [p["id"] for p in mapped["points"]] == ["S1", "S2"]

    first, second = mapped["points"]
    assert first == {
        "id": "S1",
        "name": "Clementi Road",
        "lat": 1.3337,
        "lon": 103.7768,
        "value": 12.4,
    }
    assert second["lat"] == 1.35
    assert second["value"] == 3.5


def test_map_station_readings_keeps_missing_value_as_none():
    mapped = map_station_readings(_station_payload(value=None))
    assert mapped["points"][0]["value"] is None


@pytest.mark.parametrize("payload", [None, {}, {"data": []}, {"data": {"readings": "bad"}}])
def test_map_station_readings_tolerates_garbage(payload):
    assert map_station_readings(payload)["points"] == []


def test_map_pm25_skips_national_and_unknown_regions():
    mapped = map_pm25_to_points(_pm25_payload())
    assert mapped["points"] == [
        {"id": "west", "name": "West", "lat": 1.35735, "lon": 103.7, "value": 48.0}
    ]


# ---------------------------------------------------------------------------
# Fan-out
# ---------------------------------------------------------------------------


def test_fetch_snapshot_collects_every_feed():
    seen: list[httpx.Request] = []
    snapshot = _run_snapshot(_make_handler(seen=seen))

    assert [p["value"] for p in snapshot.rainfall_points] == [12.4, 3.5]
    assert snapshot.hum_points[0]["value"] == 91
    assert snapshot.wind_points[0]["value"] == 18
    assert snapshot.temp_points[0]["value"] == 31.2
    assert snapshot.pm_points[0]["name"] == "West"
    assert snapshot.dengue_geojson["features"][0]["properties"]["LOCALITY"] == "Tampines St 81"

    realtime_requests = [r for r in seen if r.url.host == "feeds.test"]
    signed_requests = [r for r in seen if r.url.host == "signed.test"]
    assert all(r.headers.get("X-Api-Key") == "test-key" for r in realtime_requests)
    assert all("X-Api-Key" not in r.headers for r in signed_requests)


def test_fetch_snapshot_degrades_failed_sources_to_empty():
    handler = _make_handler(
        {
            "/rt/wind-speed": lambda: httpx.Response(500, text="boom"),
            "/rt/pm25": lambda: httpx.Response(200, text="<html>not json</html>"),
            "/ds/datasets/d_test/poll-download": lambda: httpx.Response(200, json={"code": 17}),
        }
    )
    snapshot = _run_snapshot(handler)

    assert snapshot.wind_points == []
    assert snapshot.pm_points == []
    assert snapshot.dengue_geojson is None
    assert len(snapshot.rainfall_points) == 2


def test_fetch_snapshot_transport_error_is_tolerated():
    def _raise():
        raise httpx.ConnectError("connection refused")

    snapshot = _run_snapshot(_make_handler({"/rt/rainfall": _raise}))
    assert snapshot.rainfall_points == []
    assert snapshot.hum_points


def test_request_json_retries_transient_status(monkeypatch):
    monkeypatch.setattr(feed_service, "_backoff_seconds", lambda attempt: 0)
    calls = {"n": 0}

    def _flaky():
        calls["n"] += 1
        if calls["n"] == 1:
            return httpx.Response(503, text="busy")
        return httpx.Response(200, json=_station_payload(21.0))

    settings = Settings(realtime_api_base=REALTIME, dataset_api_base=DATASETS, dengue_dataset_id="d_test", retries=1)
    snapshot = _run_snapshot(_make_handler({"/rt/rainfall": _flaky}), settings)
    assert calls["n"] == 2
    assert snapshot.rainfall_points[0]["value"] == 21.0


def test_stale_cache_served_within_hard_ttl(monkeypatch):
    clock = {"now": 1_000_000.0}
    monkeypatch.setattr(feed_service, "_now", lambda: clock["now"])

    _run_snapshot(_make_handler())

    failing = _make_handler({"/rt/rainfall": lambda: httpx.Response(503, text="down")})
    clock["now"] += 10 * 60
    stale = _run_snapshot(failing)
    assert [p["value"] for p in stale.rainfall_points] == [12.4, 3.5]

    clock["now"] += 10 * 60
    expired = _run_snapshot(failing)
    assert expired.rainfall_points == []


@pytest.mark.parametrize("data", [["not", "a", "dict"], "signed-url", {"url": 42}])
def test_malformed_poll_payload_falls_back_to_cached_dengue(monkeypatch, data):
    clock = {"now": 1_000_000.0}
    monkeypatch.setattr(feed_service, "_now", lambda: clock["now"])

    fresh = _run_snapshot(_make_handler())
    assert fresh.dengue_geojson is not None

    clock["now"] += 10 * 60
    broken = _make_handler(
        {"/ds/datasets/d_test/poll-download": lambda: httpx.Response(200, json={"code": 0, "data": data})}
    )
    stale = _run_snapshot(broken)
    assert stale.dengue_geojson == fresh.dengue_geojson

    feed_service.clear_cache()
    assert _run_snapshot(broken).dengue_geojson is None


def test_station_mapping_drops_oversized_integer_coordinates():
    payload = _station_payload()
    payload["data"]["stations"][0]["location"] = {"latitude": 10**400, "longitude": 103.7768}
    mapped = map_station_readings(payload)
    assert [p["id"] for p in mapped["points"]] == ["S2"]
