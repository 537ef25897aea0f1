"""Live feeds from data.gov.sg for the hazard engine.

Fetches the latest rainfall, wind, temperature, humidity and PM2.5 readings
plus the dengue cluster GeoJSON, normalises them to point lists and keeps a
small in-memory cache so a flaky upstream can fall back to a recent copy.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

import httpx

from .config import Settings
from .geo import finite_float

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}

STATION_ENDPOINTS = {
    "rainfall": "/rainfall",
    "wind": "/wind-speed",
    "temperature": "/air-temperature",
    "humidity": "/relative-humidity",
}
PM25_ENDPOINT = "/pm25"

STATION_UNITS = {
    "rainfall": "mm",
    "wind": "knots",
    "temperature": "°C",
    "humidity": "%",
}

# Hard TTLs for stale-if-error, in seconds.
CACHE_HARD_TTL = {
    "rainfall": 15 * 60,
    "wind": 60 * 60,
    "temperature": 60 * 60,
    "humidity": 60 * 60,
    "pm25": 60 * 60,
    "dengue": 60 * 60,
}

CacheValue = tuple[float, Any]

_CACHE: dict[str, CacheValue] = {}


class UpstreamAPIError(RuntimeError):
    def __init__(self, stage: str, message: str):
        super().__init__(f"[{stage}] {message}")
        self.stage = stage
        self.message = message


@dataclass(frozen=True)
class FeedSnapshot:
    rainfall_points: list[dict[str, Any]] = field(default_factory=list)
    hum_points: list[dict[str, Any]] = field(default_factory=list)
    pm_points: list[dict[str, Any]] = field(default_factory=list)
    wind_points: list[dict[str, Any]] = field(default_factory=list)
    temp_points: list[dict[str, Any]] = field(default_factory=list)
    dengue_geojson: dict[str, Any] | None = None

    def engine_inputs(self) -> dict[str, Any]:
        return {
            "rainfall_points": self.rainfall_points,
            "hum_points": self.hum_points,
            "pm_points": self.pm_points,
            "wind_points": self.wind_points,
            "temp_points": self.temp_points,
            "dengue_geojson": self.dengue_geojson,
        }


def clear_cache() -> None:
    _CACHE.clear()


def _now() -> float:
    return time.time()


def _backoff_seconds(attempt: int) -> float:
    return min(4.0, 0.5 * (2**attempt))


def _short_error_text(text: str, limit: int = 240) -> str:
    one_line = " ".join(text.split())
    if len(one_line) <= limit:
        return one_line
    return one_line[:limit] + "..."


def _headers(settings: Settings) -> dict[str, str]:
    headers = {"Accept": "application/json", "User-Agent": "hazard-engine/0.1"}
    if settings.api_key:
        headers["X-Api-Key"] = settings.api_key
    return headers


async def request_json(
    client: httpx.AsyncClient,
    url: str,
    *,
    params: dict[str, Any] | None,
    stage: str,
    settings: Settings,
    headers: dict[str, str] | None = None,
) -> Any:
    last_error: Exception | None = None
    for attempt in range(settings.retries + 1):
        try:
            response = await client.get(url, params=params, timeout=settings.timeout, headers=headers)
        except (httpx.TimeoutException, httpx.TransportError) as exc:
            last_error = exc
            if attempt < settings.retries:
                await asyncio.sleep(_backoff_seconds(attempt))
                continue
            raise UpstreamAPIError(stage, f"Network error after retries: {exc!s}") from exc

        status = response.status_code
        if status in RETRYABLE_STATUS_CODES:
            last_error = UpstreamAPIError(
                stage, f"HTTP {status}: {_short_error_text(response.text)}"
            )
            if attempt < settings.retries:
                await asyncio.sleep(_backoff_seconds(attempt))
                continue
            raise last_error

        if 400 <= status < 500:
            raise UpstreamAPIError(stage, f"HTTP {status}: {_short_error_text(response.text)}")

        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamAPIError(
                stage, f"Invalid JSON in upstream response (HTTP {status})"
            ) from exc

    if last_error is not None:
        raise UpstreamAPIError(stage, f"Failed request after retries: {last_error!s}")
    raise UpstreamAPIError(stage, "Failed request after retries.")


async def _with_cache(key: str, fetcher: Callable[[], Awaitable[Any]]) -> Any:
    """Fetch fresh data; on upstream failure serve a cached copy within its hard TTL."""
    cached = _CACHE.get(key)
    try:
        fresh = await fetcher()
    except UpstreamAPIError:
        if cached:
            ts, data = cached
            age = _now() - ts
            if age <= CACHE_HARD_TTL[key]:
                logger.info("Serving stale %s feed (%.0fs old)", key, age)
                return data
        raise
    _CACHE[key] = (_now(), fresh)
    return fresh


def _station_coords(station: dict[str, Any]) -> tuple[float | None, float | None]:
    for key, lat_key, lon_key in (
        ("labelLocation", "latitude", "longitude"),
        ("location", "latitude", "longitude"),
        ("Location", "Latitude", "Longitude"),
    ):
        loc = station.get(key)
        if isinstance(loc, dict) and loc.get(lat_key) is not None and loc.get(lon_key) is not None:
            return finite_float(loc.get(lat_key)), finite_float(loc.get(lon_key))
    return None, None


def map_station_readings(payload: Any, unit: str | None = None) -> dict[str, Any]:
    """Join station metadata with the newest reading batch.

    A missing reading stays ``None``; stations without coordinates are dropped.
    """
    data = payload.get("data") if isinstance(payload, dict) else None
    data = data if isinstance(data, dict) else {}
    stations = data.get("stations") if isinstance(data.get("stations"), list) else []
    readings = data.get("readings") if isinstance(data.get("readings"), list) else []

    first = readings[0] if readings and isinstance(readings[0], dict) else {}
    batch = first.get("data") if isinstance(first.get("data"), list) else []

    station_by_id = {
        station.get("id") or station.get("deviceId"): station
        for station in stations
        if isinstance(station, dict)
    }

    points: list[dict[str, Any]] = []
    for reading in batch:
        if not isinstance(reading, dict):
            continue
        station_id = reading.get("stationId")
        station = station_by_id.get(station_id) or {}
        lat, lon = _station_coords(station)
        if lat is None or lon is None:
            continue
        points.append(
            {
                "id": station_id,
                "name": station.get("name") or station_id,
                "lat": lat,
                "lon": lon,
                "value": finite_float(reading.get("value")),
            }
        )

    return {
        "timestamp": first.get("timestamp"),
        "unit": data.get("readingUnit") or unit,
        "points": points,
    }


def map_pm25_to_points(payload: Any) -> dict[str, Any]:
    """Regional PM2.5 readings placed at each region's label location."""
    data = payload.get("data") if isinstance(payload, dict) else None
    data = data if isinstance(data, dict) else {}
    meta = data.get("regionMetadata") or data.get("region_metadata")
    if not isinstance(meta, list):
        meta = []
    items = data.get("items") if isinstance(data.get("items"), list) else []

    first = items[0] if items and isinstance(items[0], dict) else {}
    block = first.get("readings")
    readings = block.get("pm25_one_hourly") if isinstance(block, dict) else None
    if not isinstance(readings, dict):
        readings = {}

    loc_by_region: dict[str, dict[str, Any]] = {}
    for entry in meta:
        if isinstance(entry, dict):
            loc = entry.get("labelLocation") or entry.get("location") or {}
            loc_by_region[str(entry.get("name") or "").lower()] = loc

    points: list[dict[str, Any]] = []
    for region, value in readings.items():
        if not isinstance(region, str) or not region or region.lower() == "national":
            continue
        loc = loc_by_region.get(region.lower()) or {}
        lat = finite_float(loc.get("latitude"))
        lon = finite_float(loc.get("longitude"))
        if lat is None or lon is None:
            continue
        points.append(
            {
                "id": region,
                "name": region[0].upper() + region[1:],
                "lat": lat,
                "lon": lon,
                "value": finite_float(value),
            }
        )

    return {"timestamp": first.get("timestamp"), "unit": "µg/m³", "points": points}


async def fetch_station_feed(
    client: httpx.AsyncClient, kind: str, settings: Settings
) -> dict[str, Any]:
    url = f"{settings.realtime_api_base}{STATION_ENDPOINTS[kind]}"

    async def _fetch() -> Any:
        return await request_json(
            client, url, params=None, stage=kind, settings=settings, headers=_headers(settings)
        )

    payload = await _with_cache(kind, _fetch)
    return map_station_readings(payload, STATION_UNITS[kind])


async def fetch_pm25_feed(client: httpx.AsyncClient, settings: Settings) -> dict[str, Any]:
    url = f"{settings.realtime_api_base}{PM25_ENDPOINT}"

    async def _fetch() -> Any:
        return await request_json(
            client, url, params=None, stage="pm25", settings=settings, headers=_headers(settings)
        )

    payload = await _with_cache("pm25", _fetch)
    return map_pm25_to_points(payload)


async def fetch_dengue_geojson(client: httpx.AsyncClient, settings: Settings) -> dict[str, Any]:
    poll_url = f"{settings.dataset_api_base}/datasets/{settings.dengue_dataset_id}/poll-download"

    async def _fetch() -> Any:
        meta = await request_json(
            client, poll_url, params=None, stage="dengue_poll", settings=settings, headers=_headers(settings)
        )
        if not isinstance(meta, dict) or meta.get("code") != 0:
            raise UpstreamAPIError("dengue_poll", "poll-download failed")
        data = meta.get("data")
        signed_url = data.get("url") if isinstance(data, dict) else None
        if not isinstance(signed_url, str) or not signed_url:
            raise UpstreamAPIError("dengue_poll", "poll-download returned no url")

        geojson = await request_json(
            client, signed_url, params=None, stage="dengue_geojson", settings=settings
        )
        if not isinstance(geojson, dict) or geojson.get("type") != "FeatureCollection":
            raise UpstreamAPIError("dengue_geojson", "Expected a GeoJSON FeatureCollection")
        return geojson

    return await _with_cache("dengue", _fetch)


def _points_or_empty(name: str, result: Any) -> list[dict[str, Any]]:
    if isinstance(result, BaseException):
        logger.warning("%s feed unavailable: %s", name, result)
        return []
    return result.get("points") or []


async def fetch_snapshot(
    settings: Settings,
    *,
    client: httpx.AsyncClient | None = None,
) -> FeedSnapshot:
    """Fetch every feed concurrently; a failed source becomes an empty input."""
    owns_client = client is None
    if client is None:
        client = httpx.AsyncClient(
            timeout=httpx.Timeout(settings.timeout, connect=min(settings.timeout, 5.0)),
            follow_redirects=True,
        )
    try:
        rain, hum, pm, wind, temp, dengue = await asyncio.gather(
            fetch_station_feed(client, "rainfall", settings),
            fetch_station_feed(client, "humidity", settings),
            fetch_pm25_feed(client, settings),
            fetch_station_feed(client, "wind", settings),
            fetch_station_feed(client, "temperature", settings),
            fetch_dengue_geojson(client, settings),
            return_exceptions=True,
        )
    finally:
        if owns_client:
            await client.aclose()

    if isinstance(dengue, BaseException):
        logger.warning("dengue feed unavailable: %s", dengue)
        dengue = None

    return FeedSnapshot(
        rainfall_points=_points_or_empty("rainfall", rain),
        hum_points=_points_or_empty("humidity", hum),
        pm_points=_points_or_empty("pm25", pm),
        wind_points=_points_or_empty("wind", wind),
        temp_points=_points_or_empty("temperature", temp),
        dengue_geojson=dengue,
    )
