from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

HazardKind = Literal["flood", "haze", "dengue", "wind", "heat", "none"]
Severity = Literal["safe", "warning", "danger"]

HAZARD_KINDS: tuple[str, ...] = ("flood", "haze", "dengue", "wind", "heat")

SEVERITY_RANK: dict[str, int] = {"danger": 3, "warning": 2, "safe": 1}


class ErrorResponse(BaseModel):
    detail: str


class Coordinate(BaseModel):
    model_config = ConfigDict(frozen=True)

    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180)


class StationPoint(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str | None = None
    name: str | None = None
    lat: float | None = None
    lon: float | None = None
    value: float | None = None


class _Metrics(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class FloodMetrics(_Metrics):
    kind: Literal["flood"] = "flood"
    mm: float | None = None
    rh: float | None = None


class HazeMetrics(_Metrics):
    kind: Literal["haze"] = "haze"
    pm25: float | None = None
    region: str | None = None


class DengueMetrics(_Metrics):
    kind: Literal["dengue"] = "dengue"
    cases: int | None = None
    km: float | None = None
    locality: str | None = None


class WindMetrics(_Metrics):
    kind: Literal["wind"] = "wind"
    kt: float | None = None
    region: str | None = None


class HeatMetrics(_Metrics):
    kind: Literal["heat"] = "heat"
    hi: float | None = None
    region: str | None = None


HazardMetrics = Annotated[
    Union[FloodMetrics, HazeMetrics, DengueMetrics, WindMetrics, HeatMetrics],
    Field(discriminator="kind"),
]


class HazardRecord(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    kind: HazardKind
    severity: Severity
    title: str | None = None
    location_name: str | None = None
    reason: str | None = None
    metrics: HazardMetrics | None = None

    @property
    def rank(self) -> int:
        return SEVERITY_RANK[self.severity]


class MockFlags(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    flood: bool = False
    haze: bool = False
    dengue: bool = False
    wind: bool = False
    heat: bool = False

    @property
    def any_enabled(self) -> bool:
        return any(getattr(self, kind) for kind in HAZARD_KINDS)

    def enabled_kinds(self) -> list[str]:
        return [kind for kind in HAZARD_KINDS if getattr(self, kind)]


class HazardSnapshotRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)

    center: Coordinate | None = None
    rainfall_points: list[StationPoint] = Field(default_factory=list, max_length=2000)
    hum_points: list[StationPoint] = Field(default_factory=list, max_length=2000)
    pm_points: list[StationPoint] = Field(default_factory=list, max_length=200)
    wind_points: list[StationPoint] = Field(default_factory=list, max_length=2000)
    temp_points: list[StationPoint] = Field(default_factory=list, max_length=2000)
    dengue_geojson: dict[str, Any] | None = None
    mock_flags: MockFlags = Field(default_factory=MockFlags)
    km_radius: float = Field(default=5.0, gt=0, le=100)

    @field_validator("dengue_geojson")
    @classmethod
    def validate_feature_collection(cls, value: dict[str, Any] | None) -> dict[str, Any] | None:
        if value is None:
            return value
        if value.get("type") != "FeatureCollection":
            raise ValueError("dengue_geojson must be a GeoJSON FeatureCollection")
        return value


class HazardCard(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    level: str
    color: str
    desc: str
    hazard: HazardRecord


class HazardEvaluationResponse(BaseModel):
    top: HazardRecord
    hazards: list[HazardRecord] = Field(..., min_length=5, max_length=5)


class HazardGridResponse(BaseModel):
    hazards: list[HazardRecord] = Field(..., min_length=5, max_length=5)
    cards: list[HazardCard] = Field(default_factory=list, max_length=5)
