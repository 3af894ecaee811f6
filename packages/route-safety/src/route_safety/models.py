from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import StrEnum
from typing import Mapping


@dataclass(frozen=True)
class GeoPoint:
    lat: float
    lng: float

    def __post_init__(self) -> None:
        if not -90.0 <= self.lat <= 90.0:
            raise ValueError("lat must be between -90 and 90")
        if not -180.0 <= self.lng <= 180.0:
            raise ValueError("lng must be between -180 and 180")


class ReportType(StrEnum):
    POOR_STREET_LIGHTING = "Poor Street Lighting"
    HARASSMENT = "Harassment"
    ROAD_HAZARD = "Road Hazard"
    LACK_OF_POLICE_PRESENCE = "Lack of Police Presence"
    SUSPICIOUS_ACTIVITY = "Suspicious Activity"
    THEFT_ROBBERY = "Theft/Robbery"
    UNSAFE_AREA = "Unsafe Area"
    OTHER = "Other"


class Severity(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ReportStatus(StrEnum):
    PENDING = "pending"
    VERIFIED = "verified"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


ELIGIBLE_STATUSES = frozenset({ReportStatus.PENDING, ReportStatus.VERIFIED})


class RouteType(StrEnum):
    SAFEST = "safest"
    FASTEST = "fastest"
    BALANCED = "balanced"


class RoutePreference(StrEnum):
    SAFEST = "safest"
    FASTEST = "fastest"
    BALANCED = "balanced"


@dataclass(frozen=True)
class SafetyReport:
    """Read-only projection of a community report used as scoring input."""

    report_type: ReportType
    severity: Severity
    location: GeoPoint
    status: ReportStatus = ReportStatus.PENDING
    time_of_incident: datetime | None = None

    @property
    def is_eligible(self) -> bool:
        return self.status in ELIGIBLE_STATUSES


@dataclass(frozen=True)
class FactorSet:
    lighting: float
    police_presence: float
    crime_rate: float
    pedestrian_traffic: float
    road_condition: float
    community_reports: float

    def clamped(self, low: float = 0.0, high: float = 10.0) -> FactorSet:
        values = {item.name: min(high, max(low, getattr(self, item.name))) for item in fields(self)}
        return FactorSet(**values)

    def as_dict(self) -> dict[str, float]:
        return {item.name: getattr(self, item.name) for item in fields(self)}


FACTOR_WEIGHTS: dict[str, float] = {
    "lighting": 0.20,
    "police_presence": 0.20,
    "crime_rate": 0.25,
    "pedestrian_traffic": 0.15,
    "road_condition": 0.10,
    "community_reports": 0.10,
}


def weighted_overall(factors: FactorSet, weights: Mapping[str, float] | None = None) -> float:
    """Fixed-weight sum of the factors, rounded half-up to one decimal.

    Decimal keeps ties such as 6.75 from drifting to 6.7 under binary float.
    """
    active = weights or FACTOR_WEIGHTS
    total = sum(
        (Decimal(repr(float(getattr(factors, name)))) * Decimal(repr(weight)) for name, weight in active.items()),
        Decimal("0"),
    )
    return float(total.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class SafetyScore:
    factors: FactorSet
    weights: Mapping[str, float] = field(default_factory=lambda: dict(FACTOR_WEIGHTS), compare=False)

    @property
    def overall(self) -> float:
        return weighted_overall(self.factors, self.weights)

    def to_dict(self) -> dict:
        return {"overall": self.overall, "factors": self.factors.as_dict()}


@dataclass(frozen=True)
class RouteStep:
    instruction: str
    distance_meters: int
    duration_seconds: int
    start_location: GeoPoint
    end_location: GeoPoint
    polyline: str = ""


@dataclass(frozen=True)
class RouteLeg:
    distance_meters: int
    distance_text: str
    duration_seconds: int
    duration_text: str
    start_address: str
    end_address: str
    start_location: GeoPoint
    end_location: GeoPoint
    steps: tuple[RouteStep, ...] = ()


@dataclass(frozen=True)
class RouteCandidate:
    index: int
    polyline: str
    legs: tuple[RouteLeg, ...]
    summary: str = ""

    @property
    def primary_leg(self) -> RouteLeg:
        if not self.legs:
            raise ValueError("route candidate has no legs")
        return self.legs[0]

    @property
    def duration_seconds(self) -> int:
        return self.primary_leg.duration_seconds

    @property
    def distance_meters(self) -> int:
        return self.primary_leg.distance_meters


@dataclass(frozen=True)
class ScoredRoute:
    candidate: RouteCandidate
    score: SafetyScore
    route_type: RouteType
    tags: tuple[str, ...]

    @property
    def overall(self) -> float:
        return self.score.overall

    @property
    def duration_seconds(self) -> int:
        return self.candidate.duration_seconds
