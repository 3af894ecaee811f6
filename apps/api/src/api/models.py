from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from devkit.timezone import now_iso


@dataclass
class PlaceRecord:
    address: str
    lat: float
    lng: float


@dataclass
class RouteFeedback:
    rating: int
    comment: str | None = None
    felt_safe: bool | None = None


@dataclass
class RouteRecord:
    route_id: str
    user_id: str
    origin: PlaceRecord
    destination: PlaceRecord
    distance_meters: int
    duration_seconds: int
    polyline: str
    route_type: str
    safety_score: dict[str, Any]
    tags: list[str] = field(default_factory=list)
    steps: list[dict[str, Any]] = field(default_factory=list)
    time_of_day: str = "morning"
    is_saved: bool = False
    is_completed: bool = False
    completed_at: str | None = None
    feedback: RouteFeedback | None = None
    created_at: str = field(default_factory=now_iso)
    updated_at: str = field(default_factory=now_iso)


@dataclass
class ReportLocation:
    lat: float
    lng: float
    address: str | None = None
    landmark: str | None = None


@dataclass
class ReportComment:
    comment_id: str
    user_id: str
    text: str
    created_at: str = field(default_factory=now_iso)


@dataclass
class ReportRecord:
    report_id: str
    user_id: str
    report_type: str
    location: ReportLocation
    description: str
    severity: str = "medium"
    status: str = "pending"
    is_anonymous: bool = False
    time_of_incident: str = field(default_factory=now_iso)
    helpful_count: int = 0
    votes: dict[str, str] = field(default_factory=dict)
    comments: list[ReportComment] = field(default_factory=list)
    created_at: str = field(default_factory=now_iso)
    updated_at: str = field(default_factory=now_iso)
