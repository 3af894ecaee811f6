from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from route_safety.models import RoutePreference


class Coordinates(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class RouteCalculateRequest(BaseModel):
    origin: Coordinates
    destination: Coordinates
    route_preference: RoutePreference = RoutePreference.SAFEST


class RouteFeedbackRequest(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comment: str | None = Field(default=None, max_length=1000)
    felt_safe: bool | None = None


class DistanceItem(BaseModel):
    meters: int
    text: str


class DurationItem(BaseModel):
    seconds: int
    text: str


class RouteResultItem(BaseModel):
    route_id: str
    route_type: str
    distance: DistanceItem
    duration: DurationItem
    safety_score: float
    safety_factors: dict[str, float]
    tags: list[str]
    polyline: str
    steps: list[dict[str, Any]]
    time_of_day: str
