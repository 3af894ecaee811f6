from __future__ import annotations

from collections.abc import Callable
from dataclasses import asdict
import logging
from typing import Any
from uuid import uuid4

from devkit.timezone import now_local
from route_safety.classifier import time_of_day
from route_safety.models import GeoPoint, RouteCandidate, RoutePreference, RouteStep, ScoredRoute
from route_safety.pipeline import RouteSafetyPipeline

from api.clients.directions_provider_client import DirectionsProviderClient
from api.models import PlaceRecord, RouteFeedback, RouteRecord
from api.repositories.route_repository import RouteRepository
from api.schemas.route import DistanceItem, DurationItem, RouteResultItem

logger = logging.getLogger(__name__)


def _step_dict(step: RouteStep) -> dict[str, Any]:
    return {
        "instruction": step.instruction,
        "distance_meters": step.distance_meters,
        "duration_seconds": step.duration_seconds,
        "start_location": {"lat": step.start_location.lat, "lng": step.start_location.lng},
        "end_location": {"lat": step.end_location.lat, "lng": step.end_location.lng},
        "polyline": step.polyline,
    }


def serialize_route(record: RouteRecord, include_steps: bool = True) -> dict[str, Any]:
    payload = asdict(record)
    if not include_steps:
        payload.pop("steps", None)
    return payload


class RouteService:
    def __init__(
        self,
        provider: DirectionsProviderClient,
        pipeline: RouteSafetyPipeline,
        repository: RouteRepository,
        hour_fn: Callable[[], int] = lambda: now_local().hour,
    ) -> None:
        self._provider = provider
        self._pipeline = pipeline
        self._repository = repository
        self._hour_fn = hour_fn

    async def fetch_candidates(self, origin: GeoPoint, destination: GeoPoint) -> list[RouteCandidate]:
        return await self._provider.fetch_routes(origin, destination)

    async def rank_candidates(
        self,
        candidates: list[RouteCandidate],
        preference: RoutePreference,
    ) -> list[ScoredRoute]:
        return await self._pipeline.evaluate(candidates, preference)

    async def store_results(self, user_id: str, ranked: list[ScoredRoute]) -> list[RouteResultItem]:
        period = time_of_day(self._hour_fn())
        records: list[RouteRecord] = []
        items: list[RouteResultItem] = []
        for route in ranked:
            leg = route.candidate.primary_leg
            steps = [_step_dict(step) for step in leg.steps]
            record = RouteRecord(
                route_id=str(uuid4()),
                user_id=user_id,
                origin=PlaceRecord(address=leg.start_address, lat=leg.start_location.lat, lng=leg.start_location.lng),
                destination=PlaceRecord(address=leg.end_address, lat=leg.end_location.lat, lng=leg.end_location.lng),
                distance_meters=leg.distance_meters,
                duration_seconds=leg.duration_seconds,
                polyline=route.candidate.polyline,
                route_type=route.route_type.value,
                safety_score=route.score.to_dict(),
                tags=list(route.tags),
                steps=steps,
                time_of_day=period,
            )
            records.append(record)
            items.append(
                RouteResultItem(
                    route_id=record.route_id,
                    route_type=record.route_type,
                    distance=DistanceItem(meters=leg.distance_meters, text=leg.distance_text),
                    duration=DurationItem(seconds=leg.duration_seconds, text=leg.duration_text),
                    safety_score=route.overall,
                    safety_factors=route.score.factors.as_dict(),
                    tags=list(route.tags),
                    polyline=route.candidate.polyline,
                    steps=steps,
                    time_of_day=period,
                )
            )
        for record in records:
            await self._repository.add(record)
        logger.info("routes_stored", extra={"component": "api", "user_id": user_id, "route_count": len(records)})
        return items

    async def history(self, user_id: str, page: int, limit: int) -> tuple[list[dict[str, Any]], dict[str, int]]:
        records, total = await self._repository.list_for_user(user_id, page, limit)
        meta = {"page": page, "limit": limit, "total": total, "total_pages": -(-total // limit)}
        return [serialize_route(record, include_steps=False) for record in records], meta

    async def get(self, user_id: str, route_id: str) -> RouteRecord | None:
        return await self._repository.get(user_id, route_id)

    async def save(self, user_id: str, route_id: str) -> RouteRecord | None:
        return await self._repository.mark_saved(user_id, route_id)

    async def submit_feedback(
        self,
        user_id: str,
        route_id: str,
        rating: int,
        comment: str | None,
        felt_safe: bool | None,
    ) -> RouteRecord | None:
        feedback = RouteFeedback(rating=rating, comment=comment, felt_safe=felt_safe)
        return await self._repository.record_feedback(user_id, route_id, feedback)
