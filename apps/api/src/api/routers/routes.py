from __future__ import annotations

from dataclasses import asdict
import logging
import time
from typing import Any

from fastapi import APIRouter, Depends, Query

from route_safety.errors import ProviderError, RouteSafetyError
from route_safety.models import GeoPoint

from api.circuit_breaker import CircuitBreaker, CircuitOpenError
from api.dependencies import get_circuit_breaker, get_directions_timeout_seconds, get_route_service
from api.errors import ApiError, from_provider_error, from_scoring_error, not_found
from api.response import success_response
from api.schemas.route import RouteCalculateRequest, RouteFeedbackRequest
from api.security import require_authenticated
from api.services.route_service import RouteService, serialize_route

router = APIRouter(prefix="/v1/routes", tags=["routes"])
logger = logging.getLogger(__name__)


@router.post("/calculate")
async def calculate_routes(
    body: RouteCalculateRequest,
    auth: dict[str, Any] = Depends(require_authenticated),
    service: RouteService = Depends(get_route_service),
    circuit_breaker: CircuitBreaker = Depends(get_circuit_breaker),
    directions_timeout: float = Depends(get_directions_timeout_seconds),
) -> dict:
    origin = GeoPoint(lat=body.origin.lat, lng=body.origin.lng)
    destination = GeoPoint(lat=body.destination.lat, lng=body.destination.lng)
    now = time.time()
    try:
        candidates = await circuit_breaker.call(
            lambda: service.fetch_candidates(origin, destination),
            now_seconds=now,
            timeout_seconds=directions_timeout,
        )
    except CircuitOpenError as exc:
        raise ApiError("PROVIDER_UNAVAILABLE", "directions: please retry later", 503) from exc
    except TimeoutError as exc:
        raise ApiError("PROVIDER_TIMEOUT", "directions: provider timeout", 504) from exc
    except ProviderError as exc:
        raise from_provider_error(exc) from exc

    try:
        ranked = await service.rank_candidates(candidates, body.route_preference)
    except RouteSafetyError as exc:
        raise from_scoring_error(exc) from exc

    try:
        items = await service.store_results(auth["user_id"], ranked)
    except Exception as exc:
        logger.exception("route_persist_failed", extra={"component": "api", "user_id": auth["user_id"]})
        raise ApiError("PERSISTENCE_FAILURE", "persistence: unable to store routes", 500) from exc

    return success_response(
        [item.model_dump() for item in items],
        meta={"count": len(items), "route_preference": body.route_preference.value},
    )


@router.get("/history")
async def route_history(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    auth: dict[str, Any] = Depends(require_authenticated),
    service: RouteService = Depends(get_route_service),
) -> dict:
    items, meta = await service.history(auth["user_id"], page, limit)
    return success_response(items, meta=meta)


@router.get("/{route_id}")
async def get_route(
    route_id: str,
    auth: dict[str, Any] = Depends(require_authenticated),
    service: RouteService = Depends(get_route_service),
) -> dict:
    record = await service.get(auth["user_id"], route_id)
    if record is None:
        raise not_found("route")
    return success_response(serialize_route(record), meta={})


@router.post("/{route_id}/save")
async def save_route(
    route_id: str,
    auth: dict[str, Any] = Depends(require_authenticated),
    service: RouteService = Depends(get_route_service),
) -> dict:
    record = await service.save(auth["user_id"], route_id)
    if record is None:
        raise not_found("route")
    return success_response({"route_id": record.route_id, "is_saved": record.is_saved}, meta={})


@router.post("/{route_id}/feedback")
async def submit_route_feedback(
    route_id: str,
    body: RouteFeedbackRequest,
    auth: dict[str, Any] = Depends(require_authenticated),
    service: RouteService = Depends(get_route_service),
) -> dict:
    record = await service.submit_feedback(auth["user_id"], route_id, body.rating, body.comment, body.felt_safe)
    if record is None:
        raise not_found("route")
    return success_response(
        {
            "route_id": record.route_id,
            "is_completed": record.is_completed,
            "completed_at": record.completed_at,
            "feedback": asdict(record.feedback) if record.feedback else None,
        },
        meta={},
    )
