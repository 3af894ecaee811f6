from __future__ import annotations

from collections.abc import Callable
import logging
from typing import Any

import httpx

from route_safety.errors import ProviderError
from route_safety.models import GeoPoint, RouteCandidate, RouteLeg, RouteStep
from shared.security import strip_html_tags

logger = logging.getLogger(__name__)


class DirectionsProviderClient:
    """Google Directions JSON client returning every alternative route."""

    def __init__(
        self,
        base_url: str,
        api_key: str | None,
        mode: str = "driving",
        timeout_seconds: float = 5.0,
        client_factory: Callable[[], httpx.AsyncClient] | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._mode = mode
        self._timeout_seconds = timeout_seconds
        self._client_factory = client_factory

    async def fetch_routes(self, origin: GeoPoint, destination: GeoPoint) -> list[RouteCandidate]:
        params: dict[str, Any] = {
            "origin": f"{origin.lat},{origin.lng}",
            "destination": f"{destination.lat},{destination.lng}",
            "alternatives": "true",
            "mode": self._mode,
        }
        if self._api_key:
            params["key"] = self._api_key

        try:
            factory = self._client_factory or (lambda: httpx.AsyncClient(timeout=self._timeout_seconds))
            async with factory() as client:
                response = await client.get(f"{self._base_url}/directions/json", params=params)
                response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise ProviderError("PROVIDER_TIMEOUT", "directions provider timeout") from exc
        except httpx.HTTPStatusError as exc:
            raise ProviderError("PROVIDER_HTTP_ERROR", "directions provider returned error") from exc
        except httpx.HTTPError as exc:
            raise ProviderError("PROVIDER_FAILURE", "directions provider request failed") from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise ProviderError("PROVIDER_FAILURE", "directions provider returned a non-JSON body") from exc
        if not isinstance(payload, dict):
            raise ProviderError("PROVIDER_FAILURE", "directions provider returned an unexpected payload")
        status = str(payload.get("status", ""))
        routes = payload.get("routes") or []
        if status != "OK" or not routes:
            logger.info("directions_no_route", extra={"component": "api", "provider_status": status})
            raise ProviderError("ROUTE_NOT_FOUND", f"unable to calculate route ({status or 'EMPTY'})")
        try:
            return [self._to_candidate(index, item) for index, item in enumerate(routes)]
        except (KeyError, TypeError, ValueError) as exc:
            raise ProviderError("PROVIDER_FAILURE", "directions provider returned an unreadable route") from exc

    def _to_candidate(self, index: int, route: dict[str, Any]) -> RouteCandidate:
        legs = tuple(self._to_leg(leg) for leg in route.get("legs", []))
        if not legs:
            raise ValueError("route has no legs")
        return RouteCandidate(
            index=index,
            polyline=route["overview_polyline"]["points"],
            legs=legs,
            summary=str(route.get("summary", "")),
        )

    def _to_leg(self, leg: dict[str, Any]) -> RouteLeg:
        return RouteLeg(
            distance_meters=int(leg["distance"]["value"]),
            distance_text=str(leg["distance"].get("text", "")),
            duration_seconds=int(leg["duration"]["value"]),
            duration_text=str(leg["duration"].get("text", "")),
            start_address=str(leg.get("start_address", "")),
            end_address=str(leg.get("end_address", "")),
            start_location=_point(leg["start_location"]),
            end_location=_point(leg["end_location"]),
            steps=tuple(self._to_step(step) for step in leg.get("steps", [])),
        )

    def _to_step(self, step: dict[str, Any]) -> RouteStep:
        return RouteStep(
            instruction=strip_html_tags(str(step.get("html_instructions", ""))),
            distance_meters=int(step["distance"]["value"]),
            duration_seconds=int(step["duration"]["value"]),
            start_location=_point(step["start_location"]),
            end_location=_point(step["end_location"]),
            polyline=str((step.get("polyline") or {}).get("points", "")),
        )


def _point(raw: dict[str, Any]) -> GeoPoint:
    return GeoPoint(lat=float(raw["lat"]), lng=float(raw["lng"]))
