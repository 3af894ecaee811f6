from __future__ import annotations

import asyncio
from datetime import datetime, timezone

from fastapi.testclient import TestClient

from api.app import create_app
from api.circuit_breaker import CircuitBreaker
from api.dependencies import (
    get_circuit_breaker,
    get_directions_timeout_seconds,
    get_jwt_manager,
    get_route_service,
    is_directions_outage,
)
from api.repositories.route_repository import RouteRepository
from api.services.route_service import RouteService
from route_safety.errors import ProviderError
from route_safety.models import (
    GeoPoint,
    ReportStatus,
    ReportType,
    RouteCandidate,
    RouteLeg,
    RouteStep,
    SafetyReport,
    Severity,
)
from route_safety.pipeline import RouteSafetyPipeline
from route_safety.polyline import encode
from route_safety.report_index import InMemoryReportIndex
from route_safety.scoring import SafetyScoringEngine

ORIGIN = GeoPoint(lat=37.50, lng=127.00)
DESTINATION = GeoPoint(lat=37.52, lng=127.00)


def auth_headers(user_id: str) -> dict[str, str]:
    token = get_jwt_manager().issue_access_token(user_id, jti=f"jti-{user_id}")
    return {"Authorization": f"Bearer {token}"}


def _candidate(index: int, lng: float, duration_seconds: int) -> RouteCandidate:
    points = [GeoPoint(lat=37.5 + step * 0.001, lng=lng) for step in range(21)]
    step = RouteStep(
        instruction="Head north",
        distance_meters=2200,
        duration_seconds=duration_seconds,
        start_location=ORIGIN,
        end_location=DESTINATION,
    )
    leg = RouteLeg(
        distance_meters=2200,
        distance_text="2.2 km",
        duration_seconds=duration_seconds,
        duration_text=f"{duration_seconds // 60} mins",
        start_address="Origin",
        end_address="Destination",
        start_location=ORIGIN,
        end_location=DESTINATION,
        steps=(step,),
    )
    return RouteCandidate(index=index, polyline=encode(points), legs=(leg,))


class StubProvider:
    def __init__(self, candidates: list[RouteCandidate] | None = None, error: Exception | None = None) -> None:
        self._candidates = candidates or []
        self._error = error
        self.calls = 0

    async def fetch_routes(self, origin: GeoPoint, destination: GeoPoint) -> list[RouteCandidate]:
        self.calls += 1
        if self._error is not None:
            raise self._error
        return list(self._candidates)


class FailingIndex:
    async def find_nearby(self, point: GeoPoint, max_distance_meters: int) -> list[SafetyReport]:
        raise ConnectionError("index down")


class SlowIndex:
    async def find_nearby(self, point: GeoPoint, max_distance_meters: int) -> list[SafetyReport]:
        await asyncio.sleep(5)
        return []


class HangingProvider(StubProvider):
    async def fetch_routes(self, origin: GeoPoint, destination: GeoPoint) -> list[RouteCandidate]:
        self.calls += 1
        await asyncio.sleep(5)
        return []


def build_client(
    provider: StubProvider,
    index=None,
    hour: int = 9,
    route_timeout_seconds: float | None = None,
    directions_timeout_seconds: float = 5.0,
) -> tuple[TestClient, RouteRepository]:
    repository = RouteRepository()
    engine = SafetyScoringEngine(index or InMemoryReportIndex(), retry_base_delay_seconds=0.0)
    pipeline = RouteSafetyPipeline(engine, route_timeout_seconds=route_timeout_seconds)
    service = RouteService(provider, pipeline, repository, hour_fn=lambda: hour)
    breaker = CircuitBreaker(failure_threshold=3, recovery_timeout_seconds=30, is_failure=is_directions_outage)
    app = create_app()
    app.dependency_overrides[get_route_service] = lambda: service
    app.dependency_overrides[get_circuit_breaker] = lambda: breaker
    app.dependency_overrides[get_directions_timeout_seconds] = lambda: directions_timeout_seconds
    return TestClient(app), repository


def calculate(client: TestClient, user_id: str = "user-1", preference: str = "safest"):
    return client.post(
        "/v1/routes/calculate",
        json={
            "origin": {"lat": ORIGIN.lat, "lng": ORIGIN.lng},
            "destination": {"lat": DESTINATION.lat, "lng": DESTINATION.lng},
            "route_preference": preference,
        },
        headers=auth_headers(user_id),
    )


def test_calculate_returns_ranked_routes_and_persists_each() -> None:
    risky = SafetyReport(
        report_type=ReportType.HARASSMENT,
        severity=Severity.CRITICAL,
        location=GeoPoint(lat=37.5, lng=127.0),
        status=ReportStatus.VERIFIED,
        time_of_incident=datetime(2024, 5, 1, tzinfo=timezone.utc),
    )
    provider = StubProvider([_candidate(0, 127.0, 500), _candidate(1, 127.05, 600)])
    client, repository = build_client(provider, index=InMemoryReportIndex([risky]), hour=21)

    response = calculate(client)
    body = response.json()

    assert response.status_code == 200
    assert body["success"] is True
    assert body["meta"]["count"] == 2
    first, second = body["data"]
    assert first["safety_score"] >= second["safety_score"]
    assert first["duration"]["seconds"] == 600
    assert second["route_type"] == "fastest"
    assert first["time_of_day"] == "night"
    assert set(first["safety_factors"]) == {
        "lighting",
        "police_presence",
        "crime_rate",
        "pedestrian_traffic",
        "road_condition",
        "community_reports",
    }
    assert first["steps"][0]["instruction"] == "Head north"
    assert len(repository._routes) == 2


def test_calculate_with_no_reports_uses_baseline_score() -> None:
    client, _ = build_client(StubProvider([_candidate(0, 127.0, 500)]))

    body = calculate(client).json()

    assert body["data"][0]["safety_score"] == 6.8
    assert body["data"][0]["tags"] == ["Well-Lit", "High Traffic", "Main Roads"]


def test_calculate_maps_route_not_found_to_400() -> None:
    provider = StubProvider(error=ProviderError("ROUTE_NOT_FOUND", "unable to calculate route (ZERO_RESULTS)"))
    client, _ = build_client(provider)

    response = calculate(client)

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "ROUTE_NOT_FOUND"


def test_calculate_opens_circuit_after_provider_outages() -> None:
    provider = StubProvider(error=ProviderError("PROVIDER_HTTP_ERROR", "down"))
    client, _ = build_client(provider)

    statuses = [calculate(client).status_code for _ in range(4)]

    assert statuses == [502, 502, 502, 503]
    assert provider.calls == 3


def test_calculate_maps_index_failure_to_503() -> None:
    client, repository = build_client(StubProvider([_candidate(0, 127.0, 500)]), index=FailingIndex())

    response = calculate(client)

    assert response.status_code == 503
    assert response.json()["error"]["code"] == "REPORT_INDEX_UNAVAILABLE"
    assert repository._routes == {}


def test_calculate_rejects_unknown_preference() -> None:
    client, _ = build_client(StubProvider([_candidate(0, 127.0, 500)]))

    response = calculate(client, preference="scenic")

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


def test_history_get_save_and_feedback_flow() -> None:
    client, _ = build_client(StubProvider([_candidate(0, 127.0, 500), _candidate(1, 127.05, 600)]))
    route_id = calculate(client).json()["data"][0]["route_id"]

    history = client.get("/v1/routes/history?page=1&limit=1", headers=auth_headers("user-1")).json()
    assert history["meta"] == {"page": 1, "limit": 1, "total": 2, "total_pages": 2}
    assert "steps" not in history["data"][0]

    detail = client.get(f"/v1/routes/{route_id}", headers=auth_headers("user-1")).json()
    assert detail["data"]["route_id"] == route_id
    assert detail["data"]["steps"]

    saved = client.post(f"/v1/routes/{route_id}/save", headers=auth_headers("user-1")).json()
    assert saved["data"]["is_saved"] is True

    feedback = client.post(
        f"/v1/routes/{route_id}/feedback",
        json={"rating": 4, "comment": "well lit", "felt_safe": True},
        headers=auth_headers("user-1"),
    ).json()
    assert feedback["data"]["is_completed"] is True
    assert feedback["data"]["completed_at"]
    assert feedback["data"]["feedback"] == {"rating": 4, "comment": "well lit", "felt_safe": True}


def test_routes_are_private_to_their_owner() -> None:
    client, _ = build_client(StubProvider([_candidate(0, 127.0, 500)]))
    route_id = calculate(client, user_id="owner").json()["data"][0]["route_id"]

    response = client.get(f"/v1/routes/{route_id}", headers=auth_headers("someone-else"))
    saved = client.post(f"/v1/routes/{route_id}/save", headers=auth_headers("someone-else"))

    assert response.status_code == 404
    assert saved.status_code == 404


def test_feedback_rating_is_validated() -> None:
    client, _ = build_client(StubProvider([_candidate(0, 127.0, 500)]))
    route_id = calculate(client).json()["data"][0]["route_id"]

    response = client.post(
        f"/v1/routes/{route_id}/feedback",
        json={"rating": 6},
        headers=auth_headers("user-1"),
    )

    assert response.status_code == 422


def test_calculate_maps_malformed_polyline_to_422() -> None:
    candidate = _candidate(0, 127.0, 500)
    broken = RouteCandidate(index=0, polyline="_p~iF~ps|U!!", legs=candidate.legs)
    client, repository = build_client(StubProvider([broken]))

    response = calculate(client)

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "MALFORMED_POLYLINE"
    assert repository._routes == {}


def test_calculate_maps_scoring_deadline_to_504() -> None:
    client, repository = build_client(
        StubProvider([_candidate(0, 127.0, 500)]),
        index=SlowIndex(),
        route_timeout_seconds=0.05,
    )

    response = calculate(client)

    assert response.status_code == 504
    assert response.json()["error"]["code"] == "SCORING_TIMEOUT"
    assert repository._routes == {}


def test_hanging_provider_times_out_and_opens_circuit() -> None:
    provider = HangingProvider()
    client, _ = build_client(provider, directions_timeout_seconds=0.05)

    statuses = [calculate(client).status_code for _ in range(4)]

    assert statuses == [504, 504, 504, 503]
    assert provider.calls == 3
