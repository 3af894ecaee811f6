from __future__ import annotations

import asyncio
from datetime import datetime, timezone
import itertools

import pytest

from route_safety.errors import IndexQueryError, MalformedInputError, ScoringTimeoutError
from route_safety.models import FactorSet, GeoPoint, ReportStatus, ReportType, SafetyReport, SafetyScore, Severity
from route_safety.policy import ScoringPolicy
from route_safety.polyline import encode
from route_safety.report_index import InMemoryReportIndex
from route_safety.scoring import SafetyScoringEngine

ROUTE_POINTS = [GeoPoint(lat=37.5 + index * 0.001, lng=127.0) for index in range(21)]
ROUTE = encode(ROUTE_POINTS)


async def no_sleep(_: float) -> None:
    return None


def _report(
    report_type: ReportType,
    severity: Severity,
    location: GeoPoint = GeoPoint(lat=37.5, lng=127.0),
    status: ReportStatus = ReportStatus.VERIFIED,
) -> SafetyReport:
    return SafetyReport(
        report_type=report_type,
        severity=severity,
        location=location,
        status=status,
        time_of_incident=datetime(2024, 5, 1, tzinfo=timezone.utc),
    )


@pytest.mark.asyncio
async def test_route_without_reports_scores_baseline() -> None:
    index = InMemoryReportIndex()
    engine = SafetyScoringEngine(index)

    score = await engine.score(ROUTE)

    assert score.factors == ScoringPolicy().baseline
    assert score.factors.community_reports == 8.0
    assert score.overall == 6.8
    assert len(index.queries) == 3
    assert all(radius == 500 for _, radius in index.queries)


@pytest.mark.asyncio
async def test_empty_polyline_scores_baseline_without_queries() -> None:
    index = InMemoryReportIndex()
    engine = SafetyScoringEngine(index)

    score = await engine.score("")

    assert score.overall == 6.8
    assert index.queries == []


@pytest.mark.asyncio
async def test_single_nearby_report_depresses_community_factor() -> None:
    index = InMemoryReportIndex([_report(ReportType.HARASSMENT, Severity.MEDIUM)])
    engine = SafetyScoringEngine(index)

    score = await engine.score(ROUTE)

    assert score.factors.community_reports == pytest.approx(4.25)
    assert score.overall == 6.4


@pytest.mark.asyncio
async def test_reports_at_one_sample_are_averaged() -> None:
    index = InMemoryReportIndex(
        [
            _report(ReportType.OTHER, Severity.LOW),
            _report(ReportType.ROAD_HAZARD, Severity.HIGH),
        ]
    )
    engine = SafetyScoringEngine(index)

    score = await engine.score(ROUTE)

    assert score.factors.community_reports == pytest.approx(5.5)
    assert score.overall == 6.5


@pytest.mark.asyncio
async def test_ineligible_reports_are_ignored() -> None:
    index = InMemoryReportIndex(
        [
            _report(ReportType.THEFT_ROBBERY, Severity.CRITICAL, status=ReportStatus.RESOLVED),
            _report(ReportType.THEFT_ROBBERY, Severity.CRITICAL, status=ReportStatus.DISMISSED),
        ]
    )
    engine = SafetyScoringEngine(index)

    score = await engine.score(ROUTE)

    assert score.factors.community_reports == 8.0


@pytest.mark.asyncio
async def test_extreme_impacts_are_clamped() -> None:
    reports = [
        _report(ReportType.THEFT_ROBBERY, Severity.CRITICAL, location=point) for point in ROUTE_POINTS[::10]
    ]
    engine = SafetyScoringEngine(InMemoryReportIndex(reports))

    score = await engine.score(ROUTE)

    assert score.factors.community_reports == 0.0
    for value in score.factors.as_dict().values():
        assert 0.0 <= value <= 10.0
    assert score.overall == 6.0


def test_score_from_contributions_clamps_upper_bound() -> None:
    engine = SafetyScoringEngine(InMemoryReportIndex())
    score = engine.score_from_contributions([5.0, 5.0])
    assert score.factors.community_reports == 10.0


def test_contribution_fold_is_order_independent() -> None:
    engine = SafetyScoringEngine(InMemoryReportIndex())
    contributions = [-0.1, -0.7, -1e-9, -0.3333333333, -2.25]
    results = {
        engine.score_from_contributions(list(order)).factors.community_reports
        for order in itertools.permutations(contributions)
    }
    assert len(results) == 1


def test_overall_is_derived_from_factors() -> None:
    factors = FactorSet(
        lighting=10.0,
        police_presence=0.0,
        crime_rate=4.0,
        pedestrian_traffic=2.0,
        road_condition=9.0,
        community_reports=3.0,
    )
    score = SafetyScore(factors=factors)
    assert score.overall == 4.5
    with pytest.raises(AttributeError):
        score.overall = 9.9  # type: ignore[misc]


@pytest.mark.asyncio
async def test_concurrency_is_bounded() -> None:
    class SlowIndex:
        def __init__(self) -> None:
            self.in_flight = 0
            self.peak = 0

        async def find_nearby(self, point: GeoPoint, max_distance_meters: int) -> list[SafetyReport]:
            self.in_flight += 1
            self.peak = max(self.peak, self.in_flight)
            await asyncio.sleep(0.01)
            self.in_flight -= 1
            return []

    points = [GeoPoint(lat=37.5 + index * 0.001, lng=127.0) for index in range(100)]
    index = SlowIndex()
    engine = SafetyScoringEngine(index, max_concurrency=3)

    await engine.score(encode(points))

    assert index.peak <= 3


@pytest.mark.asyncio
async def test_transient_index_failure_is_retried() -> None:
    class FlakyIndex:
        def __init__(self) -> None:
            self.calls = 0

        async def find_nearby(self, point: GeoPoint, max_distance_meters: int) -> list[SafetyReport]:
            self.calls += 1
            if self.calls == 1:
                raise ConnectionError("index down")
            return []

    index = FlakyIndex()
    engine = SafetyScoringEngine(index, max_concurrency=1, sleep_fn=no_sleep)

    score = await engine.score(ROUTE)

    assert score.overall == 6.8
    assert index.calls == 4


@pytest.mark.asyncio
async def test_persistent_index_failure_aborts_route() -> None:
    class BrokenIndex:
        async def find_nearby(self, point: GeoPoint, max_distance_meters: int) -> list[SafetyReport]:
            raise ConnectionError("index down")

    engine = SafetyScoringEngine(BrokenIndex(), index_retries=2, sleep_fn=no_sleep)

    with pytest.raises(IndexQueryError):
        await engine.score(ROUTE)


@pytest.mark.asyncio
async def test_scoring_timeout_returns_no_partial_score() -> None:
    class HangingIndex:
        async def find_nearby(self, point: GeoPoint, max_distance_meters: int) -> list[SafetyReport]:
            await asyncio.sleep(10)
            return []

    engine = SafetyScoringEngine(HangingIndex())

    with pytest.raises(ScoringTimeoutError):
        await engine.score(ROUTE, timeout_seconds=0.01)


@pytest.mark.asyncio
async def test_malformed_polyline_is_rejected() -> None:
    engine = SafetyScoringEngine(InMemoryReportIndex())
    with pytest.raises(MalformedInputError):
        await engine.score("_p~iF~ps|U_")


def test_engine_rejects_invalid_limits() -> None:
    with pytest.raises(ValueError):
        SafetyScoringEngine(InMemoryReportIndex(), max_concurrency=0)
    with pytest.raises(ValueError):
        SafetyScoringEngine(InMemoryReportIndex(), index_retries=0)
