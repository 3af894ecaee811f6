from __future__ import annotations

import asyncio
from collections.abc import Iterable, Sequence
from dataclasses import replace
import logging
import math
from typing import Awaitable, Callable

from route_safety.errors import IndexQueryError, ScoringTimeoutError
from route_safety.impact import impact
from route_safety.models import GeoPoint, SafetyReport, SafetyScore
from route_safety.policy import DEFAULT_POLICY, ScoringPolicy
from route_safety.polyline import decode
from route_safety.report_index import ReportIndex
from route_safety.sampler import sample

logger = logging.getLogger(__name__)


class SafetyScoringEngine:
    """Scores one encoded route against the community report index.

    Every sample point issues at most one proximity query (plus retries).
    Non-empty results contribute their mean impact to ``community_reports``;
    averaging per query keeps one dense cluster from dominating a route, at
    the cost of under-weighting areas with many reports close together.
    """

    def __init__(
        self,
        index: ReportIndex,
        policy: ScoringPolicy = DEFAULT_POLICY,
        max_concurrency: int = 8,
        index_retries: int = 3,
        retry_base_delay_seconds: float = 0.05,
        sleep_fn: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        if index_retries < 1:
            raise ValueError("index_retries must be >= 1")
        self._index = index
        self._policy = policy
        self._max_concurrency = max_concurrency
        self._index_retries = index_retries
        self._retry_base_delay_seconds = retry_base_delay_seconds
        self._sleep_fn = sleep_fn

    @property
    def policy(self) -> ScoringPolicy:
        return self._policy

    async def score(self, polyline: str, timeout_seconds: float | None = None) -> SafetyScore:
        points = decode(polyline)
        samples = sample(points, self._policy.sample_stride)
        if not samples:
            logger.warning("route_scored_without_samples", extra={"component": "route_safety"})
        if timeout_seconds is None:
            contributions = await self._collect_contributions(samples)
        else:
            try:
                contributions = await asyncio.wait_for(
                    self._collect_contributions(samples),
                    timeout=timeout_seconds,
                )
            except asyncio.TimeoutError as exc:
                logger.error(
                    "route_scoring_timeout",
                    extra={"component": "route_safety", "timeout_seconds": timeout_seconds},
                )
                raise ScoringTimeoutError(f"route scoring exceeded {timeout_seconds}s") from exc
        score = self.score_from_contributions(contributions)
        logger.info(
            "route_scored",
            extra={
                "component": "route_safety",
                "point_count": len(points),
                "sample_count": len(samples),
                "overall": score.overall,
            },
        )
        return score

    def score_from_contributions(self, contributions: Iterable[float]) -> SafetyScore:
        """Fold per-sample contributions into a clamped score.

        ``math.fsum`` is exact, so the result does not depend on the order in
        which sample queries completed.
        """
        baseline = self._policy.baseline
        community = math.fsum([baseline.community_reports, *contributions])
        factors = replace(baseline, community_reports=community).clamped(
            self._policy.factor_min,
            self._policy.factor_max,
        )
        return SafetyScore(factors=factors, weights=dict(self._policy.factor_weights))

    def sample_contribution(self, reports: Sequence[SafetyReport]) -> float | None:
        eligible = [report for report in reports if report.is_eligible]
        if not eligible:
            return None
        impacts = [impact(report, self._policy) for report in eligible]
        return math.fsum(impacts) / len(impacts)

    async def _collect_contributions(self, samples: Sequence[GeoPoint]) -> list[float]:
        semaphore = asyncio.Semaphore(self._max_concurrency)
        tasks = [
            asyncio.ensure_future(self._score_sample(sample_index, point, semaphore))
            for sample_index, point in enumerate(samples)
        ]
        try:
            results = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        return [value for value in results if value is not None]

    async def _score_sample(
        self,
        sample_index: int,
        point: GeoPoint,
        semaphore: asyncio.Semaphore,
    ) -> float | None:
        async with semaphore:
            reports = await self._find_nearby_with_retry(sample_index, point)
        return self.sample_contribution(reports)

    async def _find_nearby_with_retry(self, sample_index: int, point: GeoPoint) -> list[SafetyReport]:
        attempt = 0
        while True:
            try:
                return await self._index.find_nearby(point, self._policy.nearby_radius_meters)
            except Exception as exc:
                attempt += 1
                if attempt >= self._index_retries:
                    logger.error(
                        "report_index_query_failed",
                        extra={"component": "route_safety", "sample_index": sample_index, "attempts": attempt},
                    )
                    raise IndexQueryError(sample_index) from exc
                delay = self._retry_base_delay_seconds * (2 ** (attempt - 1))
                logger.warning(
                    "report_index_query_retry",
                    extra={"component": "route_safety", "sample_index": sample_index, "delay_seconds": delay},
                )
                await self._sleep_fn(delay)
