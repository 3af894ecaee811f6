from __future__ import annotations

import asyncio
from collections.abc import Sequence
import logging
from time import perf_counter

from route_safety.classifier import classify
from route_safety.models import RouteCandidate, RoutePreference, SafetyScore, ScoredRoute
from route_safety.ranker import rank
from route_safety.scoring import SafetyScoringEngine

logger = logging.getLogger(__name__)


class RouteSafetyPipeline:
    """Scores, classifies and ranks the alternatives of one directions request."""

    def __init__(
        self,
        engine: SafetyScoringEngine,
        max_parallel_routes: int = 4,
        route_timeout_seconds: float | None = None,
    ) -> None:
        if max_parallel_routes < 1:
            raise ValueError("max_parallel_routes must be >= 1")
        self._engine = engine
        self._max_parallel_routes = max_parallel_routes
        self._route_timeout_seconds = route_timeout_seconds

    async def evaluate(
        self,
        candidates: Sequence[RouteCandidate],
        preference: RoutePreference | str,
    ) -> list[ScoredRoute]:
        preference = RoutePreference(preference)
        started = perf_counter()
        scores = await self._score_all(candidates)
        durations = [candidate.duration_seconds for candidate in candidates]
        policy = self._engine.policy
        scored: list[ScoredRoute] = []
        for candidate, score in zip(candidates, scores):
            route_type, tags = classify(
                score,
                all_durations=durations,
                my_duration=candidate.duration_seconds,
                my_index=candidate.index,
                policy=policy,
            )
            scored.append(ScoredRoute(candidate=candidate, score=score, route_type=route_type, tags=tuple(tags)))
        ranked = rank(scored, preference, policy)
        logger.info(
            "routes_evaluated",
            extra={
                "component": "route_safety",
                "route_count": len(ranked),
                "preference": preference.value,
                "duration_ms": (perf_counter() - started) * 1000.0,
            },
        )
        return ranked

    async def _score_all(self, candidates: Sequence[RouteCandidate]) -> list[SafetyScore]:
        semaphore = asyncio.Semaphore(self._max_parallel_routes)

        async def _score(candidate: RouteCandidate) -> SafetyScore:
            async with semaphore:
                return await self._engine.score(candidate.polyline, timeout_seconds=self._route_timeout_seconds)

        tasks = [asyncio.ensure_future(_score(candidate)) for candidate in candidates]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
