from __future__ import annotations

from collections.abc import Sequence

from route_safety.models import RouteType, SafetyScore
from route_safety.policy import DEFAULT_POLICY, ScoringPolicy

WELL_LIT = "Well-Lit"
POLICE_PATROLLED = "Police Patrolled"
HIGH_TRAFFIC = "High Traffic"
MAIN_ROADS = "Main Roads"


def classify(
    score: SafetyScore,
    all_durations: Sequence[int],
    my_duration: int,
    my_index: int,
    policy: ScoringPolicy = DEFAULT_POLICY,
) -> tuple[RouteType, list[str]]:
    return classify_route_type(score, all_durations, my_duration, my_index, policy), route_tags(score, policy)


def classify_route_type(
    score: SafetyScore,
    all_durations: Sequence[int],
    my_duration: int,
    my_index: int,
    policy: ScoringPolicy = DEFAULT_POLICY,
) -> RouteType:
    # Each route is judged on its own; several siblings can tie for fastest.
    route_type = RouteType.BALANCED
    if my_index == 0 and score.overall >= policy.safest_min_overall:
        route_type = RouteType.SAFEST
    if all_durations and my_duration == min(all_durations):
        route_type = RouteType.FASTEST
    return route_type


def route_tags(score: SafetyScore, policy: ScoringPolicy = DEFAULT_POLICY) -> list[str]:
    factors = score.factors
    tags: list[str] = []
    if factors.lighting >= policy.well_lit_min:
        tags.append(WELL_LIT)
    if factors.police_presence >= policy.police_patrolled_min:
        tags.append(POLICE_PATROLLED)
    if factors.pedestrian_traffic >= policy.high_traffic_min:
        tags.append(HIGH_TRAFFIC)
    if factors.road_condition >= policy.main_roads_min:
        tags.append(MAIN_ROADS)
    return tags


def time_of_day(hour: int) -> str:
    if hour < 0 or hour > 23:
        raise ValueError("hour must be between 0 and 23")
    if 6 <= hour < 12:
        return "morning"
    if 12 <= hour < 17:
        return "afternoon"
    if 17 <= hour < 20:
        return "evening"
    if 20 <= hour < 24:
        return "night"
    return "late-night"
