from __future__ import annotations

from collections.abc import Sequence
import math
from typing import Protocol, TypeVar

from route_safety.models import RoutePreference
from route_safety.policy import DEFAULT_POLICY, ScoringPolicy


class Rankable(Protocol):
    @property
    def overall(self) -> float: ...

    @property
    def duration_seconds(self) -> int: ...


R = TypeVar("R", bound=Rankable)


def balanced_score(route: Rankable, policy: ScoringPolicy = DEFAULT_POLICY) -> float:
    if route.duration_seconds <= 0:
        speed_term = math.inf
    else:
        speed_term = policy.balanced_speed_scale / route.duration_seconds
    return policy.balanced_score_weight * route.overall + policy.balanced_speed_weight * speed_term


def rank(
    routes: Sequence[R],
    preference: RoutePreference | str,
    policy: ScoringPolicy = DEFAULT_POLICY,
) -> list[R]:
    """Order routes by preference; ``sorted`` is stable so ties keep provider order."""
    preference = RoutePreference(preference)
    if preference is RoutePreference.SAFEST:
        return sorted(routes, key=lambda route: -route.overall)
    if preference is RoutePreference.FASTEST:
        return sorted(routes, key=lambda route: route.duration_seconds)
    return sorted(routes, key=lambda route: -balanced_score(route, policy))
