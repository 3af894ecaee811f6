from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field

from route_safety.models import SafetyReport
from route_safety.policy import DEFAULT_POLICY, ScoringPolicy


def impact(report: SafetyReport, policy: ScoringPolicy = DEFAULT_POLICY) -> float:
    severity_weight = policy.severity_weights[report.severity]
    type_weight = policy.type_weights[report.report_type]
    return severity_weight * type_weight


@dataclass(frozen=True)
class AreaStats:
    total: int
    by_type: dict[str, int] = field(default_factory=dict)
    by_severity: dict[str, int] = field(default_factory=dict)
    safety_score: float = 10.0


def summarize_area(
    reports: Iterable[SafetyReport],
    policy: ScoringPolicy = DEFAULT_POLICY,
) -> AreaStats:
    items = list(reports)
    by_type = Counter(item.report_type.value for item in items)
    by_severity = Counter(item.severity.value for item in items)
    total_impact = sum(policy.area_severity_weights[item.severity] for item in items)
    score = max(policy.factor_min, min(policy.factor_max, policy.factor_max - total_impact / 5.0))
    return AreaStats(
        total=len(items),
        by_type=dict(by_type),
        by_severity=dict(by_severity),
        safety_score=round(score, 2),
    )
