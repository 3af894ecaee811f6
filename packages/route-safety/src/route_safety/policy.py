from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from route_safety.models import FACTOR_WEIGHTS, FactorSet, ReportType, Severity


def _frozen(values: dict) -> Mapping:
    return MappingProxyType(dict(values))


@dataclass(frozen=True)
class ScoringPolicy:
    """Tunable constants for scoring, classification and ranking.

    Passed into the engine, classifier and ranker so an alternate policy can
    be substituted in tests or experiments.
    """

    baseline: FactorSet = FactorSet(
        lighting=7.0,
        police_presence=6.0,
        crime_rate=7.0,
        pedestrian_traffic=6.0,
        road_condition=7.0,
        community_reports=8.0,
    )
    factor_weights: Mapping[str, float] = field(default_factory=lambda: _frozen(FACTOR_WEIGHTS))
    severity_weights: Mapping[Severity, float] = field(
        default_factory=lambda: _frozen(
            {
                Severity.LOW: -0.5,
                Severity.MEDIUM: -1.5,
                Severity.HIGH: -3.0,
                Severity.CRITICAL: -5.0,
            }
        )
    )
    type_weights: Mapping[ReportType, float] = field(
        default_factory=lambda: _frozen(
            {
                ReportType.POOR_STREET_LIGHTING: 1.0,
                ReportType.HARASSMENT: 2.5,
                ReportType.ROAD_HAZARD: 1.5,
                ReportType.LACK_OF_POLICE_PRESENCE: 1.8,
                ReportType.SUSPICIOUS_ACTIVITY: 2.0,
                ReportType.THEFT_ROBBERY: 3.0,
                ReportType.UNSAFE_AREA: 2.5,
                ReportType.OTHER: 1.0,
            }
        )
    )
    area_severity_weights: Mapping[Severity, float] = field(
        default_factory=lambda: _frozen(
            {
                Severity.LOW: 0.25,
                Severity.MEDIUM: 0.5,
                Severity.HIGH: 0.75,
                Severity.CRITICAL: 1.0,
            }
        )
    )
    sample_stride: int = 10
    nearby_radius_meters: int = 500
    factor_min: float = 0.0
    factor_max: float = 10.0
    safest_min_overall: float = 8.0
    well_lit_min: float = 7.0
    police_patrolled_min: float = 7.0
    high_traffic_min: float = 6.0
    main_roads_min: float = 7.0
    balanced_score_weight: float = 0.6
    balanced_speed_weight: float = 0.4
    balanced_speed_scale: float = 10000.0

    def __post_init__(self) -> None:
        if self.sample_stride < 1:
            raise ValueError("sample_stride must be >= 1")
        if self.nearby_radius_meters <= 0:
            raise ValueError("nearby_radius_meters must be > 0")
        total = sum(self.factor_weights.values())
        if abs(total - 1.0) > 1e-9:
            raise ValueError("factor_weights must sum to 1.0")


DEFAULT_POLICY = ScoringPolicy()
