"""Route safety scoring core package."""

from route_safety.classifier import classify, route_tags, time_of_day
from route_safety.distance import haversine_distance_meters, is_within_radius
from route_safety.errors import (
    IndexQueryError,
    MalformedInputError,
    ProviderError,
    RouteSafetyError,
    ScoringTimeoutError,
)
from route_safety.impact import AreaStats, impact, summarize_area
from route_safety.models import (
    FactorSet,
    GeoPoint,
    ReportStatus,
    ReportType,
    RouteCandidate,
    RouteLeg,
    RoutePreference,
    RouteStep,
    RouteType,
    SafetyReport,
    SafetyScore,
    ScoredRoute,
    Severity,
)
from route_safety.pipeline import RouteSafetyPipeline
from route_safety.policy import DEFAULT_POLICY, ScoringPolicy
from route_safety.polyline import decode, encode
from route_safety.ranker import balanced_score, rank
from route_safety.report_index import InMemoryReportIndex, PostGISReportIndex, ReportIndex
from route_safety.sampler import sample
from route_safety.scoring import SafetyScoringEngine

__all__ = [
    "AreaStats",
    "DEFAULT_POLICY",
    "FactorSet",
    "GeoPoint",
    "InMemoryReportIndex",
    "IndexQueryError",
    "MalformedInputError",
    "PostGISReportIndex",
    "ProviderError",
    "ReportIndex",
    "ReportStatus",
    "ReportType",
    "RouteCandidate",
    "RouteLeg",
    "RoutePreference",
    "RouteSafetyError",
    "RouteSafetyPipeline",
    "RouteStep",
    "RouteType",
    "SafetyReport",
    "SafetyScore",
    "SafetyScoringEngine",
    "ScoredRoute",
    "ScoringPolicy",
    "ScoringTimeoutError",
    "Severity",
    "balanced_score",
    "classify",
    "decode",
    "encode",
    "haversine_distance_meters",
    "impact",
    "is_within_radius",
    "rank",
    "route_tags",
    "sample",
    "summarize_area",
    "time_of_day",
]
