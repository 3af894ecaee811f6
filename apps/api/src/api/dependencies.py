from __future__ import annotations

from devkit.config import load_settings
from devkit.kafka import AsyncKafkaProducerManager
from route_safety.errors import ProviderError
from route_safety.pipeline import RouteSafetyPipeline
from route_safety.report_index import PostGISReportIndex, ReportIndex
from route_safety.scoring import SafetyScoringEngine
from shared.security import JWTManager

from api.circuit_breaker import CircuitBreaker
from api.clients.directions_provider_client import DirectionsProviderClient
from api.events import InMemoryReportEventPublisher, KafkaReportEventPublisher, ReportEventPublisher
from api.repositories.report_repository import ReportRepository, RepositoryReportIndex
from api.repositories.route_repository import RouteRepository
from api.services.report_service import ReportService
from api.services.route_service import RouteService

settings = load_settings("safe-route-api")


def is_directions_outage(exc: Exception) -> bool:
    return not (isinstance(exc, ProviderError) and exc.code == "ROUTE_NOT_FOUND")


_jwt = JWTManager(secret=settings.JWT_SECRET_KEY)
_report_repository = ReportRepository(settings.DATABASE_URL)
_route_repository = RouteRepository(settings.DATABASE_URL)

if settings.REPORT_INDEX_DSN:
    _report_index: ReportIndex = PostGISReportIndex(dsn=settings.REPORT_INDEX_DSN)
else:
    _report_index = RepositoryReportIndex(_report_repository)

if settings.KAFKA_BOOTSTRAP_SERVERS:
    _publisher: ReportEventPublisher = KafkaReportEventPublisher(
        AsyncKafkaProducerManager(settings.KAFKA_BOOTSTRAP_SERVERS)
    )
else:
    _publisher = InMemoryReportEventPublisher()

_engine = SafetyScoringEngine(_report_index, max_concurrency=settings.SCORING_MAX_CONCURRENCY)
_pipeline = RouteSafetyPipeline(
    _engine,
    max_parallel_routes=settings.ROUTE_MAX_PARALLEL,
    route_timeout_seconds=settings.SCORING_TIMEOUT_SECONDS,
)
_directions_client = DirectionsProviderClient(
    base_url=settings.DIRECTIONS_BASE_URL,
    api_key=settings.DIRECTIONS_API_KEY,
    mode=settings.DIRECTIONS_MODE,
    timeout_seconds=settings.DIRECTIONS_TIMEOUT_SECONDS,
)
_route_service = RouteService(_directions_client, _pipeline, _route_repository)
_report_service = ReportService(_report_repository, _publisher, topic=settings.REPORT_EVENTS_TOPIC)
_circuit_breaker = CircuitBreaker(
    failure_threshold=3,
    recovery_timeout_seconds=30,
    is_failure=is_directions_outage,
    name="directions",
)


def get_jwt_manager() -> JWTManager:
    return _jwt


def get_route_service() -> RouteService:
    return _route_service


def get_report_service() -> ReportService:
    return _report_service


def get_circuit_breaker() -> CircuitBreaker:
    return _circuit_breaker


def get_directions_timeout_seconds() -> float:
    return settings.DIRECTIONS_TIMEOUT_SECONDS


async def shutdown() -> None:
    await _report_service.drain()
    await _publisher.close()
    await _route_repository.close()
    await _report_repository.close()
    if isinstance(_report_index, PostGISReportIndex):
        await _report_index.close()
