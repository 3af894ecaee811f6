from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Protocol

from route_safety.distance import is_within_radius
from route_safety.models import GeoPoint, ReportStatus, ReportType, SafetyReport, Severity

NEARBY_REPORTS_SQL = """
SELECT
    report_type,
    severity,
    status,
    lat,
    lng,
    time_of_incident
FROM safety_report
WHERE status = ANY($4::text[])
  AND ST_DWithin(
    ST_SetSRID(ST_MakePoint(lng, lat), 4326)::geography,
    ST_SetSRID(ST_MakePoint($1, $2), 4326)::geography,
    $3
  )
ORDER BY time_of_incident DESC
"""

ELIGIBLE_STATUS_VALUES = [ReportStatus.PENDING.value, ReportStatus.VERIFIED.value]


class ReportIndex(Protocol):
    async def find_nearby(self, point: GeoPoint, max_distance_meters: int) -> list[SafetyReport]: ...


def filter_nearby(
    reports: Iterable[SafetyReport],
    point: GeoPoint,
    max_distance_meters: float,
) -> list[SafetyReport]:
    """Eligible reports within the radius, most recent incident first."""
    if max_distance_meters < 0:
        raise ValueError("max_distance_meters must be >= 0")
    nearby = [
        report
        for report in reports
        if report.is_eligible and is_within_radius(point, report.location, max_distance_meters)
    ]
    return sorted(nearby, key=_incident_sort_key, reverse=True)


def _incident_sort_key(report: SafetyReport) -> datetime:
    return report.time_of_incident or datetime.min.replace(tzinfo=timezone.utc)


class InMemoryReportIndex:
    def __init__(self, reports: Iterable[SafetyReport] = ()) -> None:
        self._reports: list[SafetyReport] = list(reports)
        self.queries: list[tuple[GeoPoint, int]] = []

    async def find_nearby(self, point: GeoPoint, max_distance_meters: int) -> list[SafetyReport]:
        self.queries.append((point, max_distance_meters))
        return filter_nearby(self._reports, point, max_distance_meters)


class PostGISReportIndex:
    def __init__(
        self,
        dsn: str,
        pool_factory: Callable[[str], Awaitable[Any]] | None = None,
    ) -> None:
        self._dsn = dsn
        self._pool = None
        self._pool_factory = pool_factory

    async def find_nearby(self, point: GeoPoint, max_distance_meters: int) -> list[SafetyReport]:
        if max_distance_meters <= 0:
            raise ValueError("max_distance_meters must be > 0")
        pool = await self.get_pool()
        rows = await pool.fetch(
            NEARBY_REPORTS_SQL,
            point.lng,
            point.lat,
            max_distance_meters,
            ELIGIBLE_STATUS_VALUES,
        )
        return [self._to_report(row) for row in rows]

    async def get_pool(self) -> Any:
        if self._pool is not None:
            return self._pool
        self._pool = await self._create_pool()
        return self._pool

    async def close(self) -> None:
        if self._pool is not None and hasattr(self._pool, "close"):
            await self._pool.close()
        self._pool = None

    async def _create_pool(self) -> Any:
        if self._pool_factory:
            return await self._pool_factory(self._dsn)
        try:
            import asyncpg
        except ImportError as exc:
            raise RuntimeError("asyncpg is required for the postgis report index") from exc
        return await asyncpg.create_pool(dsn=self._dsn, min_size=1, max_size=10)

    def _to_report(self, row: Any) -> SafetyReport:
        return SafetyReport(
            report_type=ReportType(str(row["report_type"])),
            severity=Severity(str(row["severity"])),
            status=ReportStatus(str(row["status"])),
            location=GeoPoint(lat=float(row["lat"]), lng=float(row["lng"])),
            time_of_incident=row["time_of_incident"],
        )
