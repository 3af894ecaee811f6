from __future__ import annotations

from dataclasses import asdict
from datetime import datetime, timezone
import math
from typing import Any

from sqlalchemy import Boolean, DateTime, Float, Integer, JSON, String, Text, func, select
from sqlalchemy.orm import Mapped, mapped_column

from api.models import ReportComment, ReportLocation, ReportRecord
from devkit.db import AsyncDatabaseManager, Base, create_all_tables
from devkit.timezone import now_iso, now_local
from route_safety.distance import is_within_radius
from route_safety.models import GeoPoint, ReportStatus, ReportType, SafetyReport, Severity
from route_safety.report_index import ELIGIBLE_STATUS_VALUES

HELPFUL = "helpful"
NOT_HELPFUL = "not-helpful"
_METERS_PER_DEGREE = 111_320.0


class SafetyReportORM(Base):
    __tablename__ = "safety_report"

    report_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    report_type: Mapped[str] = mapped_column(String(64), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    lat: Mapped[float] = mapped_column(Float, nullable=False, index=True)
    lng: Mapped[float] = mapped_column(Float, nullable=False, index=True)
    address: Mapped[str | None] = mapped_column(String(512), nullable=True)
    landmark: Mapped[str | None] = mapped_column(String(255), nullable=True)
    severity: Mapped[str] = mapped_column(String(16), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    is_anonymous: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    time_of_incident: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    helpful_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    votes: Mapped[dict[str, str]] = mapped_column(JSON, nullable=False, default=dict)
    comments: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


def apply_vote(votes: dict[str, str], helpful_count: int, user_id: str, vote: str) -> tuple[dict[str, str], int]:
    """One vote per user; switching a vote moves the helpful count with it."""
    if vote not in (HELPFUL, NOT_HELPFUL):
        raise ValueError(f"unsupported vote: {vote}")
    previous = votes.get(user_id)
    if previous != vote:
        if vote == HELPFUL:
            helpful_count += 1
        elif previous == HELPFUL:
            helpful_count -= 1
    updated = dict(votes)
    updated[user_id] = vote
    return updated, helpful_count


def incident_time(record: ReportRecord) -> datetime:
    parsed = _parse_dt(record.time_of_incident)
    if parsed is None:
        return datetime.min.replace(tzinfo=timezone.utc)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed


def to_safety_report(record: ReportRecord) -> SafetyReport:
    return SafetyReport(
        report_type=ReportType(record.report_type),
        severity=Severity(record.severity),
        status=ReportStatus(record.status),
        location=GeoPoint(lat=record.location.lat, lng=record.location.lng),
        time_of_incident=incident_time(record),
    )


class ReportRepository:
    def __init__(self, database_url: str | None = None) -> None:
        self._reports: dict[str, ReportRecord] = {}
        self._db = AsyncDatabaseManager(database_url) if database_url else None
        self._orm_ready = False

    async def close(self) -> None:
        if self._db is not None:
            await self._db.disconnect()

    async def add(self, record: ReportRecord) -> ReportRecord:
        if self._db is None:
            self._reports[record.report_id] = record
            return record

        await self._ensure_orm_ready()

        async def _run(session):
            session.add(self._to_row(record))
            return record

        return await self._db.run_with_session(_run)

    async def get(self, report_id: str) -> ReportRecord | None:
        if self._db is None:
            return self._reports.get(report_id)

        await self._ensure_orm_ready()

        async def _run(session):
            row = await session.get(SafetyReportORM, report_id)
            return self._to_record(row) if row is not None else None

        return await self._db.run_with_session(_run)

    async def list_for_user(self, user_id: str, page: int, limit: int) -> tuple[list[ReportRecord], int]:
        offset = (page - 1) * limit
        if self._db is None:
            owned = [item for item in self._reports.values() if item.user_id == user_id]
            owned.sort(key=lambda item: item.created_at, reverse=True)
            return owned[offset : offset + limit], len(owned)

        await self._ensure_orm_ready()

        async def _run(session):
            total = await session.scalar(
                select(func.count()).select_from(SafetyReportORM).where(SafetyReportORM.user_id == user_id)
            )
            rows = await session.scalars(
                select(SafetyReportORM)
                .where(SafetyReportORM.user_id == user_id)
                .order_by(SafetyReportORM.created_at.desc())
                .offset(offset)
                .limit(limit)
            )
            return [self._to_record(row) for row in rows.all()], int(total or 0)

        return await self._db.run_with_session(_run)

    async def find_nearby(
        self,
        center: GeoPoint,
        radius_meters: float,
        *,
        since: datetime | None = None,
        limit: int | None = None,
    ) -> list[ReportRecord]:
        """Eligible reports inside the radius, most recent incident first."""
        if radius_meters < 0:
            raise ValueError("radius_meters must be >= 0")
        if self._db is None:
            candidates = [item for item in self._reports.values() if item.status in ELIGIBLE_STATUS_VALUES]
        else:
            candidates = await self._load_bounding_box(center, radius_meters)
        nearby = [
            item
            for item in candidates
            if is_within_radius(center, GeoPoint(lat=item.location.lat, lng=item.location.lng), radius_meters)
            and (since is None or incident_time(item) >= since)
        ]
        nearby.sort(key=incident_time, reverse=True)
        return nearby if limit is None else nearby[:limit]

    async def update(self, report_id: str, updates: dict[str, Any]) -> ReportRecord | None:
        if self._db is None:
            record = self._reports.get(report_id)
            if record is None:
                return None
            for key, value in updates.items():
                setattr(record, key, value)
            record.updated_at = now_iso()
            return record

        await self._ensure_orm_ready()

        async def _run(session):
            row = await session.get(SafetyReportORM, report_id)
            if row is None:
                return None
            for key, value in updates.items():
                setattr(row, key, value)
            row.updated_at = now_local()
            return self._to_record(row)

        return await self._db.run_with_session(_run)

    async def delete(self, report_id: str) -> bool:
        if self._db is None:
            return self._reports.pop(report_id, None) is not None

        await self._ensure_orm_ready()

        async def _run(session):
            row = await session.get(SafetyReportORM, report_id)
            if row is None:
                return False
            await session.delete(row)
            return True

        return await self._db.run_with_session(_run)

    async def record_vote(self, report_id: str, user_id: str, vote: str) -> ReportRecord | None:
        if self._db is None:
            record = self._reports.get(report_id)
            if record is None:
                return None
            record.votes, record.helpful_count = apply_vote(record.votes, record.helpful_count, user_id, vote)
            record.updated_at = now_iso()
            return record

        await self._ensure_orm_ready()

        async def _run(session):
            row = await session.get(SafetyReportORM, report_id, with_for_update=True)
            if row is None:
                return None
            row.votes, row.helpful_count = apply_vote(dict(row.votes or {}), row.helpful_count, user_id, vote)
            row.updated_at = now_local()
            return self._to_record(row)

        return await self._db.run_with_session(_run)

    async def add_comment(self, report_id: str, comment: ReportComment) -> ReportRecord | None:
        if self._db is None:
            record = self._reports.get(report_id)
            if record is None:
                return None
            record.comments.append(comment)
            record.updated_at = now_iso()
            return record

        await self._ensure_orm_ready()

        async def _run(session):
            row = await session.get(SafetyReportORM, report_id, with_for_update=True)
            if row is None:
                return None
            row.comments = [*(row.comments or []), asdict(comment)]
            row.updated_at = now_local()
            return self._to_record(row)

        return await self._db.run_with_session(_run)

    async def _load_bounding_box(self, center: GeoPoint, radius_meters: float) -> list[ReportRecord]:
        await self._ensure_orm_ready()
        lat_delta = radius_meters / _METERS_PER_DEGREE
        cos_lat = math.cos(math.radians(center.lat))
        lng_delta = 180.0 if cos_lat < 1e-6 else radius_meters / (_METERS_PER_DEGREE * cos_lat)

        async def _run(session):
            rows = await session.scalars(
                select(SafetyReportORM).where(
                    SafetyReportORM.status.in_(ELIGIBLE_STATUS_VALUES),
                    SafetyReportORM.lat.between(center.lat - lat_delta, center.lat + lat_delta),
                    SafetyReportORM.lng.between(center.lng - lng_delta, center.lng + lng_delta),
                )
            )
            return [self._to_record(row) for row in rows.all()]

        return await self._db.run_with_session(_run)

    async def _ensure_orm_ready(self) -> None:
        if self._db is None or self._orm_ready:
            return
        await self._db.connect()
        await create_all_tables(self._db.engine, Base.metadata)
        self._orm_ready = True

    def _to_row(self, record: ReportRecord) -> SafetyReportORM:
        return SafetyReportORM(
            report_id=record.report_id,
            user_id=record.user_id,
            report_type=record.report_type,
            description=record.description,
            lat=record.location.lat,
            lng=record.location.lng,
            address=record.location.address,
            landmark=record.location.landmark,
            severity=record.severity,
            status=record.status,
            is_anonymous=record.is_anonymous,
            time_of_incident=incident_time(record),
            helpful_count=record.helpful_count,
            votes=dict(record.votes),
            comments=[asdict(comment) for comment in record.comments],
            created_at=_parse_dt(record.created_at) or now_local(),
            updated_at=_parse_dt(record.updated_at) or now_local(),
        )

    def _to_record(self, row: SafetyReportORM) -> ReportRecord:
        return ReportRecord(
            report_id=row.report_id,
            user_id=row.user_id,
            report_type=row.report_type,
            location=ReportLocation(lat=row.lat, lng=row.lng, address=row.address, landmark=row.landmark),
            description=row.description,
            severity=row.severity,
            status=row.status,
            is_anonymous=row.is_anonymous,
            time_of_incident=row.time_of_incident.isoformat() if row.time_of_incident else now_iso(),
            helpful_count=row.helpful_count,
            votes=dict(row.votes or {}),
            comments=[ReportComment(**item) for item in row.comments or []],
            created_at=row.created_at.isoformat() if row.created_at else now_iso(),
            updated_at=row.updated_at.isoformat() if row.updated_at else now_iso(),
        )


class RepositoryReportIndex:
    """Serves scoring proximity queries straight from the report repository."""

    def __init__(self, repository: ReportRepository) -> None:
        self._repository = repository

    async def find_nearby(self, point: GeoPoint, max_distance_meters: int) -> list[SafetyReport]:
        records = await self._repository.find_nearby(point, max_distance_meters)
        return [to_safety_report(record) for record in records]


def _parse_dt(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None
