from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, DateTime, Float, Integer, JSON, String, Text, func, select
from sqlalchemy.orm import Mapped, mapped_column

from api.models import PlaceRecord, RouteFeedback, RouteRecord
from devkit.db import AsyncDatabaseManager, Base, create_all_tables
from devkit.timezone import now_iso, now_local


class RouteORM(Base):
    __tablename__ = "route"

    route_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    origin: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    destination: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    distance_meters: Mapped[int] = mapped_column(Integer, nullable=False)
    duration_seconds: Mapped[int] = mapped_column(Integer, nullable=False)
    polyline: Mapped[str] = mapped_column(Text, nullable=False)
    steps: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    overall_score: Mapped[float] = mapped_column(Float, nullable=False)
    safety_factors: Mapped[dict[str, float]] = mapped_column(JSON, nullable=False)
    route_type: Mapped[str] = mapped_column(String(16), nullable=False)
    tags: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    time_of_day: Mapped[str] = mapped_column(String(16), nullable=False)
    is_saved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    feedback: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class RouteRepository:
    def __init__(self, database_url: str | None = None) -> None:
        self._routes: dict[str, RouteRecord] = {}
        self._db = AsyncDatabaseManager(database_url) if database_url else None
        self._orm_ready = False

    async def close(self) -> None:
        if self._db is not None:
            await self._db.disconnect()

    async def add(self, record: RouteRecord) -> RouteRecord:
        if self._db is None:
            self._routes[record.route_id] = record
            return record

        await self._ensure_orm_ready()

        async def _run(session):
            session.add(self._to_row(record))
            return record

        return await self._db.run_with_session(_run)

    async def get(self, user_id: str, route_id: str) -> RouteRecord | None:
        if self._db is None:
            record = self._routes.get(route_id)
            if record is None or record.user_id != user_id:
                return None
            return record

        await self._ensure_orm_ready()

        async def _run(session):
            row = await session.get(RouteORM, route_id)
            if row is None or row.user_id != user_id:
                return None
            return self._to_record(row)

        return await self._db.run_with_session(_run)

    async def list_for_user(self, user_id: str, page: int, limit: int) -> tuple[list[RouteRecord], int]:
        offset = (page - 1) * limit
        if self._db is None:
            owned = [item for item in self._routes.values() if item.user_id == user_id]
            owned.sort(key=lambda item: item.created_at, reverse=True)
            return owned[offset : offset + limit], len(owned)

        await self._ensure_orm_ready()

        async def _run(session):
            total = await session.scalar(select(func.count()).select_from(RouteORM).where(RouteORM.user_id == user_id))
            rows = await session.scalars(
                select(RouteORM)
                .where(RouteORM.user_id == user_id)
                .order_by(RouteORM.created_at.desc())
                .offset(offset)
                .limit(limit)
            )
            return [self._to_record(row) for row in rows.all()], int(total or 0)

        return await self._db.run_with_session(_run)

    async def mark_saved(self, user_id: str, route_id: str) -> RouteRecord | None:
        if self._db is None:
            record = await self.get(user_id, route_id)
            if record is None:
                return None
            record.is_saved = True
            record.updated_at = now_iso()
            return record

        await self._ensure_orm_ready()

        async def _run(session):
            row = await session.get(RouteORM, route_id)
            if row is None or row.user_id != user_id:
                return None
            row.is_saved = True
            row.updated_at = now_local()
            return self._to_record(row)

        return await self._db.run_with_session(_run)

    async def record_feedback(self, user_id: str, route_id: str, feedback: RouteFeedback) -> RouteRecord | None:
        if self._db is None:
            record = await self.get(user_id, route_id)
            if record is None:
                return None
            now = now_iso()
            record.feedback = feedback
            record.is_completed = True
            record.completed_at = now
            record.updated_at = now
            return record

        await self._ensure_orm_ready()

        async def _run(session):
            row = await session.get(RouteORM, route_id)
            if row is None or row.user_id != user_id:
                return None
            now = now_local()
            row.feedback = {"rating": feedback.rating, "comment": feedback.comment, "felt_safe": feedback.felt_safe}
            row.is_completed = True
            row.completed_at = now
            row.updated_at = now
            return self._to_record(row)

        return await self._db.run_with_session(_run)

    async def _ensure_orm_ready(self) -> None:
        if self._db is None or self._orm_ready:
            return
        await self._db.connect()
        await create_all_tables(self._db.engine, Base.metadata)
        self._orm_ready = True

    def _to_row(self, record: RouteRecord) -> RouteORM:
        return RouteORM(
            route_id=record.route_id,
            user_id=record.user_id,
            origin=_place_dict(record.origin),
            destination=_place_dict(record.destination),
            distance_meters=record.distance_meters,
            duration_seconds=record.duration_seconds,
            polyline=record.polyline,
            steps=record.steps,
            overall_score=float(record.safety_score["overall"]),
            safety_factors=dict(record.safety_score["factors"]),
            route_type=record.route_type,
            tags=list(record.tags),
            time_of_day=record.time_of_day,
            is_saved=record.is_saved,
            is_completed=record.is_completed,
            completed_at=_parse_dt(record.completed_at),
            feedback=None,
            created_at=_parse_dt(record.created_at) or now_local(),
            updated_at=_parse_dt(record.updated_at) or now_local(),
        )

    def _to_record(self, row: RouteORM) -> RouteRecord:
        feedback = None
        if row.feedback:
            feedback = RouteFeedback(
                rating=int(row.feedback["rating"]),
                comment=row.feedback.get("comment"),
                felt_safe=row.feedback.get("felt_safe"),
            )
        return RouteRecord(
            route_id=row.route_id,
            user_id=row.user_id,
            origin=PlaceRecord(**row.origin),
            destination=PlaceRecord(**row.destination),
            distance_meters=row.distance_meters,
            duration_seconds=row.duration_seconds,
            polyline=row.polyline,
            route_type=row.route_type,
            safety_score={"overall": row.overall_score, "factors": dict(row.safety_factors or {})},
            tags=list(row.tags or []),
            steps=list(row.steps or []),
            time_of_day=row.time_of_day,
            is_saved=row.is_saved,
            is_completed=row.is_completed,
            completed_at=row.completed_at.isoformat() if row.completed_at else None,
            feedback=feedback,
            created_at=row.created_at.isoformat() if row.created_at else now_iso(),
            updated_at=row.updated_at.isoformat() if row.updated_at else now_iso(),
        )


def _place_dict(place: PlaceRecord) -> dict[str, Any]:
    return {"address": place.address, "lat": place.lat, "lng": place.lng}


def _parse_dt(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None
