from __future__ import annotations

import asyncio
from dataclasses import asdict
from datetime import timedelta
import logging
from typing import Any
from uuid import uuid4

from devkit.timezone import now_local
from route_safety.impact import AreaStats, summarize_area
from route_safety.models import GeoPoint
from route_safety.policy import DEFAULT_POLICY, ScoringPolicy
from shared.security import sanitize_html_text

from api.events import ReportEventPublisher, build_report_created_event
from api.models import ReportComment, ReportLocation, ReportRecord
from api.repositories.report_repository import ReportRepository, to_safety_report
from api.schemas.report import ReportCreateRequest, ReportPatch

logger = logging.getLogger(__name__)

NEARBY_LIMIT = 50
AREA_STATS_WINDOW = timedelta(days=30)


class ReportAccessError(Exception):
    """Raised when a caller changes a report they did not author."""


def present_report(record: ReportRecord, viewer_id: str | None = None) -> dict[str, Any]:
    payload = asdict(record)
    payload.pop("votes", None)
    if record.is_anonymous and record.user_id != viewer_id:
        payload["user_id"] = None
    return payload


class ReportService:
    def __init__(
        self,
        repository: ReportRepository,
        publisher: ReportEventPublisher,
        topic: str,
        policy: ScoringPolicy = DEFAULT_POLICY,
    ) -> None:
        self._repository = repository
        self._publisher = publisher
        self._topic = topic
        self._policy = policy
        self._pending: set[asyncio.Task[None]] = set()

    async def create(self, user_id: str, body: ReportCreateRequest, trace_id: str | None = None) -> ReportRecord:
        now = now_local()
        incident = body.time_of_incident or now
        record = ReportRecord(
            report_id=str(uuid4()),
            user_id=user_id,
            report_type=body.report_type.value,
            location=ReportLocation(
                lat=body.location.lat,
                lng=body.location.lng,
                address=body.location.address,
                landmark=body.location.landmark,
            ),
            description=sanitize_html_text(body.description),
            severity=body.severity.value,
            is_anonymous=body.is_anonymous,
            time_of_incident=incident.isoformat(),
            created_at=now.isoformat(),
            updated_at=now.isoformat(),
        )
        saved = await self._repository.add(record)
        self._broadcast(saved, trace_id)
        return saved

    async def nearby(self, center: GeoPoint, radius_meters: float) -> list[dict[str, Any]]:
        records = await self._repository.find_nearby(center, radius_meters, limit=NEARBY_LIMIT)
        return [present_report(record) for record in records]

    async def area_stats(self, center: GeoPoint, radius_meters: float) -> AreaStats:
        since = now_local() - AREA_STATS_WINDOW
        records = await self._repository.find_nearby(center, radius_meters, since=since)
        return summarize_area([to_safety_report(record) for record in records], self._policy)

    async def mine(self, user_id: str, page: int, limit: int) -> tuple[list[dict[str, Any]], dict[str, int]]:
        records, total = await self._repository.list_for_user(user_id, page, limit)
        meta = {"page": page, "limit": limit, "total": total, "total_pages": -(-total // limit)}
        return [present_report(record, viewer_id=user_id) for record in records], meta

    async def get(self, report_id: str, viewer_id: str) -> dict[str, Any] | None:
        record = await self._repository.get(report_id)
        if record is None:
            return None
        return present_report(record, viewer_id=viewer_id)

    async def update(self, report_id: str, user_id: str, patch: ReportPatch) -> dict[str, Any] | None:
        await self._require_author(report_id, user_id)
        updates: dict[str, Any] = {}
        if patch.description is not None:
            updates["description"] = sanitize_html_text(patch.description)
        if patch.severity is not None:
            updates["severity"] = patch.severity.value
        if patch.status is not None:
            updates["status"] = patch.status.value
        updated = await self._repository.update(report_id, updates)
        if updated is None:
            return None
        return present_report(updated, viewer_id=user_id)

    async def delete(self, report_id: str, user_id: str) -> bool:
        await self._require_author(report_id, user_id)
        return await self._repository.delete(report_id)

    async def vote(self, report_id: str, user_id: str, vote: str) -> int | None:
        record = await self._repository.record_vote(report_id, user_id, vote)
        if record is None:
            return None
        return record.helpful_count

    async def comment(self, report_id: str, user_id: str, text: str) -> dict[str, Any] | None:
        comment = ReportComment(comment_id=str(uuid4()), user_id=user_id, text=sanitize_html_text(text))
        record = await self._repository.add_comment(report_id, comment)
        if record is None:
            return None
        logger.info("report_comment_added", extra={"component": "api", "report_id": report_id})
        return {"report_id": report_id, "comment": asdict(comment), "comment_count": len(record.comments)}

    async def drain(self) -> None:
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _require_author(self, report_id: str, user_id: str) -> None:
        record = await self._repository.get(report_id)
        if record is not None and record.user_id != user_id:
            raise ReportAccessError("only the author can change this report")

    def _broadcast(self, record: ReportRecord, trace_id: str | None) -> None:
        task = asyncio.create_task(self._publish_created(record, trace_id))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _publish_created(self, record: ReportRecord, trace_id: str | None) -> None:
        envelope = build_report_created_event(record, trace_id=trace_id)
        try:
            await self._publisher.publish(self._topic, envelope, key=record.report_id)
        except Exception:
            logger.exception(
                "report_broadcast_failed",
                extra={"component": "api", "report_id": record.report_id, "topic": self._topic},
            )
