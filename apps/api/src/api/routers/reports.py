from __future__ import annotations

from dataclasses import asdict
from typing import Any

from fastapi import APIRouter, Depends, Query, status

from route_safety.models import GeoPoint

from api.dependencies import get_report_service
from api.errors import ApiError, not_found
from api.observability import get_trace_id
from api.response import success_response
from api.schemas.report import ReportCommentRequest, ReportCreateRequest, ReportPatch, ReportVoteRequest
from api.security import require_authenticated
from api.services.report_service import ReportAccessError, ReportService, present_report

router = APIRouter(prefix="/v1/reports", tags=["reports"])


def _forbidden(exc: ReportAccessError) -> ApiError:
    return ApiError("FORBIDDEN", str(exc), 403)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_report(
    body: ReportCreateRequest,
    auth: dict[str, Any] = Depends(require_authenticated),
    service: ReportService = Depends(get_report_service),
) -> dict:
    record = await service.create(auth["user_id"], body, trace_id=get_trace_id() or None)
    return success_response(present_report(record, viewer_id=auth["user_id"]), meta={})


@router.get("/nearby")
async def nearby_reports(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    radius: float = Query(default=5000, gt=0, le=50000),
    auth: dict[str, Any] = Depends(require_authenticated),
    service: ReportService = Depends(get_report_service),
) -> dict:
    items = await service.nearby(GeoPoint(lat=lat, lng=lng), radius)
    return success_response(items, meta={"count": len(items)})


@router.get("/stats/area")
async def area_stats(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    radius: float = Query(default=5000, gt=0, le=50000),
    auth: dict[str, Any] = Depends(require_authenticated),
    service: ReportService = Depends(get_report_service),
) -> dict:
    stats = await service.area_stats(GeoPoint(lat=lat, lng=lng), radius)
    return success_response(asdict(stats), meta={"radius": radius})


@router.get("/mine")
async def my_reports(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    auth: dict[str, Any] = Depends(require_authenticated),
    service: ReportService = Depends(get_report_service),
) -> dict:
    items, meta = await service.mine(auth["user_id"], page, limit)
    return success_response(items, meta=meta)


@router.get("/{report_id}")
async def get_report(
    report_id: str,
    auth: dict[str, Any] = Depends(require_authenticated),
    service: ReportService = Depends(get_report_service),
) -> dict:
    item = await service.get(report_id, viewer_id=auth["user_id"])
    if item is None:
        raise not_found("report")
    return success_response(item, meta={})


@router.patch("/{report_id}")
async def update_report(
    report_id: str,
    body: ReportPatch,
    auth: dict[str, Any] = Depends(require_authenticated),
    service: ReportService = Depends(get_report_service),
) -> dict:
    try:
        item = await service.update(report_id, auth["user_id"], body)
    except ReportAccessError as exc:
        raise _forbidden(exc) from exc
    if item is None:
        raise not_found("report")
    return success_response(item, meta={})


@router.delete("/{report_id}")
async def delete_report(
    report_id: str,
    auth: dict[str, Any] = Depends(require_authenticated),
    service: ReportService = Depends(get_report_service),
) -> dict:
    try:
        deleted = await service.delete(report_id, auth["user_id"])
    except ReportAccessError as exc:
        raise _forbidden(exc) from exc
    if not deleted:
        raise not_found("report")
    return success_response({"deleted": True}, meta={})


@router.post("/{report_id}/vote")
async def vote_report(
    report_id: str,
    body: ReportVoteRequest,
    auth: dict[str, Any] = Depends(require_authenticated),
    service: ReportService = Depends(get_report_service),
) -> dict:
    helpful_count = await service.vote(report_id, auth["user_id"], body.vote)
    if helpful_count is None:
        raise not_found("report")
    return success_response({"report_id": report_id, "helpful_count": helpful_count}, meta={})


@router.post("/{report_id}/comment", status_code=status.HTTP_201_CREATED)
async def comment_report(
    report_id: str,
    body: ReportCommentRequest,
    auth: dict[str, Any] = Depends(require_authenticated),
    service: ReportService = Depends(get_report_service),
) -> dict:
    item = await service.comment(report_id, auth["user_id"], body.text)
    if item is None:
        raise not_found("report")
    return success_response(item, meta={})
