from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from route_safety.models import ReportStatus, ReportType, Severity


class ReportLocationIn(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    address: str | None = Field(default=None, max_length=512)
    landmark: str | None = Field(default=None, max_length=255)


class ReportCreateRequest(BaseModel):
    report_type: ReportType
    location: ReportLocationIn
    description: str = Field(..., min_length=1, max_length=1000)
    time_of_incident: datetime | None = None
    severity: Severity = Severity.MEDIUM
    is_anonymous: bool = False


class ReportPatch(BaseModel):
    model_config = ConfigDict(extra="forbid")

    description: str | None = Field(default=None, min_length=1, max_length=1000)
    severity: Severity | None = None
    status: ReportStatus | None = None


class ReportVoteRequest(BaseModel):
    vote: Literal["helpful", "not-helpful"]


class ReportCommentRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    text: str = Field(..., min_length=1, max_length=1000)
