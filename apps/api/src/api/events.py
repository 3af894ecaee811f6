from __future__ import annotations

from abc import ABC, abstractmethod
from collections import defaultdict
import json
from typing import Any

from devkit.kafka import AsyncKafkaProducerManager
from shared.events import EventEnvelope, build_event_envelope

from api.models import ReportRecord

REPORT_CREATED_EVENT = "safety_report_created"


def build_report_created_event(record: ReportRecord, trace_id: str | None = None) -> EventEnvelope:
    location: dict[str, Any] = {"lat": record.location.lat, "lng": record.location.lng}
    if record.location.address:
        location["address"] = record.location.address
    if record.location.landmark:
        location["landmark"] = record.location.landmark
    return build_event_envelope(
        REPORT_CREATED_EVENT,
        {
            "report_id": record.report_id,
            "report_type": record.report_type,
            "location": location,
            "severity": record.severity,
            "timestamp": record.created_at,
        },
        trace_id=trace_id or None,
    )


class ReportEventPublisher(ABC):
    @abstractmethod
    async def publish(self, topic: str, envelope: EventEnvelope, key: str | None = None) -> None:
        raise NotImplementedError

    async def close(self) -> None:
        return None


class InMemoryReportEventPublisher(ReportEventPublisher):
    def __init__(self) -> None:
        self.published: dict[str, list[EventEnvelope]] = defaultdict(list)

    async def publish(self, topic: str, envelope: EventEnvelope, key: str | None = None) -> None:
        self.published[topic].append(envelope)


class KafkaReportEventPublisher(ReportEventPublisher):
    def __init__(self, producer: AsyncKafkaProducerManager) -> None:
        self._producer = producer

    async def publish(self, topic: str, envelope: EventEnvelope, key: str | None = None) -> None:
        payload = json.dumps(envelope.to_dict()).encode("utf-8")
        await self._producer.send_and_wait(topic, payload, key=key.encode("utf-8") if key else None)

    async def close(self) -> None:
        await self._producer.stop()
