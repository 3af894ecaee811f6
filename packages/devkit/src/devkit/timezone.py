from __future__ import annotations

from datetime import datetime
from zoneinfo import ZoneInfo

_service_zone = ZoneInfo("UTC")


def configure_service_timezone(name: str) -> None:
    global _service_zone
    _service_zone = ZoneInfo(name)


def service_zone() -> ZoneInfo:
    return _service_zone


def now_local() -> datetime:
    return datetime.now(_service_zone)


def now_iso() -> str:
    return now_local().isoformat()
