from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Mapping, Optional

from ..schemas.weather import METHOD_UNKNOWN, WeatherSnapshot


def isoformat_utc(moment: datetime) -> str:
    """Millisecond ISO-8601 in UTC with a ``Z`` suffix, rounded up to the next millisecond."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    moment += timedelta(microseconds=(-moment.microsecond) % 1000)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def normalize(raw: Mapping[str, Any], now: Optional[datetime] = None) -> WeatherSnapshot:
    moment = now or datetime.now(timezone.utc)
    return WeatherSnapshot(
        current=raw.get("current"),
        hourly=raw.get("hourly"),
        daily=raw.get("daily"),
        method=raw.get("method") or METHOD_UNKNOWN,
        updatedAt=isoformat_utc(moment),
    )
