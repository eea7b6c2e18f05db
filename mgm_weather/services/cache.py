from __future__ import annotations

import time
from typing import Callable, Optional, Protocol, Tuple

import structlog

from ..config import AppSettings
from ..schemas.weather import WeatherSnapshot

logger = structlog.get_logger()


class SnapshotCache(Protocol):
    ttl_s: float

    def get(self) -> Optional[Tuple[WeatherSnapshot, float]]: ...
    def is_fresh(self, ttl_s: Optional[float] = None) -> bool: ...
    def put(self, snapshot: WeatherSnapshot) -> None: ...


class InMemorySnapshotCache:
    """Holds the latest snapshot for the lifetime of the process."""

    def __init__(self, ttl_s: float = 300, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_s = ttl_s
        self._clock = clock
        # (stored_at_monotonic, snapshot)
        self._entry: Optional[Tuple[float, WeatherSnapshot]] = None

    def get(self) -> Optional[Tuple[WeatherSnapshot, float]]:
        if self._entry is None:
            return None
        stored_at, snapshot = self._entry
        return snapshot, max(0.0, self._clock() - stored_at)

    def is_fresh(self, ttl_s: Optional[float] = None) -> bool:
        item = self.get()
        if item is None:
            return False
        ttl = self.ttl_s if ttl_s is None else ttl_s
        return item[1] < ttl

    def put(self, snapshot: WeatherSnapshot) -> None:
        self._entry = (self._clock(), snapshot)
        logger.debug("cache_store", method=snapshot.method, updated_at=snapshot.updated_at)


def build_cache(settings: AppSettings) -> SnapshotCache:
    logger.info("cache_init_inmemory", ttl_s=settings.cache_ttl_seconds)
    return InMemorySnapshotCache(ttl_s=settings.cache_ttl_seconds)
