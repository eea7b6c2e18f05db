from __future__ import annotations

import asyncio
from typing import Callable, Optional

import structlog

from ..config import AppSettings
from ..schemas.weather import WeatherSnapshot
from .cache import SnapshotCache, build_cache
from .extractors import Extractor, build_extractor
from .normalizer import normalize
from .renderer import PageRenderer

logger = structlog.get_logger()


class WeatherFetchError(RuntimeError):
    """Raised when the render/extract pipeline fails; the message is the cause's."""


class WeatherService:
    def __init__(
        self,
        settings: AppSettings,
        cache: Optional[SnapshotCache] = None,
        renderer: Optional[PageRenderer] = None,
        extractor_factory: Optional[Callable[[AppSettings], Extractor]] = None,
    ):
        self.settings = settings
        self.cache = cache or build_cache(settings)
        self.renderer = renderer or PageRenderer(settings)
        self.extractor_factory = extractor_factory or build_extractor
        self._inflight: Optional[asyncio.Future] = None

    def cache_age(self) -> Optional[float]:
        item = self.cache.get()
        return item[1] if item else None

    async def get_weather(self) -> WeatherSnapshot:
        if self.cache.is_fresh():
            logger.debug("cache_hit")
            return self.cache.get()[0]

        # Single-flight: concurrent misses await the same fetch
        if self._inflight is None:
            self._inflight = asyncio.ensure_future(self._fetch_and_release())
        else:
            logger.debug("fetch_join_inflight")
        return await asyncio.shield(self._inflight)

    async def _fetch_and_release(self) -> WeatherSnapshot:
        try:
            return await self.fetch()
        finally:
            self._inflight = None

    async def fetch(self) -> WeatherSnapshot:
        extractor = self.extractor_factory(self.settings)
        logger.info("weather_fetch_start", strategy=type(extractor).__name__)
        try:
            async with self.renderer.session(
                before_navigation=extractor.before_navigation,
                ready_expression=extractor.ready_expression,
            ) as page:
                raw = await extractor.extract(page)
        except Exception as e:
            logger.error("weather_fetch_failed", error=str(e), error_type=type(e).__name__)
            raise WeatherFetchError(str(e)) from e

        snapshot = normalize(raw)
        self.cache.put(snapshot)
        logger.info("weather_fetch_done", method=snapshot.method, updated_at=snapshot.updated_at)
        return snapshot
