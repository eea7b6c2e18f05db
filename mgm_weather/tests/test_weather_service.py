import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import pytest

from mgm_weather.services.extractors import DOM_READ_JS, SCOPE_READ_JS, ScopeExtractor
from mgm_weather.services.weather_service import WeatherFetchError, WeatherService

from .conftest import FakeExtractor, FakePage, FakeRenderer

CURRENT = {"current": {"sicaklik": 12}, "hourly": [1], "daily": [2], "method": "Angular Scope"}


def _service(settings, cache, renderer=None, result=None):
    calls = []
    svc = WeatherService(
        settings,
        cache=cache,
        renderer=renderer or FakeRenderer(),
        extractor_factory=lambda s: FakeExtractor(result or CURRENT, calls),
    )
    return svc, calls


def test_miss_runs_pipeline_and_stores(settings, cache):
    svc, calls = _service(settings, cache)
    before = datetime.now(timezone.utc)

    snap = asyncio.run(svc.get_weather())

    assert len(calls) == 1
    assert snap.current == {"sicaklik": 12}
    assert snap.method == "Angular Scope"
    assert datetime.fromisoformat(snap.updated_at.replace("Z", "+00:00")) >= before
    assert cache.get()[0] is snap
    assert svc.renderer.closed == 1


def test_fresh_cache_skips_pipeline(settings, cache, clock):
    svc, calls = _service(settings, cache)
    first = asyncio.run(svc.get_weather())
    clock.advance(299)
    second = asyncio.run(svc.get_weather())
    assert second is first
    assert len(calls) == 1
    assert svc.renderer.sessions == 1


def test_stale_cache_refetches(settings, cache, clock):
    svc, calls = _service(settings, cache)
    first = asyncio.run(svc.get_weather())
    clock.advance(301)
    second = asyncio.run(svc.get_weather())
    assert len(calls) == 2
    assert second is not first
    assert cache.get()[0] is second


def test_failed_fetch_leaves_cache_untouched(settings, cache, clock):
    svc, _ = _service(settings, cache)
    stale = asyncio.run(svc.get_weather())
    clock.advance(600)

    svc.renderer = FakeRenderer(error=RuntimeError("Navigation timeout of 60000 ms exceeded"))
    with pytest.raises(WeatherFetchError, match="Navigation timeout of 60000 ms exceeded"):
        asyncio.run(svc.get_weather())

    assert cache.get()[0] is stale
    assert svc.renderer.closed == 1
    assert svc.cache_age() == 600


def test_failed_first_fetch_keeps_cache_empty(settings, cache):
    svc, _ = _service(settings, cache, renderer=FakeRenderer(error=OSError("browser missing")))
    with pytest.raises(WeatherFetchError) as excinfo:
        asyncio.run(svc.get_weather())
    assert str(excinfo.value) == "browser missing"
    assert isinstance(excinfo.value.__cause__, OSError)
    assert cache.get() is None
    assert svc.cache_age() is None


def test_concurrent_misses_share_one_fetch(settings, cache):
    started = []

    class SlowExtractor(FakeExtractor):
        async def extract(self, page):
            started.append(1)
            await asyncio.sleep(0.05)
            return await super().extract(page)

    calls = []
    svc = WeatherService(
        settings,
        cache=cache,
        renderer=FakeRenderer(),
        extractor_factory=lambda s: SlowExtractor(CURRENT, calls),
    )

    async def scenario():
        return await asyncio.gather(*(svc.get_weather() for _ in range(5)))

    results = asyncio.run(scenario())
    assert len(started) == 1
    assert all(r is results[0] for r in results)
    assert svc.renderer.sessions == 1


def test_scope_strategy_falls_back_to_dom_end_to_end(settings, cache):
    page = FakePage({SCOPE_READ_JS: None, DOM_READ_JS: {"sicaklik": "8", "nem": "60", "hadise": "Açık"}})
    renderer = FakeRenderer(page=page)
    svc = WeatherService(settings, cache=cache, renderer=renderer, extractor_factory=ScopeExtractor)

    snap = asyncio.run(svc.get_weather())

    assert snap.method == "DOM Fallback"
    assert snap.current == {"sicaklik": "8", "nem": "60", "hadise": "Açık"}
    assert renderer.ready_expressions == [ScopeExtractor.ready_expression]


def test_empty_extraction_does_not_raise(settings, cache):
    page = FakePage({SCOPE_READ_JS: None, DOM_READ_JS: {}})
    svc = WeatherService(settings, cache=cache, renderer=FakeRenderer(page=page), extractor_factory=ScopeExtractor)
    snap = asyncio.run(svc.get_weather())
    assert snap.current is None
    assert snap.method in ("Failed", "DOM Fallback")


def test_next_request_after_failure_retries_from_scratch(settings, cache):
    svc, calls = _service(settings, cache, renderer=FakeRenderer(error=RuntimeError("boom")))
    with pytest.raises(WeatherFetchError):
        asyncio.run(svc.get_weather())
    assert calls == []

    svc.renderer = FakeRenderer()
    snap = asyncio.run(svc.get_weather())
    assert snap.current == {"sicaklik": 12}
    assert len(calls) == 1
    assert svc.renderer.sessions == 1
    assert cache.get()[0] is snap


def test_concurrent_misses_share_one_failure(settings, cache):
    class SlowFailingRenderer(FakeRenderer):
        @asynccontextmanager
        async def session(self, before_navigation=None, ready_expression=None):
            self.sessions += 1
            try:
                await asyncio.sleep(0.05)
                raise RuntimeError("boom")
                yield self.page
            finally:
                self.closed += 1

    renderer = SlowFailingRenderer()
    svc, _ = _service(settings, cache, renderer=renderer)

    async def scenario():
        return await asyncio.gather(*(svc.get_weather() for _ in range(3)), return_exceptions=True)

    results = asyncio.run(scenario())
    assert all(isinstance(r, WeatherFetchError) and str(r) == "boom" for r in results)
    assert renderer.sessions == 1
    assert renderer.closed == 1
    assert cache.get() is None
