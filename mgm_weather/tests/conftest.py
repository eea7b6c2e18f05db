from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

import pytest

from mgm_weather.config import AppSettings
from mgm_weather.services.cache import InMemorySnapshotCache


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeResponse:
    def __init__(self, url: str, payload: Any = None, error: Optional[Exception] = None) -> None:
        self.url = url
        self._payload = payload
        self._error = error

    async def json(self) -> Any:
        if self._error is not None:
            raise self._error
        return self._payload


class FakePage:
    """Stands in for a Playwright page; evaluate() answers by script."""

    def __init__(self, results: Optional[Dict[str, Any]] = None) -> None:
        self.results = results or {}
        self.evaluated: List[tuple] = []
        self.listeners: Dict[str, list] = {}

    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        self.evaluated.append((expression, arg))
        result = self.results.get(expression)
        if isinstance(result, Exception):
            raise result
        return result

    def on(self, event: str, handler) -> None:
        self.listeners.setdefault(event, []).append(handler)

    async def emit(self, event: str, payload: Any) -> None:
        for handler in self.listeners.get(event, []):
            await handler(payload)


class FakeRenderer:
    def __init__(self, page: Optional[FakePage] = None, error: Optional[Exception] = None) -> None:
        self.page = page or FakePage()
        self.error = error
        self.sessions = 0
        self.closed = 0
        self.ready_expressions: List[Optional[str]] = []

    @asynccontextmanager
    async def session(self, before_navigation=None, ready_expression=None):
        self.sessions += 1
        self.ready_expressions.append(ready_expression)
        try:
            if self.error is not None:
                raise self.error
            if before_navigation is not None:
                await before_navigation(self.page)
            yield self.page
        finally:
            self.closed += 1


class FakeExtractor:
    ready_expression = None

    def __init__(self, result: Dict[str, Any], calls: List[int]) -> None:
        self.result = result
        self.calls = calls

    async def before_navigation(self, page) -> None:
        return None

    async def extract(self, page) -> Dict[str, Any]:
        self.calls.append(1)
        return dict(self.result)


@pytest.fixture
def settings() -> AppSettings:
    return AppSettings(_env_file=None, poll_interval_s=0.01, poll_timeout_s=0.05)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> InMemorySnapshotCache:
    return InMemorySnapshotCache(ttl_s=300, clock=clock)
