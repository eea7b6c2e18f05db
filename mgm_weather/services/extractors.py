"""
Strategies for pulling the weather payload out of the rendered MGM page.

Every strategy runs against a live Playwright page and returns a raw dict with
``current``, ``hourly``, ``daily`` and ``method`` keys. Missing data is
``None``; extraction itself never raises for absent fields.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Sequence
from urllib.parse import urlparse

import structlog
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

from ..config import AppSettings
from ..schemas.weather import (
    METHOD_DIRECT,
    METHOD_DOM,
    METHOD_FAILED,
    METHOD_NETWORK,
    METHOD_SCOPE,
)
from .waits import wait_for_condition

logger = structlog.get_logger()

FIELDS = ("current", "hourly", "daily")

# Scope field names differ between page versions
SCOPE_ALIASES: Dict[str, Sequence[str]] = {
    "current": ("sondurum",),
    "hourly": ("tahmin", "saatlikTahmin"),
    "daily": ("gunlukTahmin", "gunluktahmin"),
}

DOM_SELECTORS: Dict[str, str] = {
    "sicaklik": ".anlik-sicaklik-deger",
    "nem": ".anlik-nem-deger-kac",
    "hadise": ".anlik-durum-hadise",
}

# Substring of the backend URL -> snapshot field
URL_MARKERS = (
    ("sondurumlar", "current"),
    ("saatlik", "hourly"),
    ("gunluk", "daily"),
)

SCOPE_READ_JS = """
(names) => {
    const el = document.querySelector('[ng-controller]');
    const ng = window.angular;
    const scope = (el && ng) ? ng.element(el).scope() : null;
    if (!scope) return null;
    const out = {};
    for (const name of names) {
        const value = scope[name];
        if (value !== undefined && value !== null) {
            out[name] = JSON.parse(ng.toJson(value));
        }
    }
    return out;
}
"""

SCOPE_READY_JS = """
() => {
    const el = document.querySelector('[ng-controller]');
    if (!el || !window.angular) return false;
    const scope = window.angular.element(el).scope();
    return !!(scope && scope.sondurum);
}
"""

DOM_READ_JS = """
(selectors) => {
    const out = {};
    for (const [key, selector] of Object.entries(selectors)) {
        const el = document.querySelector(selector);
        out[key] = el ? el.innerText : null;
    }
    return out;
}
"""

DIRECT_FETCH_JS = """
async (urls) => {
    const get = async (url) => {
        try {
            const resp = await fetch(url, { headers: { Accept: 'application/json' } });
            if (!resp.ok) return null;
            return await resp.json();
        } catch (e) {
            return null;
        }
    };
    const [current, hourly, daily] = await Promise.all([
        get(urls.current), get(urls.hourly), get(urls.daily),
    ]);
    return { current, hourly, daily };
}
"""


def unwrap_single(value: Any) -> Any:
    """MGM wraps single records in a one-element list."""
    if isinstance(value, list) and len(value) == 1:
        return value[0]
    return value


def first_or_none(value: Any) -> Any:
    if isinstance(value, list):
        return value[0] if value else None
    return value


def classify_url(url: str, api_host: str) -> Optional[str]:
    parsed = urlparse(url)
    if parsed.hostname != api_host:
        return None
    path = (parsed.path + "?" + parsed.query).lower()
    for marker, field in URL_MARKERS:
        if marker in path:
            return field
    return None


def _clean_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


class Extractor(ABC):
    """One extraction attempt; a new instance is built for every fetch."""

    ready_expression: Optional[str] = None

    def __init__(self, settings: AppSettings):
        self.settings = settings

    async def before_navigation(self, page: Page) -> None:
        return None

    @abstractmethod
    async def extract(self, page: Page) -> Dict[str, Any]:
        ...


class DomExtractor(Extractor):
    async def extract(self, page: Page) -> Dict[str, Any]:
        texts = await page.evaluate(DOM_READ_JS, DOM_SELECTORS) or {}
        current = {key: _clean_text(texts.get(key)) for key in DOM_SELECTORS}
        if all(v is None for v in current.values()):
            logger.warning("dom_fallback_empty")
            current = None
        return {"current": current, "hourly": None, "daily": None, "method": METHOD_DOM}


class ScopeExtractor(Extractor):
    """Reads the Angular controller scope, falling back to DOM text."""

    ready_expression = SCOPE_READY_JS

    def __init__(self, settings: AppSettings, fallback: Optional[Extractor] = None):
        super().__init__(settings)
        self.fallback = fallback or DomExtractor(settings)

    async def extract(self, page: Page) -> Dict[str, Any]:
        names = [name for aliases in SCOPE_ALIASES.values() for name in aliases]
        scope = await page.evaluate(SCOPE_READ_JS, names)

        data: Dict[str, Any] = {field: None for field in FIELDS}
        if scope:
            for field, aliases in SCOPE_ALIASES.items():
                for name in aliases:
                    if scope.get(name) is not None:
                        data[field] = scope[name]
                        break
            data["current"] = first_or_none(data["current"])

        if data["current"] is not None:
            data["method"] = METHOD_SCOPE
            return data

        logger.info("scope_missing_current", scope_found=bool(scope))
        fallback = await self.fallback.extract(page)
        # Keep whatever hourly/daily the scope did expose
        for field in ("hourly", "daily"):
            if fallback.get(field) is None:
                fallback[field] = data[field]
        return fallback


class NetworkInterceptionExtractor(Extractor):
    """Captures the page's own backend responses while it loads."""

    def __init__(self, settings: AppSettings):
        super().__init__(settings)
        self.api_host = urlparse(settings.api_base_url).hostname or ""
        self.captured: Dict[str, Any] = {}

    async def before_navigation(self, page: Page) -> None:
        page.on("response", self.on_response)

    async def on_response(self, response) -> None:
        field = classify_url(response.url, self.api_host)
        if field is None:
            return
        try:
            payload = await response.json()
        except (PlaywrightError, ValueError) as e:
            logger.debug("intercepted_response_not_json", url=response.url, error=str(e))
            return
        self.captured[field] = unwrap_single(payload)
        logger.debug("intercepted_response", field=field, url=response.url)

    def complete(self) -> bool:
        return all(self.captured.get(field) is not None for field in FIELDS)

    async def extract(self, page: Page) -> Dict[str, Any]:
        s = self.settings
        done = await wait_for_condition(
            self.complete,
            timeout_s=s.poll_timeout_s,
            interval_s=s.poll_interval_s,
            backoff=s.poll_backoff,
        )
        if not done:
            logger.warning("interception_incomplete", captured=sorted(self.captured))
        data = {field: self.captured.get(field) for field in FIELDS}
        data["method"] = METHOD_NETWORK if data["current"] is not None else METHOD_FAILED
        return data


class DirectFetchExtractor(Extractor):
    """Replays the backend API calls from inside the page's origin."""

    def endpoints(self) -> Dict[str, str]:
        base = self.settings.api_base_url.rstrip("/")
        return {
            "current": f"{base}/web/sondurumlar?merkezid={self.settings.merkez_id}",
            "hourly": f"{base}/web/tahminler/saatlik?istno={self.settings.station_id}",
            "daily": f"{base}/web/tahminler/gunluk?istno={self.settings.station_id}",
        }

    async def extract(self, page: Page) -> Dict[str, Any]:
        raw = await page.evaluate(DIRECT_FETCH_JS, self.endpoints()) or {}
        data = {field: unwrap_single(raw.get(field)) for field in FIELDS}
        data["method"] = METHOD_DIRECT if data["current"] is not None else METHOD_FAILED
        return data


STRATEGIES = {
    "scope": ScopeExtractor,
    "dom": DomExtractor,
    "network": NetworkInterceptionExtractor,
    "direct": DirectFetchExtractor,
}


def build_extractor(settings: AppSettings) -> Extractor:
    try:
        cls = STRATEGIES[settings.strategy]
    except KeyError:
        raise ValueError(f"unknown extraction strategy: {settings.strategy}") from None
    return cls(settings)
