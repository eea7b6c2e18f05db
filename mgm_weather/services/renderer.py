from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Optional

import structlog
from playwright.async_api import Page, async_playwright
from playwright.async_api import TimeoutError as PlaywrightTimeout

from ..config import AppSettings

logger = structlog.get_logger()

LOCAL_ARGS = ["--no-sandbox", "--disable-setuid-sandbox"]
# Flags for memory/process constrained runtimes such as Vercel or Lambda
SERVERLESS_ARGS = LOCAL_ARGS + [
    "--single-process",
    "--no-zygote",
    "--disable-dev-shm-usage",
    "--disable-gpu",
]

TEXT_PRESENT_JS = """
(selector) => {
    const el = document.querySelector(selector);
    return !!(el && el.innerText && el.innerText.trim().length > 0);
}
"""

BeforeNavigation = Callable[[Page], Awaitable[None]]


class PageRenderer:
    """Headless Chromium session pointed at the MGM forecast page."""

    def __init__(self, settings: AppSettings):
        self.settings = settings

    def launch_options(self) -> Dict[str, Any]:
        s = self.settings
        if s.serverless:
            opts: Dict[str, Any] = {"headless": True, "args": list(SERVERLESS_ARGS)}
            if s.chromium_executable_path:
                opts["executable_path"] = s.chromium_executable_path
            return opts
        return {"headless": True, "args": list(LOCAL_ARGS)}

    def context_options(self) -> Dict[str, Any]:
        s = self.settings
        return {
            "user_agent": s.user_agent,
            "locale": "tr-TR",
            "ignore_https_errors": s.serverless,
            "extra_http_headers": {
                "Accept-Language": s.accept_language,
                "Referer": s.site_origin.rstrip("/") + "/",
                "Origin": s.site_origin.rstrip("/"),
            },
        }

    @asynccontextmanager
    async def session(
        self,
        before_navigation: Optional[BeforeNavigation] = None,
        ready_expression: Optional[str] = None,
    ) -> AsyncIterator[Page]:
        s = self.settings
        async with async_playwright() as pw:
            logger.info("browser_launch", serverless=s.serverless)
            browser = await pw.chromium.launch(**self.launch_options())
            try:
                context = await browser.new_context(**self.context_options())
                page = await context.new_page()
                if before_navigation is not None:
                    await before_navigation(page)

                logger.info("navigation_start", url=s.target_url, wait_until=s.wait_until)
                await page.goto(
                    s.target_url,
                    wait_until=s.wait_until,
                    timeout=s.effective_navigation_timeout_s * 1000,
                )
                await self.settle(page, ready_expression)
                yield page
            finally:
                await browser.close()
                logger.debug("browser_closed")

    async def settle(self, page: Page, ready_expression: Optional[str] = None) -> None:
        """Wait for dynamic content. Every wait is bounded and non-fatal."""
        s = self.settings
        if s.ready_selector:
            try:
                await page.wait_for_selector(s.ready_selector, timeout=s.ready_timeout_s * 1000)
            except PlaywrightTimeout:
                logger.warning("selector_wait_timeout", selector=s.ready_selector)

        if ready_expression:
            try:
                await page.wait_for_function(ready_expression, timeout=s.ready_timeout_s * 1000)
            except PlaywrightTimeout:
                logger.warning("ready_expression_timeout")

        if s.text_selector:
            try:
                await page.wait_for_function(
                    TEXT_PRESENT_JS, arg=s.text_selector, timeout=s.text_timeout_s * 1000
                )
            except PlaywrightTimeout:
                logger.warning("text_wait_timeout", selector=s.text_selector)

        if s.settle_delay_s > 0:
            await asyncio.sleep(s.settle_delay_s)
