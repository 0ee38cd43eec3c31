"""
Playwright-backed Page capability.

Drives a real browser tab so that directives act on a live web application.
Playwright is an optional dependency (the ``browser`` extra); it is imported
only when a BrowserPage is launched.
"""

import logging
import re
from typing import Any, Optional
from urllib.parse import urljoin
from urllib.parse import urlparse

from voice_companion.models.schemas import PageContext
from voice_companion.models.schemas import PageLink

logger = logging.getLogger(__name__)

EMPHASIS_CLASS = "vc-emphasis"
EMPHASIS_STYLE = f".{EMPHASIS_CLASS} {{ outline: 3px solid #f59e0b !important; outline-offset: 2px; }}"

CONTROL_SELECTOR = "button, [role=button], a[href], input[type=submit], input[type=button]"

SNAPSHOT_SCRIPT = """() => {
    const visible = (el) => {
        const style = window.getComputedStyle(el);
        if (style.display === 'none' || style.visibility === 'hidden') return false;
        const rect = el.getBoundingClientRect();
        return rect.width > 0 && rect.height > 0;
    };
    const text = (el) => (el.getAttribute('aria-label') || el.innerText || el.textContent || '').trim();
    const headings = Array.from(document.querySelectorAll('h1, h2, h3'))
        .filter(visible).map(text).filter(Boolean);
    const links = Array.from(document.querySelectorAll('a[href]'))
        .filter(visible).map(a => ({label: text(a), href: a.getAttribute('href')}))
        .filter(l => l.label && l.href);
    const buttons = Array.from(document.querySelectorAll('button, [role=button]'))
        .filter(visible).map(text).filter(Boolean);
    return {
        title: document.title,
        headings,
        links,
        buttons,
        pageData: window.__pageData || null,
    };
}"""


def compact_error(exc: Exception) -> str:
    text = re.sub(r"\s+", " ", str(exc).split("Call log:", 1)[0]).strip()
    return text[:217] + "..." if len(text) > 220 else text


class BrowserElement:
    def __init__(self, locator: Any, label: str):
        self.locator = locator
        self.label = label

    async def scroll_into_view(self) -> None:
        await self.locator.scroll_into_view_if_needed(timeout=1500)

    async def set_emphasis(self, on: bool) -> None:
        script = "(el, on) => el.classList.toggle('%s', on)" % EMPHASIS_CLASS
        await self.locator.evaluate(script, on)

    async def click(self) -> None:
        await self.locator.click(timeout=2000)


class BrowserPage:
    """Page capability for one Playwright tab."""

    def __init__(self, base_url: str, headless: bool = False):
        self.base_url = base_url
        self.headless = headless
        self._playwright = None
        self._browser = None
        self._page = None

    async def launch(self) -> "BrowserPage":
        from playwright.async_api import async_playwright

        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(headless=self.headless)
        self._page = await self._browser.new_page()
        await self._page.goto(self.base_url)
        await self._page.add_style_tag(content=EMPHASIS_STYLE)
        logger.info(f"Browser page opened at {self.base_url}")
        return self

    async def close(self) -> None:
        try:
            if self._browser is not None:
                await self._browser.close()
        finally:
            if self._playwright is not None:
                await self._playwright.stop()
            self._browser = None
            self._playwright = None
            self._page = None

    @property
    def page(self):
        if self._page is None:
            raise RuntimeError("BrowserPage.launch() has not been awaited")
        return self._page

    @property
    def route(self) -> str:
        return urlparse(self.page.url).path or "/"

    async def navigate(self, path: str) -> None:
        await self.page.goto(urljoin(self.base_url, path))
        await self.page.add_style_tag(content=EMPHASIS_STYLE)

    async def controls(self) -> list[BrowserElement]:
        locator = self.page.locator(CONTROL_SELECTOR)
        elements = []
        for index in range(await locator.count()):
            item = locator.nth(index)
            if not await item.is_visible():
                continue
            label = (await item.get_attribute("aria-label")) or (await item.inner_text())
            if label and label.strip():
                elements.append(BrowserElement(item, label.strip()))
        return elements

    async def query_selector(self, selector: str) -> list[BrowserElement]:
        try:
            locator = self.page.locator(selector)
            count = await locator.count()
        except Exception as e:
            # Label hints are not valid CSS; the caller falls back to label matching
            logger.debug(f"Selector {selector!r} not usable: {compact_error(e)}")
            return []
        return [BrowserElement(locator.nth(i), selector) for i in range(count)]

    async def snapshot(self) -> PageContext:
        data = await self.page.evaluate(SNAPSHOT_SCRIPT)
        page_data: Optional[dict[str, Any]] = data.get("pageData") or {}
        return PageContext(
            route=self.route,
            title=data.get("title", ""),
            headings=data.get("headings", []),
            visible_links=[PageLink(**link) for link in data.get("links", [])],
            visible_buttons=data.get("buttons", []),
            page_type=page_data.get("type"),
            question=page_data.get("question"),
            answer=page_data.get("answer"),
            content=page_data.get("content"),
            tags=page_data.get("tags") or [],
        )
