"""
In-memory page model.

StaticPage implements the Page capability from a plain description of routes,
headings, links, buttons and selectable content. The console front end uses
it to run the engine without a browser; tests use it to observe directives.
"""

import logging
from pathlib import Path
from typing import Any, Optional

import yaml

from voice_companion.models.schemas import PageContext
from voice_companion.models.schemas import PageLink
from voice_companion.services.route_index import normalize_path

logger = logging.getLogger(__name__)

# PageContext fields a route may fill from its "data" block
PAGE_DATA_FIELDS = ("page_type", "question", "answer", "content", "tags")


class StaticElement:
    """A labeled element that records what was done to it."""

    def __init__(self, page: "StaticPage", label: str, navigate: Optional[str] = None):
        self.page = page
        self.label = label
        self.navigate_to = navigate
        self.emphasized = False
        self.scroll_count = 0
        self.click_count = 0

    async def scroll_into_view(self) -> None:
        self.scroll_count += 1

    async def set_emphasis(self, on: bool) -> None:
        self.emphasized = on

    async def click(self) -> None:
        self.click_count += 1
        self.page.clicks.append(self.label)
        if self.navigate_to:
            await self.page.navigate(self.navigate_to)

    def __repr__(self) -> str:
        return f"StaticElement({self.label!r})"


class StaticRoute:
    def __init__(self, page: "StaticPage", path: str, description: dict[str, Any]):
        self.path = path
        self.title = description.get("title", "")
        self.headings: list[str] = list(description.get("headings", []))
        self.links = [PageLink(**link) for link in description.get("links", [])]
        self.buttons = [
            StaticElement(page, b["label"], b.get("navigate")) if isinstance(b, dict) else StaticElement(page, b)
            for b in description.get("buttons", [])
        ]
        self.elements: dict[str, list[StaticElement]] = {
            selector: [StaticElement(page, label) for label in labels]
            for selector, labels in description.get("elements", {}).items()
        }
        data = description.get("data") or {}
        ignored = sorted(set(data) - set(PAGE_DATA_FIELDS))
        if ignored:
            logger.warning(f"Ignoring page data keys on {path}: {ignored}")
        self.data: dict[str, Any] = {k: v for k, v in data.items() if k in PAGE_DATA_FIELDS}


class StaticPage:
    """Page capability backed by a dict or YAML description."""

    def __init__(self, routes: dict[str, dict[str, Any]], start: str = "/"):
        self.clicks: list[str] = []
        self.history: list[str] = []
        self._routes: dict[str, StaticRoute] = {}
        for path, description in routes.items():
            path = normalize_path(path)
            self._routes[path] = StaticRoute(self, path, description or {})
        self.route = normalize_path(start)
        if self.route not in self._routes:
            self._routes[self.route] = StaticRoute(self, self.route, {})

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StaticPage":
        return cls(data.get("routes", {}), start=data.get("start", "/"))

    @classmethod
    def from_yaml(cls, path: Path) -> "StaticPage":
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        logger.info(f"Loaded static page description from {path}")
        return cls.from_dict(data)

    @property
    def current(self) -> StaticRoute:
        return self._routes[self.route]

    async def navigate(self, path: str) -> None:
        path = normalize_path(path)
        if path not in self._routes:
            self._routes[path] = StaticRoute(self, path, {})
        self.history.append(self.route)
        self.route = path
        logger.info(f"Navigated to {path}")

    async def controls(self) -> list[StaticElement]:
        return list(self.current.buttons)

    async def query_selector(self, selector: str) -> list[StaticElement]:
        return list(self.current.elements.get(selector, []))

    async def snapshot(self) -> PageContext:
        route = self.current
        return PageContext(
            route=route.path,
            title=route.title,
            headings=route.headings,
            visible_links=route.links,
            visible_buttons=[b.label for b in route.buttons],
            **route.data,
        )
