"""
Action executor: applies parsed directives to the live page.

Directives run one at a time in textual order. Each one is isolated: a
directive that cannot be applied produces a toast and the next directive
still runs. Nothing here can fail the conversation turn.
"""

import asyncio
import logging
import re
from collections.abc import Sequence
from typing import Optional

from voice_companion.core.errors import ElementNotFound
from voice_companion.core.settings import ActionSettings
from voice_companion.models.schemas import ActionDirective
from voice_companion.models.schemas import ClickDirective
from voice_companion.models.schemas import HighlightDirective
from voice_companion.models.schemas import NavigateDirective
from voice_companion.models.schemas import ScrollDirective
from voice_companion.models.schemas import SuggestDirective
from voice_companion.models.schemas import Toast
from voice_companion.models.schemas import ToastKind
from voice_companion.platform import Page
from voice_companion.platform import PageElement
from voice_companion.services.error_handler import error_handler
from voice_companion.services.events import EventStream
from voice_companion.services.route_index import RouteIndex

EXACT_MATCH = 3
PREFIX_MATCH = 2
SUBSTRING_MATCH = 1
NO_MATCH = 0

ARTICLES = frozenset({"a", "an", "the"})

NOT_FOUND_TITLES = {
    "navigate": "Page not found",
    "click": "Button not found",
}

# Reply wording that triggers automatic emphasis of the content being discussed
EXPLAINING = re.compile(r"\b(explain\w*|this is|let me|here|see|look at|notice|important)\b", re.IGNORECASE)
MENTIONS_CODE = re.compile(r"\b(code|function|class|const|let|var)\b", re.IGNORECASE)
MENTIONS_ANSWER = re.compile(r"\b(answer|solution|explanation)\b", re.IGNORECASE)

HEADING_SELECTORS = ("h1", "h2.text-2xl", ".question-text")
CODE_SELECTORS = ("pre", "code", ".code-block")
ANSWER_SELECTORS = (".answer-section", ".explanation", '[class*="answer"]')


def normalize_label(text: str) -> str:
    """Lowercase, drop punctuation and articles, collapse whitespace."""
    words = re.sub(r"[^\w\s]", " ", text.lower()).split()
    return " ".join(w for w in words if w not in ARTICLES)


def score_label(query: str, label: str) -> int:
    """
    Score how well a control label matches a requested label.

    Returns:
        int: 3 for an exact match, 2 when the label starts with the query,
        1 when either contains the other, 0 otherwise
    """
    q = normalize_label(query)
    candidate = normalize_label(label)
    if not q or not candidate:
        return NO_MATCH
    if q == candidate:
        return EXACT_MATCH
    if candidate.startswith(q):
        return PREFIX_MATCH
    if q in candidate or candidate in q:
        return SUBSTRING_MATCH
    return NO_MATCH


def best_match_index(query: str, labels: Sequence[str]) -> Optional[int]:
    """Index of the best scoring label; ties go to the earliest one."""
    best_index, best_score = None, NO_MATCH
    for index, label in enumerate(labels):
        score = score_label(query, label)
        if score > best_score:
            best_index, best_score = index, score
    return best_index


def find_control(query: str, controls: Sequence[PageElement]) -> Optional[PageElement]:
    index = best_match_index(query, [c.label for c in controls])
    return controls[index] if index is not None else None


class ActionExecutor:
    """Executes action directives against a Page."""

    def __init__(
        self,
        page: Page,
        toasts: EventStream[Toast],
        route_index: Optional[RouteIndex] = None,
        settings: Optional[ActionSettings] = None,
    ):
        self.page = page
        self.toasts = toasts
        self.route_index = route_index
        self.settings = settings or ActionSettings()
        self.logger = logging.getLogger(__name__)

        self._handlers = {
            "navigate": self._navigate,
            "click": self._click,
            "scroll": self._scroll,
            "highlight": self._highlight,
            "suggest": self._suggest,
        }
        self._background: dict[asyncio.Task, list[PageElement]] = {}

    async def execute_all(self, directives: Sequence[ActionDirective]) -> list[bool]:
        """
        Execute directives sequentially.

        Args:
            directives: Directives in textual order

        Returns:
            list[bool]: Per-directive success flags
        """
        results = []
        for directive in directives:
            results.append(await self.execute(directive))
        return results

    async def execute(self, directive: ActionDirective) -> bool:
        try:
            await self._handlers[directive.kind](directive)
            return True
        except ElementNotFound as e:
            self.logger.info(f"{directive.kind} target not found: {e.target}")
            self._toast(
                ToastKind.WARNING, NOT_FOUND_TITLES.get(directive.kind, "Element not found"), e.target
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            error_handler.log_error(e, {"directive": directive.kind})
            self._toast(ToastKind.ERROR, "Action failed", f"Could not {directive.kind}")
        return False

    async def auto_emphasize(self, text: str) -> int:
        """
        Emphasize the page content an explanatory reply talks about.

        The main heading is emphasized for any explanation; code blocks and
        the answer section only when the reply mentions them. Failures are
        logged and never reach the turn.

        Args:
            text: Display text of the reply

        Returns:
            int: Number of elements emphasized
        """
        if not EXPLAINING.search(text):
            return 0

        count = 0
        try:
            for elements in await self._emphasis_targets(text):
                await elements[0].scroll_into_view()
                await self._emphasize_for(elements, self.settings.highlight_dwell_ms)
                count += len(elements)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            error_handler.log_error(e, {"stage": "auto emphasis"}, logging.WARNING)

        if count:
            self.logger.debug(f"Emphasized {count} element(s) for an explanation")
        return count

    async def _emphasis_targets(self, text: str) -> list[list[PageElement]]:
        groups = [(await self._select_any(HEADING_SELECTORS))[:1]]
        if MENTIONS_CODE.search(text):
            groups.append([e for s in CODE_SELECTORS for e in await self.page.query_selector(s)])
        if MENTIONS_ANSWER.search(text):
            groups.append((await self._select_any(ANSWER_SELECTORS))[:1])
        return [g for g in groups if g]

    async def _select_any(self, selectors: Sequence[str]) -> list[PageElement]:
        for selector in selectors:
            elements = await self.page.query_selector(selector)
            if elements:
                return elements
        return []

    async def aclose(self) -> None:
        """Cancel pending emphasis timers, removing their emphasis."""
        pending = dict(self._background)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        for elements in pending.values():
            for element in elements:
                await element.set_emphasis(False)

    @property
    def pending(self) -> int:
        return len(self._background)

    def _toast(self, kind: ToastKind, title: str, detail: str = "") -> None:
        self.toasts.publish(Toast(kind=kind, title=title, detail=detail))

    async def _navigate(self, directive: NavigateDirective) -> None:
        target = directive.path
        if self.route_index is not None:
            target = self.route_index.resolve(directive.path)
            if target is None:
                raise ElementNotFound(directive.path)

        await self.page.navigate(target)
        title = directive.label or (self.route_index.title(target) if self.route_index else None)
        self._toast(ToastKind.SUCCESS, "Navigating", f"Taking you to {title or target}")

    async def _click(self, directive: ClickDirective) -> None:
        element = find_control(directive.text, await self.page.controls())
        if element is None:
            raise ElementNotFound(directive.text)

        await element.scroll_into_view()
        await element.set_emphasis(True)
        try:
            await asyncio.sleep(self.settings.click_dwell_ms / 1000)
            await element.click()
        finally:
            await element.set_emphasis(False)

        self._toast(ToastKind.SUCCESS, "Clicked", directive.description or element.label)

    async def _locate(self, hint: str) -> list[PageElement]:
        elements = await self.page.query_selector(hint)
        if elements:
            return elements

        element = find_control(hint, await self.page.controls())
        if element is None:
            raise ElementNotFound(hint)
        return [element]

    async def _scroll(self, directive: ScrollDirective) -> None:
        elements = await self._locate(directive.selector_hint)
        await elements[0].scroll_into_view()
        await self._emphasize_for(elements[:1], self.settings.scroll_dwell_ms)
        if directive.description:
            self._toast(ToastKind.SUCCESS, "Scrolled", directive.description)

    async def _highlight(self, directive: HighlightDirective) -> None:
        elements = await self._locate(directive.selector_hint)
        await elements[0].scroll_into_view()
        await self._emphasize_for(elements, self.settings.highlight_dwell_ms)
        if directive.description:
            self._toast(ToastKind.SUCCESS, "Highlighted", directive.description)

    async def _suggest(self, directive: SuggestDirective) -> None:
        self._toast(ToastKind.SUCCESS, "Suggestion", directive.message)

    async def _emphasize_for(self, elements: list[PageElement], dwell_ms: int) -> None:
        for element in elements:
            await element.set_emphasis(True)
        task = asyncio.create_task(self._remove_emphasis_after(elements, dwell_ms / 1000))
        self._background[task] = elements
        task.add_done_callback(lambda t: self._background.pop(t, None))

    async def _remove_emphasis_after(self, elements: list[PageElement], dwell: float) -> None:
        try:
            await asyncio.sleep(dwell)
        finally:
            for element in elements:
                try:
                    await element.set_emphasis(False)
                except Exception as e:
                    self.logger.debug(f"Could not remove emphasis from {element.label!r}: {e}")
