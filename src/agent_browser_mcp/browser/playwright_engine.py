"""Playwright-powered browser engine implementation."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, Optional

from playwright.sync_api import Error, sync_playwright
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from ..config import BrowserConfig
from ..models import AXNode
from .base import BrowserEngine, BrowserEngineError, BrowserPage, ContextOptions, EngineTimeout

LOGGER = logging.getLogger(__name__)

# Roles that never appear in an "interesting only" snapshot.
PRUNED_ROLES = frozenset({"InlineTextBox"})
# Roles that are kept only when they carry a name.
UNNAMED_PRUNED_ROLES = frozenset({"generic", "none", "StaticText"})


@contextmanager
def _engine_errors() -> Iterator[None]:
    try:
        yield
    except PlaywrightTimeoutError as exc:
        raise EngineTimeout(str(exc)) from exc
    except Error as exc:
        raise BrowserEngineError(str(exc)) from exc


class PlaywrightEngine(BrowserEngine):
    """Launch a headless Chromium through Playwright for every call."""

    def __init__(self, config: Optional[BrowserConfig] = None) -> None:
        self._config = config or BrowserConfig()

    def launch(self, options: ContextOptions) -> "PlaywrightPage":
        LOGGER.debug("Launching Chromium")
        with _engine_errors():
            playwright = sync_playwright().start()
        launch_kwargs: dict[str, Any] = {
            "headless": self._config.headless,
            "args": list(self._config.launch_args),
        }
        if self._config.executable_path:
            launch_kwargs["executable_path"] = str(self._config.executable_path)
        browser = None
        try:
            with _engine_errors():
                browser = playwright.chromium.launch(**launch_kwargs)
                context_kwargs: dict[str, Any] = {
                    "viewport": {
                        "width": options.viewport_width,
                        "height": options.viewport_height,
                    },
                }
                if options.user_agent:
                    context_kwargs["user_agent"] = options.user_agent
                context = browser.new_context(**context_kwargs)
                page = context.new_page()
        except BaseException:
            if browser is not None:
                browser.close()
            playwright.stop()
            raise
        return PlaywrightPage(playwright, browser, context, page)


class PlaywrightPage(BrowserPage):
    """A page plus the Playwright objects that must be torn down with it."""

    def __init__(self, playwright, browser, context, page) -> None:
        self._playwright = playwright
        self._browser = browser
        self._context = context
        self._page = page

    @property
    def url(self) -> str:
        return self._page.url

    def title(self) -> str:
        with _engine_errors():
            return self._page.title()

    def add_cookies(self, cookies: list[dict[str, Any]]) -> None:
        with _engine_errors():
            self._context.add_cookies(cookies)

    def cookies(self) -> list[dict[str, Any]]:
        with _engine_errors():
            return [dict(cookie) for cookie in self._context.cookies()]

    def goto(self, url: str, *, wait_until: str, timeout_ms: float) -> None:
        with _engine_errors():
            self._page.goto(url, wait_until=wait_until, timeout=timeout_ms)

    def evaluate(self, script: str, arg: Any = None) -> Any:
        with _engine_errors():
            return self._page.evaluate(script, arg)

    def wait_for_load_state(self, state: str, *, timeout_ms: float) -> None:
        with _engine_errors():
            self._page.wait_for_load_state(state, timeout=timeout_ms)

    def click(self, selector: str, *, timeout_ms: float) -> None:
        with _engine_errors():
            self._page.locator(selector).click(timeout=timeout_ms)

    def fill(self, selector: str, value: str, *, timeout_ms: float) -> None:
        with _engine_errors():
            self._page.locator(selector).fill(value, timeout=timeout_ms)

    def type_text(self, text: str, *, delay_ms: float) -> None:
        with _engine_errors():
            self._page.keyboard.type(text, delay=delay_ms)

    def press(self, key: str) -> None:
        with _engine_errors():
            self._page.keyboard.press(key)

    def text_content(self, selector: str, *, timeout_ms: float) -> Optional[str]:
        with _engine_errors():
            return self._page.locator(selector).text_content(timeout=timeout_ms)

    def wait_for_selector(self, selector: str, *, timeout_ms: float) -> None:
        with _engine_errors():
            self._page.wait_for_selector(selector, timeout=timeout_ms)

    def wait_for_timeout(self, timeout_ms: float) -> None:
        with _engine_errors():
            self._page.wait_for_timeout(timeout_ms)

    def screenshot(self, *, full_page: bool, quality: int) -> bytes:
        with _engine_errors():
            return self._page.screenshot(full_page=full_page, type="jpeg", quality=quality)

    def accessibility_tree(self) -> Optional[AXNode]:
        with _engine_errors():
            cdp = self._context.new_cdp_session(self._page)
            try:
                result = cdp.send("Accessibility.getFullAXTree")
            finally:
                cdp.detach()
        return build_ax_tree(result.get("nodes", []))

    def close(self) -> None:
        LOGGER.debug("Closing Chromium")
        try:
            self._context.close()
        except Error:
            LOGGER.debug("Context already closed", exc_info=True)
        finally:
            try:
                with _engine_errors():
                    self._browser.close()
            finally:
                with _engine_errors():
                    self._playwright.stop()


def build_ax_tree(nodes: list[dict[str, Any]]) -> Optional[AXNode]:
    """Turn the flat CDP node list into a tree of interesting nodes.

    Ignored nodes, inline text boxes and unnamed structural nodes are dropped
    and their children take their place, which approximates what an
    "interesting only" snapshot reports.
    """

    by_id = {str(node.get("nodeId")): node for node in nodes}
    if not by_id:
        return None
    root = next(
        (node for node in nodes if str(node.get("parentId", "")) not in by_id),
        nodes[0],
    )
    root_id = str(root.get("nodeId"))

    # Post-order walk; each entry's second item marks that its children are done.
    converted: dict[str, list[AXNode]] = {}
    stack: list[tuple[str, bool]] = [(root_id, False)]
    while stack:
        node_id, children_done = stack.pop()
        node = by_id[node_id]
        child_ids = [str(child) for child in node.get("childIds", []) if str(child) in by_id]
        if not children_done:
            if node_id in converted:
                continue
            converted[node_id] = []
            stack.append((node_id, True))
            for child_id in reversed(child_ids):
                if child_id not in converted:
                    stack.append((child_id, False))
            continue
        children = [item for child_id in child_ids for item in converted.get(child_id, [])]
        if _is_pruned(node):
            converted[node_id] = children
        else:
            converted[node_id] = [
                AXNode(role=_ax_value(node, "role"), name=_ax_value(node, "name"), children=children)
            ]

    result = converted[root_id]
    if not result:
        return None
    if len(result) == 1:
        return result[0]
    return AXNode(role="WebArea", children=result)


def _is_pruned(node: dict[str, Any]) -> bool:
    if node.get("ignored"):
        return True
    role = _ax_value(node, "role")
    if role in PRUNED_ROLES:
        return True
    return role in UNNAMED_PRUNED_ROLES and not _ax_value(node, "name")


def _ax_value(node: dict[str, Any], key: str) -> str:
    value = node.get(key)
    if isinstance(value, dict):
        value = value.get("value")
    return str(value).strip() if value else ""
