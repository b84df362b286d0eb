from __future__ import annotations

import itertools
from typing import Any, Optional

import pytest

from agent_browser_mcp.browser.base import (
    BrowserEngine,
    BrowserEngineError,
    BrowserPage,
    ContextOptions,
)
from agent_browser_mcp.browser.lifecycle import BrowserLifecycleManager
from agent_browser_mcp.models import AXNode
from agent_browser_mcp.storage.base import InMemorySessionStore
from agent_browser_mcp.tools.dispatcher import ToolDispatcher

JPEG_BYTES = b"\xff\xd8\xff\xe0fake-jpeg"


class FakePage(BrowserPage):
    """In-memory stand-in for a Playwright page that records every call."""

    def __init__(self, engine: "FakeEngine", options: ContextOptions) -> None:
        self.engine = engine
        self.options = options
        self.calls: list[tuple[str, Any]] = []
        self.jar: list[dict[str, Any]] = []
        self.storage: dict[str, str] = {}
        self.cookies_at_first_goto: Optional[list[dict[str, Any]]] = None
        self.closed = False
        self._url = "about:blank"

    def _record(self, name: str, detail: Any = None) -> None:
        self.calls.append((name, detail))
        error = self.engine.errors.get(name)
        if error is not None:
            raise error

    @property
    def url(self) -> str:
        return self._url

    def title(self) -> str:
        self._record("title")
        return f"Title of {self._url}"

    def add_cookies(self, cookies: list[dict[str, Any]]) -> None:
        self._record("add_cookies", cookies)
        self.jar.extend(dict(cookie) for cookie in cookies)

    def cookies(self) -> list[dict[str, Any]]:
        self._record("cookies")
        return [dict(cookie) for cookie in self.jar]

    def goto(self, url: str, *, wait_until: str, timeout_ms: float) -> None:
        if self.cookies_at_first_goto is None:
            self.cookies_at_first_goto = [dict(cookie) for cookie in self.jar]
        self._record("goto", {"url": url, "wait_until": wait_until, "timeout_ms": timeout_ms})
        self._url = self.engine.redirects.get(url, url)
        self.jar.extend(dict(cookie) for cookie in self.engine.set_cookies.get(self._url, []))

    def evaluate(self, script: str, arg: Any = None) -> Any:
        if arg is not None:
            self._record("evaluate_write", arg)
            self.storage.update(arg)
            return None
        self._record("evaluate_read")
        return dict(self.storage)

    def wait_for_load_state(self, state: str, *, timeout_ms: float) -> None:
        self._record("wait_for_load_state", {"state": state, "timeout_ms": timeout_ms})

    def click(self, selector: str, *, timeout_ms: float) -> None:
        self._record("click", {"selector": selector, "timeout_ms": timeout_ms})

    def fill(self, selector: str, value: str, *, timeout_ms: float) -> None:
        self._record("fill", {"selector": selector, "value": value, "timeout_ms": timeout_ms})

    def type_text(self, text: str, *, delay_ms: float) -> None:
        self._record("type_text", {"text": text, "delay_ms": delay_ms})

    def press(self, key: str) -> None:
        self._record("press", key)

    def text_content(self, selector: str, *, timeout_ms: float) -> Optional[str]:
        self._record("text_content", {"selector": selector, "timeout_ms": timeout_ms})
        return self.engine.texts.get(selector)

    def wait_for_selector(self, selector: str, *, timeout_ms: float) -> None:
        self._record("wait_for_selector", {"selector": selector, "timeout_ms": timeout_ms})

    def wait_for_timeout(self, timeout_ms: float) -> None:
        self._record("wait_for_timeout", timeout_ms)

    def screenshot(self, *, full_page: bool, quality: int) -> bytes:
        self._record("screenshot", {"full_page": full_page, "quality": quality})
        return JPEG_BYTES

    def accessibility_tree(self) -> Optional[AXNode]:
        self._record("accessibility_tree")
        return self.engine.tree

    def close(self) -> None:
        self.calls.append(("close", None))
        self.closed = True

    def names(self) -> list[str]:
        return [name for name, _ in self.calls]


class FakeEngine(BrowserEngine):
    """Engine double: each launch yields a new :class:`FakePage`."""

    def __init__(self) -> None:
        self.pages: list[FakePage] = []
        self.errors: dict[str, BrowserEngineError] = {}
        self.redirects: dict[str, str] = {}
        self.set_cookies: dict[str, list[dict[str, Any]]] = {}
        self.texts: dict[str, Optional[str]] = {}
        self.tree: Optional[AXNode] = None
        self.launch_error: Optional[BrowserEngineError] = None

    def launch(self, options: ContextOptions) -> FakePage:
        if self.launch_error is not None:
            raise self.launch_error
        page = FakePage(self, options)
        self.pages.append(page)
        return page

    @property
    def last_page(self) -> FakePage:
        return self.pages[-1]


@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def lifecycle(engine: FakeEngine, store: InMemorySessionStore) -> BrowserLifecycleManager:
    return BrowserLifecycleManager(engine, store)


@pytest.fixture
def dispatcher(
    store: InMemorySessionStore,
    lifecycle: BrowserLifecycleManager,
) -> ToolDispatcher:
    counter = itertools.count(1)
    return ToolDispatcher(store, lifecycle, id_factory=lambda: f"session-{next(counter)}")


@pytest.fixture
def sample_tree() -> AXNode:
    return AXNode(
        role="RootWebArea",
        name="Example",
        children=[
            AXNode(role="heading", name="Welcome"),
            AXNode(
                role="navigation",
                children=[
                    AXNode(role="link", name="Home"),
                    AXNode(role="link", name="About"),
                ],
            ),
            AXNode(role="textbox", name="Search"),
            AXNode(role="button", name='Say "hi"'),
            AXNode(role="StaticText", name="Footer"),
        ],
    )
