"""Browser engine abstractions."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

from ..models import AXNode


class BrowserEngineError(RuntimeError):
    """Raised when the browser engine fails to carry out a request."""


class EngineTimeout(BrowserEngineError):
    """Raised when an engine wait exceeds its timeout."""


@dataclass(frozen=True)
class ContextOptions:
    """Options for the isolated browsing context created per call."""

    viewport_width: int = 1280
    viewport_height: int = 720
    user_agent: Optional[str] = None


class BrowserPage(ABC):
    """A live page inside an isolated context of a freshly launched engine.

    Timeouts are expressed in milliseconds, as the engine expects them.
    """

    @property
    @abstractmethod
    def url(self) -> str:
        """Current page address."""

    @abstractmethod
    def title(self) -> str:
        """Document title."""

    @abstractmethod
    def add_cookies(self, cookies: list[dict[str, Any]]) -> None:
        """Inject cookies into the browsing context."""

    @abstractmethod
    def cookies(self) -> list[dict[str, Any]]:
        """Return the full cookie jar of the browsing context."""

    @abstractmethod
    def goto(self, url: str, *, wait_until: str, timeout_ms: float) -> None:
        """Navigate and wait for the given readiness state."""

    @abstractmethod
    def evaluate(self, script: str, arg: Any = None) -> Any:
        """Run a script in the page and return its result."""

    @abstractmethod
    def wait_for_load_state(self, state: str, *, timeout_ms: float) -> None:
        """Wait until the page reaches a load state."""

    @abstractmethod
    def click(self, selector: str, *, timeout_ms: float) -> None:
        """Click the element matching ``selector``."""

    @abstractmethod
    def fill(self, selector: str, value: str, *, timeout_ms: float) -> None:
        """Replace the value of the element matching ``selector``."""

    @abstractmethod
    def type_text(self, text: str, *, delay_ms: float) -> None:
        """Type into the focused element one character at a time."""

    @abstractmethod
    def press(self, key: str) -> None:
        """Dispatch a named key to the page."""

    @abstractmethod
    def text_content(self, selector: str, *, timeout_ms: float) -> Optional[str]:
        """Return the text content of the element matching ``selector``."""

    @abstractmethod
    def wait_for_selector(self, selector: str, *, timeout_ms: float) -> None:
        """Wait until ``selector`` matches an element."""

    @abstractmethod
    def wait_for_timeout(self, timeout_ms: float) -> None:
        """Sleep inside the page's event loop."""

    @abstractmethod
    def screenshot(self, *, full_page: bool, quality: int) -> bytes:
        """Capture a JPEG screenshot."""

    @abstractmethod
    def accessibility_tree(self) -> Optional[AXNode]:
        """Return the root of the accessibility tree, if any."""

    @abstractmethod
    def close(self) -> None:
        """Close the context and shut down the engine instance."""


class BrowserEngine(ABC):
    """Launches isolated engine instances, one per tool call."""

    @abstractmethod
    def launch(self, options: ContextOptions) -> BrowserPage:
        """Start a new engine instance and return a page in a fresh context."""
