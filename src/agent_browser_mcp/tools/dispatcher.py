"""Five-phase execution of a single browser tool call."""

from __future__ import annotations

import base64
import logging
import uuid
from collections.abc import Mapping
from contextlib import ExitStack
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Union

from pydantic import BaseModel, ValidationError

from ..accessibility.indexer import AccessibilityIndexer
from ..accessibility.resolver import resolve_selector
from ..browser.base import BrowserEngineError, BrowserPage, EngineTimeout
from ..browser.lifecycle import BrowserHandle, BrowserLifecycleManager
from ..config import BrowserConfig
from ..errors import ErrorKind, Failure, ToolError
from ..models import (
    ACTION_ARGS,
    ActionName,
    ClickArgs,
    CloseArgs,
    FillArgs,
    GetTextArgs,
    LocatorArgs,
    OpenArgs,
    PressKeyArgs,
    ScreenshotArgs,
    SessionRecord,
    SnapshotArgs,
    ToolResult,
    TypeArgs,
    WaitArgs,
)
from ..storage.base import SessionStore

LOGGER = logging.getLogger(__name__)

TOOL_PREFIX = "browser_"


@dataclass
class ActionOutcome:
    """Action-specific result fields produced while the browser is live."""

    payload: dict[str, Any] = field(default_factory=dict)
    image: Optional[str] = None


@dataclass
class LoadedSession:
    """State gathered before a browser is launched."""

    session_id: str
    prior: Optional[SessionRecord]
    target_url: str


class ToolDispatcher:
    """Run one tool call through validate, load, acquire, act and release.

    Each phase hands back either its value or a :class:`Failure`; the first
    failure short-circuits to an error envelope. Once a browser has been
    acquired it is always released, whatever the outcome of the later phases.
    """

    def __init__(
        self,
        store: SessionStore,
        lifecycle: BrowserLifecycleManager,
        config: Optional[BrowserConfig] = None,
        *,
        indexer: Optional[AccessibilityIndexer] = None,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ) -> None:
        self._store = store
        self._lifecycle = lifecycle
        self._config = config or BrowserConfig()
        self._indexer = indexer or AccessibilityIndexer()
        self._id_factory = id_factory

    def dispatch(self, name: str, arguments: Optional[Mapping[str, Any]] = None) -> ToolResult:
        action = self._parse_name(name)
        if isinstance(action, Failure):
            return self._fail(name, action)

        args = self._validate(action, arguments)
        if isinstance(args, Failure):
            return self._fail(name, args)

        if isinstance(args, CloseArgs):
            return self._close(args)

        loaded = self._load(args)
        if isinstance(loaded, Failure):
            return self._fail(name, loaded)

        LOGGER.info("Executing %s for session %s", action.tool_name, loaded.session_id)
        with ExitStack() as stack:
            try:
                handle = stack.enter_context(
                    self._lifecycle.session(loaded.prior, loaded.session_id)
                )
            except BrowserEngineError as exc:
                return self._fail(name, _engine_failure(exc, ErrorKind.NAVIGATION_TIMEOUT))
            outcome = self._navigate(handle.page, loaded.target_url)
            if outcome is None:
                outcome = self._act(action, args, handle)

        if isinstance(outcome, Failure):
            return self._fail(name, outcome)

        payload: dict[str, Any] = {"success": True, "session_id": loaded.session_id}
        if action is not ActionName.GET_TEXT:
            payload["url"] = handle.record.url if handle.record else loaded.target_url
        payload.update(outcome.payload)
        return ToolResult.success(payload, image=outcome.image)

    def close(self) -> None:
        """Release the session store backend."""

        self._store.close()

    # Phases ------------------------------------------------------------------

    def _parse_name(self, name: str) -> Union[ActionName, Failure]:
        bare = name[len(TOOL_PREFIX):] if name.startswith(TOOL_PREFIX) else name
        try:
            return ActionName(bare)
        except ValueError:
            return Failure(ErrorKind.ARGUMENT, f"Unknown tool: {name}")

    def _validate(
        self,
        action: ActionName,
        arguments: Optional[Mapping[str, Any]],
    ) -> Union[BaseModel, Failure]:
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, Mapping):
            return Failure(ErrorKind.ARGUMENT, "arguments must be an object")
        try:
            return ACTION_ARGS[action].model_validate(dict(arguments))
        except ValidationError as exc:
            return Failure(ErrorKind.ARGUMENT, format_validation_error(exc))

    def _load(self, args: BaseModel) -> Union[LoadedSession, Failure]:
        session_id: Optional[str] = getattr(args, "session_id", None)
        prior = self._store.get(session_id) if session_id else None
        if session_id and prior is None:
            LOGGER.info("No stored state for session %s; starting fresh", session_id)
        target_url = getattr(args, "url", None) or (prior.url if prior else "")
        if not target_url:
            return Failure(ErrorKind.ARGUMENT, "No URL available")
        return LoadedSession(
            session_id=session_id or self._id_factory(),
            prior=prior,
            target_url=target_url,
        )

    def _navigate(self, page: BrowserPage, url: str) -> Optional[Failure]:
        timeout = self._config.navigation_timeout
        try:
            page.goto(url, wait_until="networkidle", timeout_ms=timeout * 1000)
        except EngineTimeout as exc:
            return Failure(
                ErrorKind.NAVIGATION_TIMEOUT,
                f"Navigation to {url} timed out after {timeout:g}s: {exc}",
            )
        except BrowserEngineError as exc:
            return Failure(ErrorKind.ENGINE, f"Navigation to {url} failed: {exc}")
        return None

    def _act(
        self,
        action: ActionName,
        args: BaseModel,
        handle: BrowserHandle,
    ) -> Union[ActionOutcome, Failure]:
        handler = getattr(self, f"_do_{action.value}")
        try:
            return handler(args, handle)
        except ToolError as exc:
            return exc.to_failure()
        except BrowserEngineError as exc:
            return _engine_failure(exc, ErrorKind.ACTION_TIMEOUT)

    def _close(self, args: CloseArgs) -> ToolResult:
        self._store.delete(args.session_id)
        LOGGER.info("Closed session %s", args.session_id)
        return ToolResult.success(
            {"success": True, "message": f"Session {args.session_id} closed"}
        )

    def _fail(self, name: str, failure: Failure) -> ToolResult:
        LOGGER.warning("%s failed (%s): %s", name, failure.kind.value, failure.message)
        return ToolResult.error(failure.message)

    # Actions -----------------------------------------------------------------

    def _do_open(self, args: OpenArgs, handle: BrowserHandle) -> ActionOutcome:
        if handle.prior is not None:
            message = "Restored session and opened page"
        else:
            message = "Opened page in a new session"
        return ActionOutcome({"title": handle.page.title(), "message": message})

    def _do_snapshot(self, args: SnapshotArgs, handle: BrowserHandle) -> ActionOutcome:
        snapshot = self._indexer.index(handle.page.accessibility_tree())
        handle.refs = snapshot.refs
        handle.last_snapshot = snapshot.outline
        return ActionOutcome({"snapshot": snapshot.outline, "refs": snapshot.ref_summary()})

    def _do_click(self, args: ClickArgs, handle: BrowserHandle) -> ActionOutcome:
        selector = self._resolve(args, handle)
        handle.page.click(selector, timeout_ms=self._ms(self._config.action_timeout))
        self._settle(handle.page, self._config.settle_timeout)
        return ActionOutcome({"message": f"Clicked: {args.target_label}"})

    def _do_fill(self, args: FillArgs, handle: BrowserHandle) -> ActionOutcome:
        selector = self._resolve(args, handle)
        handle.page.fill(selector, args.value, timeout_ms=self._ms(self._config.action_timeout))
        return ActionOutcome({"message": f"Filled: {args.target_label}"})

    def _do_type(self, args: TypeArgs, handle: BrowserHandle) -> ActionOutcome:
        selector = self._resolve(args, handle)
        page = handle.page
        page.click(selector, timeout_ms=self._ms(self._config.action_timeout))
        page.type_text(args.text, delay_ms=self._config.type_delay_ms)
        message = f"Typed: {args.text}"
        if args.submit:
            page.press("Enter")
            self._settle(page, self._config.settle_timeout)
            message += " (submitted)"
        return ActionOutcome({"message": message})

    def _do_get_text(self, args: GetTextArgs, handle: BrowserHandle) -> ActionOutcome:
        selector = self._resolve(args, handle)
        text = handle.page.text_content(selector, timeout_ms=self._ms(self._config.action_timeout))
        return ActionOutcome({"text": text or ""})

    def _do_screenshot(self, args: ScreenshotArgs, handle: BrowserHandle) -> ActionOutcome:
        image = handle.page.screenshot(
            full_page=args.full_page,
            quality=self._config.screenshot_quality,
        )
        return ActionOutcome(image=base64.b64encode(image).decode("ascii"))

    def _do_wait(self, args: WaitArgs, handle: BrowserHandle) -> ActionOutcome:
        page = handle.page
        timeout_ms = self._ms(self._config.wait_timeout)
        if args.time is not None:
            page.wait_for_timeout(args.time * 1000)
            message = f"Waited {args.time:g} seconds"
        elif args.text:
            page.wait_for_selector(f"text={args.text}", timeout_ms=timeout_ms)
            message = f'Text "{args.text}" appeared'
        else:
            page.wait_for_selector(args.selector or "", timeout_ms=timeout_ms)
            message = f'Element "{args.selector}" appeared'
        return ActionOutcome({"message": message})

    def _do_press_key(self, args: PressKeyArgs, handle: BrowserHandle) -> ActionOutcome:
        handle.page.press(args.key)
        self._settle(handle.page, self._config.key_settle_timeout)
        return ActionOutcome({"message": f'Pressed key "{args.key}"'})

    # Helpers -----------------------------------------------------------------

    @staticmethod
    def _resolve(args: LocatorArgs, handle: BrowserHandle) -> str:
        refs = handle.prior.refs if handle.prior else None
        return resolve_selector(args.ref, args.selector, refs)

    @staticmethod
    def _settle(page: BrowserPage, timeout: float) -> None:
        try:
            page.wait_for_load_state("networkidle", timeout_ms=timeout * 1000)
        except BrowserEngineError:
            LOGGER.debug("Page did not settle within %ss", timeout)

    @staticmethod
    def _ms(seconds: float) -> float:
        return seconds * 1000


def _engine_failure(exc: BrowserEngineError, timeout_kind: ErrorKind) -> Failure:
    if isinstance(exc, EngineTimeout):
        return Failure(timeout_kind, str(exc))
    return Failure(ErrorKind.ENGINE, str(exc))


def format_validation_error(exc: ValidationError) -> str:
    """Render pydantic errors as short "x is required" style messages."""

    messages: list[str] = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"])
        if error["type"] == "value_error":
            messages.append(str(error["ctx"]["error"]))
        elif error["type"] in {"missing", "string_too_short"}:
            messages.append(f"{location} is required")
        else:
            messages.append(f"{location}: {error['msg']}")
    return "; ".join(messages)
