"""Per-call browser lifecycle: restore state, act, recapture, tear down."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Optional

from ..config import BrowserConfig
from ..models import CookieRecord, RefEntry, SessionRecord, now_ms
from ..storage.base import SessionStore
from .base import BrowserEngine, BrowserEngineError, BrowserPage, ContextOptions

LOGGER = logging.getLogger(__name__)

_WRITE_LOCAL_STORAGE = """(storage) => {
  for (const [key, value] of Object.entries(storage)) {
    window.localStorage.setItem(key, value);
  }
}"""

_READ_LOCAL_STORAGE = """() => {
  const storage = {};
  for (let i = 0; i < window.localStorage.length; i++) {
    const key = window.localStorage.key(i);
    if (key) {
      storage[key] = window.localStorage.getItem(key) || '';
    }
  }
  return storage;
}"""


@dataclass
class BrowserHandle:
    """A live page together with the session state being built for it."""

    page: BrowserPage
    session_id: str
    prior: Optional[SessionRecord] = None
    refs: Optional[dict[str, RefEntry]] = None
    last_snapshot: Optional[str] = None
    record: Optional[SessionRecord] = None


class BrowserLifecycleManager:
    """Launch an isolated browser per call and persist its state afterwards."""

    def __init__(
        self,
        engine: BrowserEngine,
        store: SessionStore,
        config: Optional[BrowserConfig] = None,
    ) -> None:
        self._engine = engine
        self._store = store
        self._config = config or BrowserConfig()

    @contextmanager
    def session(self, prior: Optional[SessionRecord], session_id: str) -> Iterator[BrowserHandle]:
        """Acquire a browser for the block and release it on every exit path."""

        handle = self.acquire(prior, session_id)
        try:
            yield handle
        finally:
            self.release(handle)

    def acquire(self, prior: Optional[SessionRecord], session_id: str) -> BrowserHandle:
        options = ContextOptions(
            viewport_width=self._config.viewport_width,
            viewport_height=self._config.viewport_height,
            user_agent=self._config.user_agent,
        )
        page = self._engine.launch(options)
        try:
            self._restore(page, prior)
        except BaseException:
            page.close()
            raise
        return BrowserHandle(page=page, session_id=session_id, prior=prior)

    def release(self, handle: BrowserHandle) -> Optional[SessionRecord]:
        """Capture state, save it, and close the engine instance.

        Returns the saved record, or ``None`` when the browser could not
        report its state; in that case the stored session is left as it was.
        """

        try:
            try:
                record = self._capture(handle)
            except BrowserEngineError:
                LOGGER.exception("Failed to capture state for session %s", handle.session_id)
                return None
            self._store.save(record)
            handle.record = record
            return record
        finally:
            try:
                handle.page.close()
            except BrowserEngineError:
                LOGGER.exception("Failed to close browser for session %s", handle.session_id)

    def _restore(self, page: BrowserPage, prior: Optional[SessionRecord]) -> None:
        if prior is None:
            return
        if prior.cookies:
            # Must precede any navigation.
            page.add_cookies(
                [cookie.model_dump(by_alias=True, exclude_none=True) for cookie in prior.cookies]
            )
        if prior.local_storage and prior.url:
            # Local storage is origin-scoped, so an origin has to exist first.
            page.goto(
                prior.url,
                wait_until="domcontentloaded",
                timeout_ms=self._config.navigation_timeout * 1000,
            )
            page.evaluate(_WRITE_LOCAL_STORAGE, prior.local_storage)

    def _capture(self, handle: BrowserHandle) -> SessionRecord:
        page = handle.page
        cookies = [CookieRecord.model_validate(cookie) for cookie in page.cookies()]
        url = page.url
        local_storage: dict[str, str] = {}
        try:
            local_storage = dict(page.evaluate(_READ_LOCAL_STORAGE) or {})
        except BrowserEngineError:
            LOGGER.debug("localStorage unavailable on %s", url, exc_info=True)
        created_at = handle.prior.created_at if handle.prior else now_ms()
        return SessionRecord(
            id=handle.session_id,
            url=url,
            cookies=cookies,
            local_storage=local_storage,
            last_snapshot=handle.last_snapshot,
            refs=handle.refs,
            created_at=created_at,
            updated_at=now_ms(),
        )
