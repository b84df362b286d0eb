"""Session store abstractions."""

from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Callable, Optional

from pydantic import ValidationError

from ..models import SessionRecord, now_ms

LOGGER = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 15 * 60
DEFAULT_KEY_PREFIX = "browser_session:"


class SessionStore(ABC):
    """TTL-scoped persistence of session records.

    Implementations never raise from these methods: a backend failure is
    logged and treated as "no prior session" on reads and as "this state
    will not be resumable" on writes.
    """

    def __init__(
        self,
        *,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        key_prefix: str = DEFAULT_KEY_PREFIX,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.key_prefix = key_prefix

    def key_for(self, session_id: str) -> str:
        return f"{self.key_prefix}{session_id}"

    @abstractmethod
    def get(self, session_id: str) -> Optional[SessionRecord]:
        """Return the stored record, or ``None`` if it is unavailable."""

    @abstractmethod
    def save(self, record: SessionRecord) -> None:
        """Overwrite the record and restart its expiry window."""

    @abstractmethod
    def delete(self, session_id: str) -> None:
        """Remove the record if present."""

    def close(self) -> None:
        """Release backend resources. The default holds none."""


def decode_record(raw: object, session_id: str) -> Optional[SessionRecord]:
    """Parse a stored value into a record, or ``None`` if it is corrupt."""

    if raw is None:
        return None
    try:
        if isinstance(raw, (str, bytes)):
            return SessionRecord.model_validate_json(raw)
        return SessionRecord.model_validate(raw)
    except ValidationError:
        LOGGER.warning("Discarding undecodable session record %s", session_id)
        return None


class InMemorySessionStore(SessionStore):
    """Process-local store useful for tests and single-process deployments."""

    def __init__(
        self,
        *,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        key_prefix: str = DEFAULT_KEY_PREFIX,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__(ttl_seconds=ttl_seconds, key_prefix=key_prefix)
        self._clock = clock
        self._lock = threading.Lock()
        self._items: dict[str, tuple[float, str]] = {}

    def get(self, session_id: str) -> Optional[SessionRecord]:
        key = self.key_for(session_id)
        with self._lock:
            item = self._items.get(key)
            if item is None:
                return None
            expires_at, payload = item
            if self._clock() >= expires_at:
                del self._items[key]
                return None
        return decode_record(payload, session_id)

    def save(self, record: SessionRecord) -> None:
        record.updated_at = now_ms()
        payload = record.to_json()
        with self._lock:
            self._items[self.key_for(record.id)] = (self._clock() + self.ttl_seconds, payload)
        LOGGER.debug("Saved session %s", record.id)

    def delete(self, session_id: str) -> None:
        with self._lock:
            self._items.pop(self.key_for(session_id), None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
