"""Session store backed by a Redis-compatible REST key-value service."""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from ..models import SessionRecord, now_ms
from .base import DEFAULT_KEY_PREFIX, DEFAULT_TTL_SECONDS, SessionStore, decode_record

LOGGER = logging.getLogger(__name__)


class KVCommandError(RuntimeError):
    """Raised when the key-value service rejects a command."""


class RestKVSessionStore(SessionStore):
    """Store records through the Upstash/Vercel KV REST protocol.

    Every command is POSTed to the service root as a JSON array, e.g.
    ``["SET", key, value, "EX", 900]``, and answered with ``{"result": ...}``
    or ``{"error": "..."}``.
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        *,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        key_prefix: str = DEFAULT_KEY_PREFIX,
        timeout: float = 5.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        super().__init__(ttl_seconds=ttl_seconds, key_prefix=key_prefix)
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            headers={"Authorization": f"Bearer {token}"},
            transport=transport,
        )

    def get(self, session_id: str) -> Optional[SessionRecord]:
        try:
            raw = self._command("GET", self.key_for(session_id))
        except (httpx.HTTPError, KVCommandError, ValueError):
            LOGGER.warning("Failed to get session %s", session_id, exc_info=True)
            return None
        return decode_record(raw, session_id)

    def save(self, record: SessionRecord) -> None:
        record.updated_at = now_ms()
        try:
            self._command("SET", self.key_for(record.id), record.to_json(), "EX", self.ttl_seconds)
        except (httpx.HTTPError, KVCommandError, ValueError):
            LOGGER.warning("Failed to save session %s", record.id, exc_info=True)

    def delete(self, session_id: str) -> None:
        try:
            self._command("DEL", self.key_for(session_id))
        except (httpx.HTTPError, KVCommandError, ValueError):
            LOGGER.warning("Failed to delete session %s", session_id, exc_info=True)

    def close(self) -> None:
        self._client.close()

    def _command(self, *args: Any) -> Any:
        response = self._client.post("/", json=list(args))
        response.raise_for_status()
        data = response.json()
        if isinstance(data, dict) and data.get("error"):
            raise KVCommandError(str(data["error"]))
        return data.get("result") if isinstance(data, dict) else None
