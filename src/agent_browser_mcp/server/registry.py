"""Registry of client connections established over the HTTP transport."""

from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional


@dataclass
class Connection:
    """A client that completed the ``initialize`` handshake."""

    id: str
    protocol_version: str
    client_info: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class ConnectionRegistry:
    """Map connection ids to connection state for the lifetime of the process.

    Created together with the application, filled on ``initialize`` and
    emptied on an explicit ``DELETE``. Browser sessions are unrelated: they
    live in the session store and outlast any connection.
    """

    def __init__(self, id_factory: Callable[[], str] = lambda: uuid.uuid4().hex) -> None:
        self._lock = threading.Lock()
        self._items: dict[str, Connection] = {}
        self._id_factory = id_factory

    def open(self, protocol_version: str, client_info: Optional[dict[str, Any]] = None) -> Connection:
        connection = Connection(
            id=self._id_factory(),
            protocol_version=protocol_version,
            client_info=dict(client_info or {}),
        )
        with self._lock:
            self._items[connection.id] = connection
        return connection

    def get(self, connection_id: Optional[str]) -> Optional[Connection]:
        if not connection_id:
            return None
        with self._lock:
            return self._items.get(connection_id)

    def close(self, connection_id: str) -> bool:
        with self._lock:
            return self._items.pop(connection_id, None) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
