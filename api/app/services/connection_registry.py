"""In-memory registry of open SSE connections, keyed by connection id."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime

logger = logging.getLogger(__name__)

CLIENT_QUEUE_MAXSIZE = 64


class SinkClosedError(Exception):
    """Raised when writing to a sink whose peer is gone or not draining."""


class DuplicateConnectionError(Exception):
    """Raised when registering a connection id that is already present."""


class QueueSink:
    """asyncio.Queue-backed write handle drained by the SSE response generator."""

    def __init__(self, maxsize: int = CLIENT_QUEUE_MAXSIZE) -> None:
        self._queue: asyncio.Queue[str] = asyncio.Queue(maxsize=maxsize)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, message: str) -> None:
        if self._closed:
            raise SinkClosedError("sink is closed")
        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull:
            # Client stopped reading; treat like a broken pipe.
            raise SinkClosedError("client queue full")

    async def receive(self, timeout: float) -> str | None:
        """Next message, or None if nothing arrived within ``timeout``."""
        try:
            return await asyncio.wait_for(self._queue.get(), timeout=timeout)
        except asyncio.TimeoutError:
            return None

    def close(self) -> None:
        self._closed = True


@dataclass(eq=False)
class Connection:
    id: str
    owner_user_id: str
    sink: QueueSink
    last_liveness: datetime
    _closed: bool = field(default=False, repr=False)

    def close(self) -> None:
        """Close the sink. Only the first call reaches it."""
        if self._closed:
            return
        self._closed = True
        self.sink.close()


class ConnectionRegistry:
    """Connection id -> Connection. Mutation never awaits."""

    def __init__(self) -> None:
        self._connections: dict[str, Connection] = {}

    def register(self, connection: Connection) -> None:
        if connection.id in self._connections:
            raise DuplicateConnectionError(connection.id)
        self._connections[connection.id] = connection
        logger.info(
            "SSE client connected: %s for user %s",
            connection.id,
            connection.owner_user_id,
        )

    def unregister(self, connection_id: str) -> bool:
        """Remove and close a connection. Unknown ids are ignored.

        Returns True only for the call that actually removed the entry.
        """
        connection = self._connections.pop(connection_id, None)
        if connection is None:
            return False
        try:
            connection.close()
        except Exception:
            logger.debug("SSE sink for %s already closed", connection_id, exc_info=True)
        logger.info("SSE client disconnected: %s", connection_id)
        return True

    def get(self, connection_id: str) -> Connection | None:
        return self._connections.get(connection_id)

    def count(self) -> int:
        return len(self._connections)

    def snapshot(self) -> list[Connection]:
        """Copy of the current entries; safe to unregister while iterating it."""
        return list(self._connections.values())

    def __iter__(self):
        return iter(self.snapshot())

    def __len__(self) -> int:
        return self.count()

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._connections

    def close_all(self) -> None:
        for connection_id in list(self._connections):
            self.unregister(connection_id)
