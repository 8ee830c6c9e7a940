"""Background tasks: heartbeat pings and eviction of stale SSE connections."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import timedelta

from app.schemas.realtime import ping_event
from app.services.broadcaster import Broadcaster, Clock, utcnow
from app.services.connection_registry import ConnectionRegistry

logger = logging.getLogger(__name__)

HEARTBEAT_INTERVAL_SECONDS = 30
SWEEP_INTERVAL_SECONDS = 300
STALE_THRESHOLD_SECONDS = 300


class LivenessManager:
    """Owns the heartbeat and stale-sweep tasks.

    Both only touch the connection registry. They are started once in
    lifespan startup and cancelled together on shutdown.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        broadcaster: Broadcaster,
        heartbeat_interval: float = HEARTBEAT_INTERVAL_SECONDS,
        sweep_interval: float = SWEEP_INTERVAL_SECONDS,
        stale_threshold: float = STALE_THRESHOLD_SECONDS,
        clock: Clock = utcnow,
    ) -> None:
        self._registry = registry
        self._broadcaster = broadcaster
        self.heartbeat_interval = heartbeat_interval
        self.sweep_interval = sweep_interval
        self.stale_threshold = timedelta(seconds=stale_threshold)
        self._clock = clock
        self._tasks: list[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    async def heartbeat(self) -> int:
        """Ping every connection; failed sends are unregistered by the broadcaster."""
        return await self._broadcaster.send_to_all(ping_event())

    def sweep(self) -> list[str]:
        """Unregister connections with no liveness for longer than the threshold."""
        now = self._clock()
        evicted = []
        for connection in self._registry.snapshot():
            if now - connection.last_liveness > self.stale_threshold:
                logger.info("Removing dead SSE connection: %s", connection.id)
                if self._registry.unregister(connection.id):
                    evicted.append(connection.id)
        return evicted

    def start(self) -> None:
        if self._tasks:
            return
        self._tasks = [
            asyncio.create_task(
                self._run_every(self.heartbeat_interval, self.heartbeat, "heartbeat")
            ),
            asyncio.create_task(
                self._run_every(self.sweep_interval, self._sweep_async, "sweep")
            ),
        ]

    async def stop(self) -> None:
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def _sweep_async(self) -> list[str]:
        return self.sweep()

    async def _run_every(
        self,
        interval: float,
        job: Callable[[], Awaitable[object]],
        name: str,
    ) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await job()
            except Exception:
                logger.exception("liveness %s: unexpected error", name)
