"""Realtime service: wires registry, audience, fan-out, liveness and publish API."""

import logging
import uuid
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import Settings
from app.schemas.realtime import ping_event
from app.services.audience import AudienceResolver, MemberLoader, normalize_user_id
from app.services.broadcaster import Broadcaster, Clock, utcnow
from app.services.connection_registry import Connection, ConnectionRegistry, QueueSink
from app.services.list_service import member_id_loader
from app.services.liveness import LivenessManager
from app.services.publisher import RealtimePublisher, TodoLoader
from app.services.todo_service import todo_payload_loader

logger = logging.getLogger(__name__)

CONNECTED_MESSAGE = "Connected to user real-time updates"


class RealtimeService:
    """One instance per process, created in lifespan and kept on ``app.state``."""

    def __init__(
        self,
        settings: Settings,
        load_member_ids: MemberLoader,
        load_todo: TodoLoader,
        clock: Clock = utcnow,
    ) -> None:
        self._settings = settings
        self._clock = clock
        self.registry = ConnectionRegistry()
        self.resolver = AudienceResolver(load_member_ids)
        self.broadcaster = Broadcaster(self.registry, self.resolver, clock=clock)
        self.liveness = LivenessManager(
            self.registry,
            self.broadcaster,
            heartbeat_interval=settings.sse_heartbeat_interval_seconds,
            sweep_interval=settings.sse_sweep_interval_seconds,
            stale_threshold=settings.sse_stale_threshold_seconds,
            clock=clock,
        )
        self.publisher = RealtimePublisher(self.broadcaster, load_todo)

    @classmethod
    def from_session_factory(
        cls,
        settings: Settings,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Optional[Clock] = None,
    ) -> "RealtimeService":
        return cls(
            settings,
            load_member_ids=member_id_loader(session_factory),
            load_todo=todo_payload_loader(session_factory),
            clock=clock or utcnow,
        )

    async def subscribe(self, user_id: str) -> Connection:
        """Open a connection for an authenticated user and acknowledge it."""
        connection = Connection(
            id=str(uuid.uuid4()),
            owner_user_id=normalize_user_id(user_id),
            sink=QueueSink(maxsize=self._settings.sse_client_queue_size),
            last_liveness=self._clock(),
        )
        self.registry.register(connection)
        await self.broadcaster.send(connection, ping_event({"message": CONNECTED_MESSAGE}))
        return connection

    def unsubscribe(self, connection_id: str) -> None:
        self.registry.unregister(connection_id)

    def active_connection_count(self) -> int:
        return self.registry.count()

    def start(self) -> None:
        self.liveness.start()

    async def shutdown(self) -> None:
        await self.liveness.stop()
        await self.publisher.drain()
        self.registry.close_all()
        logger.info("Realtime service stopped")
