"""Fan-out of list events to the SSE connections of entitled users."""

import logging
from collections.abc import Callable, Iterable
from datetime import datetime, timezone
from typing import Optional

from app.schemas.realtime import DELETION_EVENT_TYPES, EventType, RealtimeEvent
from app.services.audience import (
    AudienceResolver,
    is_valid_resource_id,
    normalize_user_id,
)
from app.services.connection_registry import Connection, ConnectionRegistry

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Broadcaster:
    def __init__(
        self,
        registry: ConnectionRegistry,
        resolver: AudienceResolver,
        clock: Clock = utcnow,
    ) -> None:
        self._registry = registry
        self._resolver = resolver
        self._clock = clock

    def _encode(self, event: RealtimeEvent) -> Optional[str]:
        """Serialize once per fan-out; a bad payload is not a connection failure."""
        try:
            return event.to_wire()
        except Exception:
            logger.exception("Could not serialize %s event; not delivered", event.type.value)
            return None

    async def deliver(self, connection: Connection, message: str) -> bool:
        """Write an encoded message to one connection; unregister it if the write fails."""
        try:
            await connection.sink.send(message)
        except Exception as exc:
            logger.warning(
                "Error sending SSE event to client %s: %s", connection.id, exc
            )
            self._registry.unregister(connection.id)
            return False
        connection.last_liveness = self._clock()
        return True

    async def send(self, connection: Connection, event: RealtimeEvent) -> bool:
        message = self._encode(event)
        if message is None:
            return False
        return await self.deliver(connection, message)

    async def send_to_all(self, event: RealtimeEvent) -> int:
        """Unfiltered delivery to every registered connection."""
        message = self._encode(event)
        if message is None:
            return 0
        sent = 0
        for connection in self._registry.snapshot():
            if await self.deliver(connection, message):
                sent += 1
        return sent

    async def publish(
        self,
        event: RealtimeEvent,
        audience_override: Optional[Iterable[object]] = None,
    ) -> int:
        """Deliver ``event`` to members of its list, except the acting user.

        ``audience_override`` is honoured only for deletion events, where the
        list can no longer be queried. Returns the number of deliveries and
        never raises.
        """
        try:
            return await self._publish(event, audience_override)
        except Exception:
            logger.exception("Error in broadcast of %s", event.type.value)
            return 0

    async def _publish(
        self,
        event: RealtimeEvent,
        audience_override: Optional[Iterable[object]],
    ) -> int:
        if not is_valid_resource_id(event.list_id):
            logger.warning(
                "Malformed listId in broadcast of %s: %r", event.type.value, event.list_id
            )
            return 0

        if event.type in DELETION_EVENT_TYPES and audience_override is not None:
            audience = await self._resolver.resolve(event.list_id, audience_override)
        else:
            if audience_override is not None:
                logger.debug(
                    "Ignoring audience override for non-deletion event %s",
                    event.type.value,
                )
            audience = await self._resolver.resolve(event.list_id)

        message = self._encode(event)
        if message is None:
            return 0

        actor_id = normalize_user_id(event.user_id) if event.user_id else None
        removed_member_id = event.removed_member_id
        if removed_member_id is not None:
            removed_member_id = normalize_user_id(removed_member_id)
        sent = 0
        for connection in self._registry.snapshot():
            owner = connection.owner_user_id
            if event.type is EventType.MEMBER_REMOVED:
                should_deliver = owner in audience or owner == removed_member_id
            else:
                should_deliver = owner in audience
            if not should_deliver or owner == actor_id:
                continue
            logger.debug(
                "SSE: sending %s to client %s (user %s)",
                event.type.value,
                connection.id,
                owner,
            )
            if await self.deliver(connection, message):
                sent += 1

        logger.info(
            "SSE: broadcast %s to %d clients for list %s",
            event.type.value,
            sent,
            event.list_id,
        )
        return sent
