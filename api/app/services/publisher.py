"""Publish API called by mutation handlers after a commit.

Every method is best effort: failures are logged and reported as zero
deliveries, never raised into the caller's request.

Typical use from a request handler that must not wait on fan-out::

    realtime.publisher.detach(
        realtime.publisher.todo_created(todo.list_id, TodoRef(id=todo.id), user_id)
    )
"""

import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable, Coroutine, Iterable
from typing import Any, Optional

from app.schemas.realtime import EventType, RealtimeEvent
from app.schemas.todo import TodoPayload, TodoRef
from app.services.audience import normalize_user_id
from app.services.broadcaster import Broadcaster

logger = logging.getLogger(__name__)

TodoLoader = Callable[[uuid.UUID], Awaitable[Optional[TodoPayload]]]


def _as_id(value: object) -> Optional[str]:
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, str):
        return normalize_user_id(value)
    return None


class RealtimePublisher:
    def __init__(self, broadcaster: Broadcaster, load_todo: TodoLoader) -> None:
        self._broadcaster = broadcaster
        self._load_todo = load_todo
        self._pending: set[asyncio.Task] = set()

    # Fire-and-forget

    def detach(self, publish: Coroutine[Any, Any, int]) -> asyncio.Task:
        """Run a publish coroutine without blocking the caller's response."""
        task = asyncio.create_task(publish)
        self._pending.add(task)
        task.add_done_callback(self._on_detached_done)
        return task

    def _on_detached_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Detached publish failed", exc_info=exc)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for every detached publish scheduled so far."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # Todos

    async def todo_created(
        self, list_id: object, todo: TodoPayload | TodoRef, acting_user_id: object
    ) -> int:
        return await self._publish_todo(EventType.TODO_CREATED, list_id, todo, acting_user_id)

    async def todo_updated(
        self, list_id: object, todo: TodoPayload | TodoRef, acting_user_id: object
    ) -> int:
        return await self._publish_todo(EventType.TODO_UPDATED, list_id, todo, acting_user_id)

    async def todo_deleted(
        self, list_id: object, todo_id: object, acting_user_id: object
    ) -> int:
        return await self._emit(
            EventType.TODO_DELETED, list_id, {"todoId": _as_id(todo_id)}, acting_user_id
        )

    # Lists

    async def list_updated(
        self, list_id: object, todo_list: Any, acting_user_id: object
    ) -> int:
        return await self._emit(EventType.LIST_UPDATED, list_id, todo_list, acting_user_id)

    async def list_deleted(
        self,
        list_id: object,
        list_data: dict[str, Any],
        acting_user_id: object,
    ) -> int:
        """``list_data["memberUserIds"]`` must be captured before the delete."""
        member_user_ids = list_data.get("memberUserIds")
        if member_user_ids is not None:
            member_user_ids = [_as_id(user_id) for user_id in member_user_ids]
        data = {"listId": _as_id(list_id), **list_data}
        if member_user_ids is not None:
            data["memberUserIds"] = member_user_ids
        return await self._emit(
            EventType.LIST_DELETED,
            list_id,
            data,
            acting_user_id,
            audience_override=member_user_ids,
        )

    # Members

    async def member_added(
        self, list_id: object, member: Any, acting_user_id: object
    ) -> int:
        return await self._emit(EventType.MEMBER_ADDED, list_id, member, acting_user_id)

    async def member_removed(
        self, list_id: object, member_user_id: object, acting_user_id: object
    ) -> int:
        return await self._emit(
            EventType.MEMBER_REMOVED,
            list_id,
            {"memberUserId": _as_id(member_user_id)},
            acting_user_id,
        )

    async def member_role_changed(
        self, list_id: object, member_data: Any, acting_user_id: object
    ) -> int:
        return await self._emit(
            EventType.MEMBER_ROLE_CHANGED, list_id, member_data, acting_user_id
        )

    async def _publish_todo(
        self,
        event_type: EventType,
        list_id: object,
        todo: TodoPayload | TodoRef,
        acting_user_id: object,
    ) -> int:
        if isinstance(todo, TodoRef):
            try:
                payload = await self._load_todo(todo.id)
            except Exception:
                logger.exception("Could not load todo %s for %s", todo.id, event_type.value)
                return 0
            if payload is None:
                logger.warning("Todo %s vanished before %s", todo.id, event_type.value)
                return 0
        else:
            payload = todo
        return await self._emit(event_type, list_id, payload, acting_user_id)

    async def _emit(
        self,
        event_type: EventType,
        list_id: object,
        data: Any,
        acting_user_id: object,
        audience_override: Optional[Iterable[object]] = None,
    ) -> int:
        resource_id = _as_id(list_id)
        if resource_id is None:
            logger.warning("Invalid listId for %s: %r", event_type.value, list_id)
            return 0
        try:
            event = RealtimeEvent(
                type=event_type,
                list_id=resource_id,
                data=data,
                user_id=_as_id(acting_user_id),
            )
        except Exception:
            logger.exception("Could not build %s event for list %s", event_type.value, resource_id)
            return 0
        logger.debug(
            "SSE: publishing %s for listId=%s, excludeUserId=%s",
            event_type.value,
            resource_id,
            event.user_id,
        )
        return await self._broadcaster.publish(event, audience_override)
