"""Event envelope pushed over the SSE channel."""

import enum
import json
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import ConfigDict, Field
from pydantic_core import to_jsonable_python

from app.schemas import AppBaseModel

GLOBAL_LIST_ID = "global"


class EventType(str, enum.Enum):
    TODO_CREATED = "todo:created"
    TODO_UPDATED = "todo:updated"
    TODO_DELETED = "todo:deleted"
    LIST_UPDATED = "list:updated"
    LIST_DELETED = "list:deleted"
    MEMBER_ADDED = "member:added"
    MEMBER_REMOVED = "member:removed"
    MEMBER_ROLE_CHANGED = "member:role_changed"
    PING = "ping"


# The list record is gone once these are published, so the audience
# has to come from a snapshot taken before the delete.
DELETION_EVENT_TYPES = frozenset({EventType.LIST_DELETED})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RealtimeEvent(AppBaseModel):
    """One fact delivered to subscribers. Never stored."""

    model_config = ConfigDict(frozen=True, str_max_length=None)

    type: EventType
    list_id: str
    data: Any = None
    user_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=_utcnow)

    @property
    def removed_member_id(self) -> Optional[str]:
        if self.type is not EventType.MEMBER_REMOVED or not isinstance(self.data, dict):
            return None
        member_user_id = self.data.get("memberUserId")
        return str(member_user_id) if member_user_id is not None else None

    def to_wire(self) -> str:
        """Serialize to the JSON record carried in one SSE data frame.

        Keys with no value are left out, so a ping without payload is
        just ``{"type", "listId", "timestamp"}``.
        """
        record = {
            "type": self.type.value,
            "data": self.data,
            "listId": self.list_id,
            "userId": self.user_id,
            "timestamp": self.timestamp.isoformat(),
        }
        record = {key: value for key, value in record.items() if value is not None}
        return json.dumps(to_jsonable_python(record, by_alias=True), ensure_ascii=False)


def ping_event(data: Any = None) -> RealtimeEvent:
    return RealtimeEvent(type=EventType.PING, list_id=GLOBAL_LIST_ID, data=data)
