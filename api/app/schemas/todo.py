import uuid
from datetime import datetime
from typing import Optional

from pydantic import AliasGenerator, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.schemas import AppBaseModel


class _CamelPayload(AppBaseModel):
    """Payload models built from ORM rows, serialized with camelCase keys."""

    model_config = ConfigDict(
        alias_generator=AliasGenerator(serialization_alias=to_camel),
        extra="ignore",
    )


class AuthorSummary(_CamelPayload):
    id: uuid.UUID
    first_name: str
    last_name: str
    email: str


class TodoPayload(_CamelPayload):
    """Expanded todo as pushed in todo:created / todo:updated events."""

    id: uuid.UUID
    name: str
    description: Optional[str] = None
    status: str
    priority: str
    due_date: Optional[datetime] = None
    tags: Optional[list[str]] = None
    list_id: uuid.UUID
    user: AuthorSummary = Field(serialization_alias="userId")
    created_at: datetime
    updated_at: datetime


class TodoRef(AppBaseModel):
    """A todo known only by id, e.g. straight after an UPDATE ... RETURNING id."""

    id: uuid.UUID
