import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from app.models.todo import Todo
from app.schemas.todo import TodoPayload


async def get_todo_payload(
    session: AsyncSession, todo_id: uuid.UUID
) -> TodoPayload | None:
    """Load a todo with its author expanded, ready to push to clients."""
    result = await session.execute(
        select(Todo).options(selectinload(Todo.user)).where(Todo.id == todo_id)
    )
    todo = result.scalar_one_or_none()
    if todo is None:
        return None
    return TodoPayload.model_validate(todo)


def todo_payload_loader(session_factory: async_sessionmaker[AsyncSession]):
    async def load_todo_payload(todo_id: uuid.UUID) -> TodoPayload | None:
        async with session_factory() as session:
            return await get_todo_payload(session, todo_id)

    return load_todo_payload
