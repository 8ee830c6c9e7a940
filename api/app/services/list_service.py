import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.todo_list import ListMember, TodoList


async def get_list_by_id(
    session: AsyncSession, list_id: uuid.UUID
) -> TodoList | None:
    result = await session.execute(select(TodoList).where(TodoList.id == list_id))
    return result.scalar_one_or_none()


async def snapshot_member_ids(
    session: AsyncSession, list_id: uuid.UUID
) -> list[uuid.UUID] | None:
    """Member user ids of a list, or None if the list does not exist.

    Call before deleting a list to capture the audience of list:deleted.
    """
    todo_list = await get_list_by_id(session, list_id)
    if todo_list is None:
        return None
    result = await session.execute(
        select(ListMember.user_id)
        .where(ListMember.list_id == list_id)
        .order_by(ListMember.joined_at.asc())
    )
    return list(result.scalars().all())


def member_id_loader(session_factory: async_sessionmaker[AsyncSession]):
    """Build the membership lookup used for fan-out, one short session per call."""

    async def load_current_member_ids(list_id: uuid.UUID) -> list[uuid.UUID] | None:
        async with session_factory() as session:
            return await snapshot_member_ids(session, list_id)

    return load_current_member_ids
