"""Resolve which users may receive events about a todo list."""

import logging
import uuid
from collections.abc import Awaitable, Callable, Iterable
from typing import Optional

logger = logging.getLogger(__name__)

MemberLoader = Callable[[uuid.UUID], Awaitable[Optional[list[uuid.UUID]]]]

EMPTY_AUDIENCE: frozenset[str] = frozenset()


def parse_resource_id(value: object) -> uuid.UUID | None:
    """Return the list id as a UUID, or None if it cannot be one."""
    if isinstance(value, uuid.UUID):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return uuid.UUID(value)
    except ValueError:
        return None


def is_valid_resource_id(value: object) -> bool:
    return parse_resource_id(value) is not None


def normalize_user_id(value: object) -> str:
    """Canonical string form of a user id; UUIDs compare lower-case, hyphenated."""
    parsed = parse_resource_id(value)
    return str(parsed) if parsed is not None else str(value)


class AudienceResolver:
    """Audience = current member ids of a list, or a caller-supplied snapshot."""

    def __init__(self, load_member_ids: MemberLoader) -> None:
        self._load_member_ids = load_member_ids

    async def resolve(
        self,
        list_id: object,
        override: Optional[Iterable[object]] = None,
    ) -> frozenset[str]:
        """Never raises; any failure resolves to an empty audience."""
        if override is not None:
            return frozenset(normalize_user_id(user_id) for user_id in override)

        resource_id = parse_resource_id(list_id)
        if resource_id is None:
            logger.warning("Malformed list id for audience lookup: %r", list_id)
            return EMPTY_AUDIENCE

        try:
            member_ids = await self._load_member_ids(resource_id)
        except Exception:
            logger.exception("Member lookup failed for list %s", resource_id)
            return EMPTY_AUDIENCE

        if member_ids is None:
            logger.info("List %s not found for broadcast", resource_id)
            return EMPTY_AUDIENCE
        return frozenset(normalize_user_id(user_id) for user_id in member_ids)
