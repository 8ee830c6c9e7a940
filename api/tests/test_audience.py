"""Unit tests for audience resolution."""

import uuid

import pytest

from app.services.audience import AudienceResolver, is_valid_resource_id, normalize_user_id


async def test_resolve_current_members(members):
    alice, bob = uuid.uuid4(), uuid.uuid4()
    list_id = members.add_list(alice, bob)
    resolver = AudienceResolver(members.load)

    audience = await resolver.resolve(str(list_id))

    assert audience == {str(alice), str(bob)}
    assert members.lookups == [list_id]


async def test_resolve_reflects_membership_at_call_time(members):
    alice, bob = uuid.uuid4(), uuid.uuid4()
    list_id = members.add_list(alice)
    resolver = AudienceResolver(members.load)

    assert await resolver.resolve(str(list_id)) == {str(alice)}
    members.lists[list_id].append(bob)
    assert await resolver.resolve(str(list_id)) == {str(alice), str(bob)}


async def test_override_used_verbatim_without_lookup(members):
    resolver = AudienceResolver(members.load)
    snapshot = [uuid.uuid4(), "plain-user-id"]

    audience = await resolver.resolve(str(uuid.uuid4()), override=snapshot)

    assert audience == {str(snapshot[0]), "plain-user-id"}
    assert members.lookups == []


async def test_missing_list_gives_empty_audience(members):
    resolver = AudienceResolver(members.load)

    assert await resolver.resolve(str(uuid.uuid4())) == frozenset()


@pytest.mark.parametrize(
    "list_id",
    ["", "   ", "not-a-uuid", "{ _id: new ObjectId('abc') }", None, 123],
)
async def test_malformed_list_id_gives_empty_audience(members, list_id):
    resolver = AudienceResolver(members.load)

    assert await resolver.resolve(list_id) == frozenset()
    assert members.lookups == []


async def test_loader_failure_gives_empty_audience():
    async def broken_loader(list_id):
        raise RuntimeError("DB connection failed")

    resolver = AudienceResolver(broken_loader)

    assert await resolver.resolve(str(uuid.uuid4())) == frozenset()


def test_is_valid_resource_id():
    assert is_valid_resource_id(str(uuid.uuid4()))
    assert is_valid_resource_id(uuid.uuid4())
    assert not is_valid_resource_id("global")
    assert not is_valid_resource_id("")
    assert not is_valid_resource_id(["x"])


def test_normalize_user_id():
    user_id = uuid.uuid4()

    assert normalize_user_id(str(user_id).upper()) == str(user_id)
    assert normalize_user_id(user_id) == str(user_id)
    assert normalize_user_id("user-1") == "user-1"


async def test_audience_ids_are_canonical(members):
    alice = uuid.uuid4()
    resolver = AudienceResolver(members.load)

    audience = await resolver.resolve(str(uuid.uuid4()), [str(alice).upper()])

    assert audience == frozenset({str(alice)})
