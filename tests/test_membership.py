"""Membership rules: owner, creator, and listed members all count."""

import uuid

import pytest

from collabspace.auth.strategies import CurrentUser
from collabspace.db.models import Project
from collabspace.services.membership import (
    MembershipResolver,
    merge_member_lists,
    parse_uuid,
    project_members,
    user_in_project,
)


def _project(**kw) -> Project:
    owner = kw.pop("owner_id", uuid.uuid4())
    return Project(name="P", description="", owner_id=owner, **kw)


def _current(user_id) -> CurrentUser:
    return CurrentUser(id=user_id, email="u@example.com", name="U", role="user")


def test_owner_creator_and_members_are_members():
    owner, creator, listed, stranger = (uuid.uuid4() for _ in range(4))
    project = _project(owner_id=owner, created_by=creator, members=[str(listed)])

    assert project_members(project) == {str(owner), str(creator), str(listed)}
    assert user_in_project(owner, project)
    assert user_in_project(str(creator), project)
    assert user_in_project(listed, project)
    assert not user_in_project(stranger, project)


def test_members_may_be_empty():
    owner = uuid.uuid4()
    project = _project(owner_id=owner, members=[])
    assert project_members(project) == {str(owner)}


def test_parse_uuid():
    u = uuid.uuid4()
    assert parse_uuid(u) is u
    assert parse_uuid(str(u)) == u
    assert parse_uuid("not-a-uuid") is None
    assert parse_uuid(None) is None


def test_merge_member_lists():
    assert merge_member_lists(["a", "b"], ["b", "c"]) == ["a", "b", "c"]
    assert merge_member_lists(None, ["x"]) == ["x"]
    assert merge_member_lists(["x"], None) == ["x"]
    assert merge_member_lists([], []) == []


def test_merge_member_lists_stringifies_and_skips_none():
    u = uuid.uuid4()
    assert merge_member_lists([u], [str(u), None]) == [str(u)]


@pytest.mark.asyncio
async def test_resolver_fails_closed(db_session):
    owner = uuid.uuid4()
    project = _project(owner_id=owner, members=[str(owner)])
    db_session.add(project)
    await db_session.commit()

    resolver = MembershipResolver(db_session)
    assert await resolver.is_member(_current(owner), project.id)
    assert await resolver.is_member(_current(owner), str(project.id))
    assert not await resolver.is_member(_current(uuid.uuid4()), project.id)
    assert not await resolver.is_member(_current(owner), "garbage")
    assert not await resolver.is_member(_current(owner), uuid.uuid4())
    assert not await resolver.is_member(None, project.id)
