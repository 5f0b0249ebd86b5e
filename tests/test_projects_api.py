"""Project API tests — creation, listing, and the 404-before-403 rule."""

import uuid

import pytest

from conftest import signup


async def _project(client, headers, name="Apollo") -> dict:
    r = await client.post("/api/projects", headers=headers, json={"name": name})
    assert r.status_code == 201, r.text
    return r.json()


@pytest.mark.asyncio
async def test_create_project(client):
    user, headers = await signup(client, "owner")
    project = await _project(client, headers)
    assert project["name"] == "Apollo"
    assert project["ownerId"] == user["id"]
    assert project["createdBy"] == user["id"]
    assert project["members"] == [user["id"]]


@pytest.mark.asyncio
async def test_create_project_name_too_short(client):
    _, headers = await signup(client, "owner")
    r = await client.post("/api/projects", headers=headers, json={"name": "x"})
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_projects_require_auth(client):
    r = await client.get("/api/projects")
    assert r.status_code == 401
    r = await client.post("/api/projects", json={"name": "Nope"})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_list_only_member_projects(client):
    _, alice = await signup(client, "alice")
    _, bob = await signup(client, "bob")
    mine = await _project(client, alice, "Alice's")
    await _project(client, bob, "Bob's")

    r = await client.get("/api/projects", headers=alice)
    assert r.status_code == 200
    assert [p["id"] for p in r.json()] == [mine["id"]]


@pytest.mark.asyncio
async def test_list_includes_projects_joined_by_invitation(client):
    _, alice_h = await signup(client, "alice")
    bob, bob_h = await signup(client, "bob")
    _, eve_h = await signup(client, "eve")
    own = await _project(client, bob_h, "Bob's")
    shared = await _project(client, alice_h, "Alice's")

    r = await client.post(
        "/api/invitations",
        headers=alice_h,
        json={"projectId": shared["id"], "invitedUserEmail": bob["email"]},
    )
    r = await client.patch(
        "/api/invitations", headers=bob_h, json={"id": r.json()["id"], "action": "accept"}
    )
    assert r.status_code == 200

    r = await client.get("/api/projects", headers=bob_h)
    assert {p["id"] for p in r.json()} == {shared["id"], own["id"]}
    r = await client.get("/api/projects", headers=eve_h)
    assert r.json() == []


@pytest.mark.asyncio
async def test_get_project_not_found_then_forbidden(client):
    _, alice = await signup(client, "alice")
    _, bob = await signup(client, "bob")
    project = await _project(client, alice)

    r = await client.get(f"/api/projects/{uuid.uuid4()}", headers=bob)
    assert r.status_code == 404
    r = await client.get(f"/api/projects/{project['id']}", headers=bob)
    assert r.status_code == 403
    r = await client.get(f"/api/projects/{project['id']}", headers=alice)
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_update_and_delete_owner_only(client):
    _, alice = await signup(client, "alice")
    _, bob = await signup(client, "bob")
    project = await _project(client, alice)

    r = await client.patch(
        f"/api/projects/{project['id']}", headers=bob, json={"name": "Hijacked"}
    )
    assert r.status_code == 403

    r = await client.patch(
        f"/api/projects/{project['id']}",
        headers=alice,
        json={"name": "Artemis", "description": "renamed"},
    )
    assert r.status_code == 200
    assert r.json()["name"] == "Artemis"
    assert r.json()["description"] == "renamed"

    r = await client.delete(f"/api/projects/{project['id']}", headers=alice)
    assert r.status_code == 200
    r = await client.get(f"/api/projects/{project['id']}", headers=alice)
    assert r.status_code == 404
