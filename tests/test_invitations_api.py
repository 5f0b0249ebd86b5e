"""Invitation flow tests."""

import json

import pytest

from conftest import register, signup


def _events(stream) -> list[dict]:
    return [json.loads(f[len("data: "):]) for f in stream.drain()]


async def _project(client, headers) -> dict:
    r = await client.post("/api/projects", headers=headers, json={"name": "Invites"})
    return r.json()


@pytest.mark.asyncio
async def test_invite_notifies_invitee(client, broadcaster):
    alice, alice_h = await signup(client, "alice")
    bob, bob_h = await signup(client, "bob")
    project = await _project(client, alice_h)

    bob_stream = broadcaster.open_stream()
    await broadcaster.subscribe(bob["id"], bob_stream)
    bob_stream.drain()

    r = await client.post(
        "/api/invitations",
        headers=alice_h,
        json={"projectId": project["id"], "invitedUserEmail": bob["email"]},
    )
    assert r.status_code == 201
    invitation = r.json()
    assert invitation["status"] == "pending"
    assert invitation["projectName"] == "Invites"
    assert invitation["inviterId"] == alice["id"]

    events = _events(bob_stream)
    assert [e["type"] for e in events] == ["invitation-received"]
    assert events[0]["invitation"]["id"] == invitation["id"]

    r = await client.get("/api/invitations", headers=bob_h)
    assert [i["id"] for i in r.json()] == [invitation["id"]]


@pytest.mark.asyncio
async def test_accept_adds_member_and_notifies(client, broadcaster):
    alice, alice_h = await signup(client, "alice")
    bob, bob_h = await signup(client, "bob")
    project = await _project(client, alice_h)
    r = await client.post(
        "/api/invitations",
        headers=alice_h,
        json={"projectId": project["id"], "invitedUserEmail": bob["email"]},
    )
    invitation_id = r.json()["id"]

    alice_stream = broadcaster.open_stream()
    await broadcaster.subscribe(alice["id"], alice_stream)
    alice_stream.drain()

    r = await client.patch(
        "/api/invitations", headers=bob_h, json={"id": invitation_id, "action": "accept"}
    )
    assert r.status_code == 200
    assert r.json()["status"] == "accepted"
    assert r.json()["respondedAt"] is not None

    events = _events(alice_stream)
    assert [e["type"] for e in events] == ["member-joined"]
    assert events[0]["projectId"] == project["id"]

    r = await client.get(f"/api/projects/{project['id']}", headers=bob_h)
    assert r.status_code == 200
    assert bob["id"] in r.json()["members"]

    # Already answered
    r = await client.patch(
        "/api/invitations", headers=bob_h, json={"id": invitation_id, "action": "decline"}
    )
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_decline_does_not_add_member(client, broadcaster):
    _, alice_h = await signup(client, "alice")
    bob, bob_h = await signup(client, "bob")
    project = await _project(client, alice_h)
    r = await client.post(
        "/api/invitations",
        headers=alice_h,
        json={"projectId": project["id"], "invitedUserEmail": bob["email"]},
    )
    r = await client.patch(
        "/api/invitations", headers=bob_h, json={"id": r.json()["id"], "action": "decline"}
    )
    assert r.json()["status"] == "declined"

    r = await client.get(f"/api/projects/{project['id']}", headers=bob_h)
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_invite_errors(client, broadcaster):
    alice, alice_h = await signup(client, "alice")
    bob = await register(client, "bob")
    _, eve_h = await signup(client, "eve")
    project = await _project(client, alice_h)

    def body(email, project_id=project["id"]):
        return {"projectId": project_id, "invitedUserEmail": email}

    r = await client.post("/api/invitations", headers=alice_h, json=body("nobody@example.com"))
    assert r.status_code == 404
    r = await client.post("/api/invitations", headers=eve_h, json=body(bob["email"]))
    assert r.status_code == 403
    r = await client.post("/api/invitations", headers=alice_h, json=body(alice["email"]))
    assert r.status_code == 400

    r = await client.post("/api/invitations", headers=alice_h, json=body(bob["email"]))
    assert r.status_code == 201
    r = await client.post("/api/invitations", headers=alice_h, json=body(bob["email"]))
    assert r.status_code == 400
    assert r.json()["error"] == "invitation already sent to this user"


@pytest.mark.asyncio
async def test_only_invitee_may_respond(client, broadcaster):
    _, alice_h = await signup(client, "alice")
    bob = await register(client, "bob")
    project = await _project(client, alice_h)
    r = await client.post(
        "/api/invitations",
        headers=alice_h,
        json={"projectId": project["id"], "invitedUserEmail": bob["email"]},
    )
    invitation_id = r.json()["id"]

    r = await client.patch(
        "/api/invitations", headers=alice_h, json={"id": invitation_id, "action": "accept"}
    )
    assert r.status_code == 403
    r = await client.patch(
        "/api/invitations", headers=alice_h, json={"id": invitation_id, "action": "maybe"}
    )
    assert r.status_code == 400
