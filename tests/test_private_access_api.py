from __future__ import annotations

import pytest

PRIVATE = ["https://cdn.example.com/alice/private-1.jpg", "https://cdn.example.com/alice/private-2.jpg"]


async def _state(api_client, auth_headers, viewer, owner):
    resp = await api_client.get(f"/api/private-access/{owner}", headers=auth_headers(viewer))
    assert resp.status_code == 200, resp.text
    return resp.json()["state"]


async def _profile(api_client, auth_headers, viewer, owner):
    resp = await api_client.get(f"/api/users/{owner}", headers=auth_headers(viewer))
    assert resp.status_code == 200, resp.text
    return resp.json()["profile"]


@pytest.mark.asyncio
async def test_request_accept_revoke_cycle(api_client, auth_headers, make_user) -> None:
    await make_user("alice", private_photos=PRIVATE)
    await make_user("bob", gender="male")

    profile = await _profile(api_client, auth_headers, "bob", "alice")
    assert profile["privatePhotos"] == []
    assert profile["privatePhotoCount"] == 2
    assert profile["accessState"] == "none"

    resp = await api_client.post(
        "/api/private-access/request",
        json={"targetUserId": "alice"},
        headers=auth_headers("bob"),
    )
    assert resp.status_code == 200, resp.text
    assert resp.json() == {"success": True, "ownerId": "alice", "viewerId": "bob", "state": "requested"}
    assert (await _profile(api_client, auth_headers, "bob", "alice"))["privatePhotos"] == []

    resp = await api_client.post(
        "/api/private-access/accept",
        json={"requesterId": "bob"},
        headers=auth_headers("alice"),
    )
    assert resp.status_code == 200, resp.text
    assert await _state(api_client, auth_headers, "bob", "alice") == "accepted"
    assert (await _profile(api_client, auth_headers, "bob", "alice"))["privatePhotos"] == PRIVATE

    me = (await api_client.get("/api/users/me", headers=auth_headers("alice"))).json()["user"]
    assert me["privateRequests"] == []
    assert me["privateAccepted"] == ["bob"]

    resp = await api_client.post(
        "/api/private-access/revoke",
        json={"requesterId": "bob"},
        headers=auth_headers("alice"),
    )
    assert resp.status_code == 200
    assert await _state(api_client, auth_headers, "bob", "alice") == "none"
    assert (await _profile(api_client, auth_headers, "bob", "alice"))["privatePhotos"] == []

    # Revoked viewers may ask again
    resp = await api_client.post(
        "/api/private-access/request",
        json={"targetUserId": "alice"},
        headers=auth_headers("bob"),
    )
    assert resp.status_code == 200
    assert await _state(api_client, auth_headers, "bob", "alice") == "requested"


@pytest.mark.asyncio
async def test_repeated_request_leaves_one_entry(api_client, auth_headers, make_user) -> None:
    await make_user("alice")
    await make_user("bob", gender="male")

    for _ in range(2):
        resp = await api_client.post(
            "/api/private-access/request",
            json={"targetUserId": "alice"},
            headers=auth_headers("bob"),
        )
        assert resp.status_code == 200, resp.text
        assert resp.json()["state"] == "requested"

    me = (await api_client.get("/api/users/me", headers=auth_headers("alice"))).json()["user"]
    assert me["privateRequests"] == ["bob"]
    assert me["privateAccepted"] == []


@pytest.mark.asyncio
async def test_accepting_one_request_keeps_others_pending(api_client, auth_headers, make_user) -> None:
    await make_user("alice")
    await make_user("bob", gender="male")
    await make_user("dan", gender="male")
    for requester in ("bob", "dan"):
        await api_client.post(
            "/api/private-access/request",
            json={"targetUserId": "alice"},
            headers=auth_headers(requester),
        )

    resp = await api_client.post(
        "/api/private-access/accept",
        json={"requesterId": "bob"},
        headers=auth_headers("alice"),
    )
    assert resp.status_code == 200, resp.text

    me = (await api_client.get("/api/users/me", headers=auth_headers("alice"))).json()["user"]
    assert me["privateRequests"] == ["dan"]
    assert me["privateAccepted"] == ["bob"]
    assert await _state(api_client, auth_headers, "dan", "alice") == "requested"
    assert await _state(api_client, auth_headers, "bob", "alice") == "accepted"


@pytest.mark.asyncio
async def test_accept_without_request_fails(api_client, auth_headers, make_user) -> None:
    await make_user("alice")
    await make_user("bob", gender="male")

    resp = await api_client.post(
        "/api/private-access/accept",
        json={"requesterId": "bob"},
        headers=auth_headers("alice"),
    )
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "failed-precondition"

    me = (await api_client.get("/api/users/me", headers=auth_headers("alice"))).json()["user"]
    assert me["privateAccepted"] == []
    assert me["privateRequests"] == []


@pytest.mark.asyncio
async def test_request_when_already_accepted_fails(api_client, auth_headers, make_user) -> None:
    await make_user("alice")
    await make_user("bob", gender="male")
    await api_client.post("/api/private-access/share", json={"targetUserId": "bob"}, headers=auth_headers("alice"))

    resp = await api_client.post(
        "/api/private-access/request",
        json={"targetUserId": "alice"},
        headers=auth_headers("bob"),
    )
    assert resp.status_code == 409
    assert await _state(api_client, auth_headers, "bob", "alice") == "accepted"


@pytest.mark.asyncio
async def test_request_own_album_is_invalid(api_client, auth_headers, make_user) -> None:
    await make_user("alice")

    resp = await api_client.post(
        "/api/private-access/request",
        json={"targetUserId": "alice"},
        headers=auth_headers("alice"),
    )
    assert resp.status_code == 400
    assert await _state(api_client, auth_headers, "alice", "alice") == "owner"


@pytest.mark.asyncio
async def test_decline_request_and_listings(api_client, auth_headers, make_user) -> None:
    await make_user("alice", private_photos=PRIVATE)
    await make_user("bob", gender="male", name="Bob")
    await make_user("dan", gender="male", name="Dan")
    for requester in ("bob", "dan"):
        await api_client.post(
            "/api/private-access/request",
            json={"targetUserId": "alice"},
            headers=auth_headers(requester),
        )

    resp = await api_client.get("/api/private-access/requests", headers=auth_headers("alice"))
    assert [p["id"] for p in resp.json()["profiles"]] == ["bob", "dan"]

    await api_client.post("/api/private-access/decline", json={"requesterId": "bob"}, headers=auth_headers("alice"))
    await api_client.post("/api/private-access/accept", json={"requesterId": "dan"}, headers=auth_headers("alice"))

    resp = await api_client.get("/api/private-access/requests", headers=auth_headers("alice"))
    assert resp.json()["profiles"] == []
    resp = await api_client.get("/api/private-access/accepted", headers=auth_headers("alice"))
    assert [p["name"] for p in resp.json()["profiles"]] == ["Dan"]
    assert await _state(api_client, auth_headers, "bob", "alice") == "none"


@pytest.mark.asyncio
async def test_owner_always_sees_private_album(api_client, auth_headers, make_user) -> None:
    await make_user("alice", private_photos=PRIVATE)

    profile = await _profile(api_client, auth_headers, "alice", "alice")
    assert profile["accessState"] == "owner"
    assert profile["privatePhotos"] == PRIVATE
