from __future__ import annotations

import pytest

from matching_service.db import get_db
from matching_service.repositories import MatchRepository, UserRepository
from matching_service.repositories.exceptions import RepositoryError
from matching_service.services.errors import Internal
from matching_service.services.interaction_service import InteractionService


class FailingLinkUserRepository(UserRepository):
    """Fails the first write that adds a match id to ``fail_for``."""

    def __init__(self, database, fail_for: str) -> None:
        super().__init__(database)
        self._fail_for = fail_for
        self.failures = 0

    async def apply_set_ops(self, user_id, *, add=None, remove=None, **kwargs):
        if user_id == self._fail_for and add and "matches" in add and not self.failures:
            self.failures += 1
            raise RepositoryError("update user sets failed: connection reset")
        return await super().apply_set_ops(user_id, add=add, remove=remove, **kwargs)


class RacingMatchRepository(MatchRepository):
    """Lets another caller create the pair's record right after the pre-check."""

    def __init__(self, database) -> None:
        super().__init__(database)
        self.raced = False

    async def get_by_pair(self, user_a, user_b, *, session=None):
        if not self.raced:
            self.raced = True
            await self.insert(match_id="winner", user_a=user_b, user_b=user_a, created_at=1)
            return None
        return await super().get_by_pair(user_a, user_b, session=session)


async def _like(api_client, auth_headers, liker, target):
    resp = await api_client.post("/api/interactions/like", json={"targetUserId": target}, headers=auth_headers(liker))
    assert resp.status_code == 200, resp.text


@pytest.mark.asyncio
async def test_failed_target_link_keeps_like_for_retry(api_client, auth_headers, make_user) -> None:
    await make_user("alice")
    await make_user("bob", gender="male")
    await _like(api_client, auth_headers, "bob", "alice")
    db = get_db()
    flaky = InteractionService(users=FailingLinkUserRepository(db, "bob"), matches=MatchRepository(db))

    with pytest.raises(Internal) as excinfo:
        await flaky.match("alice", "bob")
    assert excinfo.value.retryable is True

    users = UserRepository(db)
    alice = await users.require("alice")
    bob = await users.require("bob")
    assert alice.received_likes == {"bob"}
    assert alice.matches == set()
    assert bob.matches == set()
    assert await db["matches"].count_documents({}) == 0

    record, created = await InteractionService(users=users, matches=MatchRepository(db)).match("alice", "bob")
    assert created is True
    assert (await users.require("alice")).matches == {record.id}
    assert (await users.require("bob")).matches == {record.id}


@pytest.mark.asyncio
async def test_failed_actor_link_restores_both_sides(api_client, auth_headers, make_user) -> None:
    await make_user("alice")
    await make_user("bob", gender="male")
    await _like(api_client, auth_headers, "bob", "alice")
    await _like(api_client, auth_headers, "alice", "bob")
    db = get_db()
    flaky = InteractionService(users=FailingLinkUserRepository(db, "alice"), matches=MatchRepository(db))

    with pytest.raises(Internal):
        await flaky.match("alice", "bob")

    users = UserRepository(db)
    alice = await users.require("alice")
    bob = await users.require("bob")
    # bob's write went through before alice's failed and has been rolled back
    assert bob.received_likes == {"alice"}
    assert bob.matches == set()
    assert bob.hidden_profiles == {"alice"}
    assert alice.received_likes == {"bob"}
    assert alice.hidden_profiles == {"bob"}
    assert alice.matches == set()
    assert await db["matches"].count_documents({}) == 0


@pytest.mark.asyncio
async def test_duplicate_pair_insert_resolves_to_winner(api_client, auth_headers, make_user) -> None:
    await make_user("alice")
    await make_user("bob", gender="male")
    await _like(api_client, auth_headers, "bob", "alice")
    db = get_db()
    matches = RacingMatchRepository(db)
    service = InteractionService(users=UserRepository(db), matches=matches)

    record, created = await service.match("alice", "bob")

    assert matches.raced is True
    assert created is False
    assert record.id == "winner"
    assert await db["matches"].count_documents({}) == 1
    users = UserRepository(db)
    alice = await users.require("alice")
    assert alice.matches == {"winner"}
    assert alice.received_likes == set()
    assert "bob" in alice.hidden_profiles
    assert (await users.require("bob")).matches == {"winner"}


@pytest.mark.asyncio
async def test_retry_reconciles_half_linked_pair(api_client, auth_headers, make_user) -> None:
    await make_user("alice")
    await make_user("bob", gender="male")
    await _like(api_client, auth_headers, "bob", "alice")
    db = get_db()
    users = UserRepository(db)
    matches = MatchRepository(db)

    # Record and bob's link exist, alice's side was never written
    record = await matches.insert(match_id="half", user_a="alice", user_b="bob", created_at=1)
    await users.apply_set_ops("bob", add={"matches": [record.id]})

    resp = await api_client.post("/api/interactions/match", json={"targetUserId": "bob"}, headers=auth_headers("alice"))
    assert resp.status_code == 200, resp.text
    assert resp.json() == {"success": True, "matchId": "half", "created": False}

    alice = await users.require("alice")
    assert alice.matches == {"half"}
    assert alice.received_likes == set()
    assert "bob" in alice.hidden_profiles
    assert (await users.require("bob")).matches == {"half"}
