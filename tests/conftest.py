from __future__ import annotations

import time
from collections.abc import AsyncIterator
from pathlib import Path
import sys
from typing import Any, Awaitable, Callable, Dict, Optional

import jwt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from mongomock_motor import AsyncMongoMockClient

SERVICE_ROOT = Path(__file__).resolve().parents[1]
if str(SERVICE_ROOT) not in sys.path:
    sys.path.insert(0, str(SERVICE_ROOT))

from matching_service.main import app
from matching_service.db import close_mongo_connection, connect_to_mongo
from matching_service.config import get_settings

JWT_SECRET = "test-secret"


def make_token(user_id: str, *, secret: str = JWT_SECRET, expires_in: int = 3600) -> str:
    return jwt.encode(
        {"sub": user_id, "exp": int(time.time()) + expires_in},
        secret,
        algorithm="HS256",
    )


def auth(user_id: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user_id)}"}


@pytest.fixture(autouse=True)
def _env_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MONGO_URI", "mongodb://localhost:27017/test")
    monkeypatch.setenv("MONGO_DB_NAME", "matching-test")
    monkeypatch.setenv("JWT_SECRET", JWT_SECRET)
    monkeypatch.delenv("JWT_AUDIENCE", raising=False)
    monkeypatch.delenv("MONGO_TRANSACTIONS", raising=False)
    monkeypatch.delenv("MATCH_DELETE_MODE", raising=False)
    get_settings.cache_clear()  # type: ignore[attr-defined]


@pytest.fixture
def auth_headers() -> Callable[[str], Dict[str, str]]:
    return auth


@pytest_asyncio.fixture
async def mongo_client(monkeypatch: pytest.MonkeyPatch) -> AsyncIterator[AsyncMongoMockClient]:
    client = AsyncMongoMockClient()

    def _client_factory(*_args, **_kwargs) -> AsyncMongoMockClient:
        return client

    monkeypatch.setattr("matching_service.db.AsyncIOMotorClient", _client_factory)
    yield client
    client.close()


@pytest_asyncio.fixture
async def api_client(mongo_client: AsyncMongoMockClient) -> AsyncIterator[AsyncClient]:
    await connect_to_mongo()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as client:
        yield client
    await close_mongo_connection()


@pytest_asyncio.fixture
async def make_user(api_client: AsyncClient) -> Callable[..., Awaitable[Dict[str, Any]]]:
    """Sign a user up and complete onboarding; returns the stored record."""

    async def _make_user(
        user_id: str,
        *,
        name: Optional[str] = None,
        gender: str = "female",
        interested_in: Optional[list] = None,
        age: int = 27,
        location: Optional[Dict[str, float]] = None,
        private_photos: Optional[list] = None,
        onboard: bool = True,
    ) -> Dict[str, Any]:
        resp = await api_client.post(
            "/api/users",
            json={"username": user_id, "email": f"{user_id}@example.com"},
            headers=auth(user_id),
        )
        assert resp.status_code in (200, 201), resp.text
        if not onboard:
            return resp.json()["user"]

        body: Dict[str, Any] = {
            "name": name or user_id.title(),
            "gender": gender,
            "age": age,
            "photos": [f"https://cdn.example.com/{user_id}/1.jpg"],
        }
        if interested_in is not None:
            body["interestedIn"] = interested_in
        if location is not None:
            body["location"] = location
        if private_photos is not None:
            body["privatePhotos"] = private_photos
        resp = await api_client.patch("/api/users/me", json=body, headers=auth(user_id))
        assert resp.status_code == 200, resp.text
        return resp.json()["user"]

    return _make_user
