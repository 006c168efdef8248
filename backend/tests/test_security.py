"""Bearer-token authentication and role guard tests."""
import uuid
from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient, ASGITransport
from jose import jwt

from app.core.config import settings
from app.core.deps import get_repository
from app.core.security import create_access_token, decode_token
from app.main import app
from app.repositories.memory import InMemoryRepository


# ─── Fixtures ─────────────────────────────────────────────────────────────────

@pytest.fixture
def client_for(store):
    async def override_repository():
        yield InMemoryRepository(store)

    app.dependency_overrides[get_repository] = override_repository
    try:
        yield lambda: AsyncClient(transport=ASGITransport(app=app), base_url="http://test")
    finally:
        app.dependency_overrides.clear()


def _bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


# ─── Tokens ───────────────────────────────────────────────────────────────────

def test_access_token_round_trip():
    user_id = str(uuid.uuid4())
    payload = decode_token(create_access_token(user_id, "finance"))
    assert payload["sub"] == user_id
    assert payload["role"] == "finance"
    assert payload["type"] == "access"


# ─── Endpoint guards ──────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_missing_token_is_401(client_for):
    async with client_for() as client:
        response = await client.get("/api/v1/notifications")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_valid_token_resolves_user(client_for, users):
    token = create_access_token(str(users["sales"].id), "sales")
    async with client_for() as client:
        response = await client.get("/api/v1/notifications", headers=_bearer(token))
    assert response.status_code == 200
    assert response.json() == {"items": [], "total": 0, "unread": 0}


@pytest.mark.asyncio
async def test_expired_token_is_401(client_for, users):
    token = jwt.encode(
        {
            "sub": str(users["sales"].id),
            "type": "access",
            "exp": datetime.now(timezone.utc) - timedelta(minutes=1),
        },
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )
    async with client_for() as client:
        response = await client.get("/api/v1/notifications", headers=_bearer(token))
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_refresh_token_type_is_401(client_for, users):
    token = jwt.encode(
        {
            "sub": str(users["sales"].id),
            "type": "refresh",
            "exp": datetime.now(timezone.utc) + timedelta(minutes=5),
        },
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )
    async with client_for() as client:
        response = await client.get("/api/v1/notifications", headers=_bearer(token))
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_unknown_or_inactive_user_is_401(client_for, users):
    users["sales"].is_active = False
    async with client_for() as client:
        inactive = await client.get(
            "/api/v1/notifications",
            headers=_bearer(create_access_token(str(users["sales"].id), "sales")),
        )
        unknown = await client.get(
            "/api/v1/notifications",
            headers=_bearer(create_access_token(str(uuid.uuid4()), "sales")),
        )
    assert inactive.status_code == 401
    assert unknown.status_code == 401


@pytest.mark.asyncio
async def test_role_guard_uses_directory_role(client_for, users):
    # The token claims admin, but the directory says sales
    token = create_access_token(str(users["sales"].id), "admin")
    async with client_for() as client:
        response = await client.get("/api/v1/approval-rules", headers=_bearer(token))
    assert response.status_code == 403
