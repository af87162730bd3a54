"""
Shared fixtures: in-memory SQLite, a fake Notion token endpoint, and an ASGI client.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("NOTION_CLIENT_ID", "test-client-id")
os.environ.setdefault("NOTION_CLIENT_SECRET", "test-client-secret")
os.environ.setdefault("NOTION_REDIRECT_URI", "http://localhost:5173/settings")
os.environ.setdefault("TOKEN_ENCRYPTION_KEY", "")

import json
import uuid
from typing import Dict, List, Set

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from auth.jwt import create_token
from connectors.encryption import reset_cipher
from connectors.notion import NotionConnector
from connectors.registry import ConnectorRegistry
from database.models import Base


class FakeNotion:
    """Stands in for Notion's token endpoint; each valid code works once."""

    def __init__(self) -> None:
        self.valid_codes: Dict[str, str] = {}
        self.used: Set[str] = set()
        self.requests: List[dict] = []
        self.unreachable = False

    def issue(self, code: str, workspace_id: str) -> None:
        self.valid_codes[code] = workspace_id

    def handler(self, request: httpx.Request) -> httpx.Response:
        if self.unreachable:
            raise httpx.ConnectError("connection refused", request=request)
        body = json.loads(request.content)
        self.requests.append(body)

        if body.get("grant_type") == "refresh_token":
            return httpx.Response(
                200,
                json={"access_token": "refreshed-token", "refresh_token": "rotated", "expires_in": 3600},
            )

        code = body.get("code")
        if code not in self.valid_codes or code in self.used:
            return httpx.Response(
                400,
                json={"error": "invalid_grant", "error_description": "Invalid code."},
            )
        self.used.add(code)
        workspace_id = self.valid_codes[code]
        return httpx.Response(
            200,
            json={
                "access_token": f"secret_{workspace_id}",
                "token_type": "bearer",
                "bot_id": f"bot_{workspace_id}",
                "workspace_id": workspace_id,
                "workspace_name": f"Workspace {workspace_id}",
                "workspace_icon": None,
                "owner": {"type": "user", "user": {"id": "notion-user", "person": {"email": "ada@example.com"}}},
            },
        )

    @property
    def token_calls(self) -> int:
        return sum(1 for r in self.requests if r.get("grant_type") == "authorization_code")


@pytest.fixture
def fake_notion():
    fake = FakeNotion()
    ConnectorRegistry.reset()
    registry = ConnectorRegistry()
    registry._discovered = True
    registry.register(NotionConnector(transport=httpx.MockTransport(fake.handler)))
    yield fake
    ConnectorRegistry.reset()


@pytest.fixture(autouse=True)
def _plaintext_tokens():
    reset_cipher()
    yield
    reset_cipher()


@pytest.fixture
async def session_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
async def app_client(session_factory, fake_notion):
    from database.session import get_db_session
    from main import create_app

    app = create_app()

    async def _test_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = _test_session
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def make_token():
    def _make(email: str = "ada@example.com", user_id: str | None = None, expires_in: int | None = None) -> str:
        return create_token(user_id or str(uuid.uuid4()), email, expires_in=expires_in)

    return _make
