from typing import AsyncGenerator

import pytest
import pytest_asyncio
from faker import Faker
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from agentchat.api import router
from agentchat.api.dependencies import get_db_session_factory, get_http_transport
from agentchat.api.v1.chat import get_chat_deps
from agentchat.config import Settings
from agentchat.core.db.database import Base, async_get_db, build_engine
from agentchat.core.security import create_session_token
from agentchat.core.setup import create_application
from agentchat.crud.crud_users import crud_users
from agentchat.schemas.user import TokenData
from agentchat.services.chat_service import ChatDeps
from agentchat.services.event_relay import EventRelay
from agentchat.services.media_cache import MediaCache

from helpers import ScriptedChatModel, build_transport

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

fake = Faker()


def make_settings(**overrides) -> Settings:
    """Settings with every key spelled out so the environment cannot leak in."""
    data = {
        "server": {"debug": False},
        "database": {"url": TEST_DATABASE_URL, "create_tables_on_start": False},
        "security": {"secret": "test-secret", "algorithm": "HS256"},
        "agent": {
            "tools_enabled": False,
            "providers": ["openai"],
            "timezone": "America/New_York",
            "timeout_seconds": 10,
        },
        "providers": {
            "openai_api_key": "sk-test",
            "xai_api_key": "",
            "getimg_api_key": "",
            "replicate_api_key": "",
        },
        "google": {
            "client_id": "google-client",
            "client_secret": "google-secret",
            "token_url": "https://oauth2.googleapis.com/token",
        },
        "media_cache": {"max_entries": 16, "ttl_seconds": 3600},
        "event_relay": {"keepalive_seconds": 0.05, "queue_size": 10},
    }
    for section, values in overrides.items():
        data.setdefault(section, {}).update(values)
    return Settings.from_dict(data)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest_asyncio.fixture
async def test_engine():
    """Fresh in-memory database for each test."""
    engine = build_engine(TEST_DATABASE_URL, poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def async_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def media_cache(settings: Settings) -> MediaCache:
    return MediaCache.from_settings(settings)


@pytest.fixture
def event_relay(settings: Settings) -> EventRelay:
    return EventRelay.from_settings(settings)


@pytest.fixture
def chat_model() -> ScriptedChatModel:
    return ScriptedChatModel(fallback_text="Hello from the model")


@pytest.fixture
def http_transport():
    """Outbound HTTP for tools, video caching and the proxy."""
    return build_transport()


@pytest.fixture
def chat_deps(settings, session_factory, media_cache, event_relay, chat_model, http_transport) -> ChatDeps:
    return ChatDeps(
        settings=settings,
        session_factory=session_factory,
        media_cache=media_cache,
        event_relay=event_relay,
        chat_model=chat_model,
        http_transport=http_transport,
    )


@pytest.fixture
def app(settings, media_cache, event_relay, session_factory, chat_deps, http_transport):
    """Application wired to the test database and fakes, lifespan skipped."""
    application = create_application(router=router, settings=settings)
    application.state.config = settings
    application.state.media_cache = media_cache
    application.state.event_relay = event_relay

    async def override_get_db():
        async with session_factory() as session:
            yield session

    async def override_session_factory():
        return session_factory

    async def override_chat_deps():
        return chat_deps

    async def override_http_transport():
        return http_transport

    application.dependency_overrides[async_get_db] = override_get_db
    application.dependency_overrides[get_db_session_factory] = override_session_factory
    application.dependency_overrides[get_chat_deps] = override_chat_deps
    application.dependency_overrides[get_http_transport] = override_http_transport
    yield application
    application.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


def make_identity() -> TokenData:
    return TokenData(user_id=f"google-{fake.uuid4()}", email=fake.email(), name=fake.name())


@pytest_asyncio.fixture
async def test_user(async_session: AsyncSession) -> dict:
    """A signed-up user row."""
    return await crud_users.ensure_user(async_session, make_identity())


@pytest_asyncio.fixture
async def other_user(async_session: AsyncSession) -> dict:
    return await crud_users.ensure_user(async_session, make_identity())


def headers_for(user: dict, settings: Settings) -> dict[str, str]:
    token = create_session_token(settings, user["id"], user["email"], user.get("name"))
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers(test_user: dict, settings: Settings) -> dict[str, str]:
    return headers_for(test_user, settings)


@pytest.fixture
def other_headers(other_user: dict, settings: Settings) -> dict[str, str]:
    return headers_for(other_user, settings)
