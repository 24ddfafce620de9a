import os
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from mongomock_motor import AsyncMongoMockClient

os.environ.setdefault("SECRET_KEY", "test-secret-key-min-32-characters-long")
os.environ.setdefault("IDENTITY_WEBHOOK_SECRET", "test-webhook-secret")

WEBHOOK_SECRET = "test-webhook-secret"


class RecordingRevalidator:
    def __init__(self):
        self.paths: list[str] = []

    async def revalidate_path(self, path: str) -> None:
        self.paths.append(path)


@pytest.fixture
def settings():
    from imaginify.core.config import Settings
    return Settings(
        mongodb_db_name="imaginify_test",
        store_max_retries=2,
        store_retry_backoff=0,
        identity_webhook_secret=WEBHOOK_SECRET,
    )


@pytest.fixture
def revalidator() -> RecordingRevalidator:
    return RecordingRevalidator()


@pytest_asyncio.fixture
async def store(settings):
    from imaginify.db.store import MongoStore
    s = MongoStore(settings, client=AsyncMongoMockClient())
    await s.connect()
    yield s
    await s.close()


@pytest.fixture
def user_data() -> dict:
    return {
        "clerkId": "user_2abc",
        "email": "ada@example.com",
        "username": "ada",
        "photo": "https://img.example.com/ada.png",
        "firstname": "Ada",
        "lastname": "Lovelace",
        "planId": 1,
        "creditBalance": 10,
        "stripeId": "",
        "stripeCustomerId": "",
    }


@pytest_asyncio.fixture
async def user(store, user_data):
    from imaginify.services import users as users_service
    return (await users_service.create_user(store, user_data)).unwrap()


@pytest_asyncio.fixture
async def client(settings, store, revalidator) -> AsyncGenerator[AsyncClient, None]:
    from imaginify.main import create_app
    app = create_app(settings=settings, store=store, revalidator=revalidator)
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest_asyncio.fixture
async def auth_client(client, user) -> AsyncClient:
    from imaginify.core.security import create_session_cookie
    from imaginify.deps import SESSION_COOKIE_NAME
    client.cookies.set(SESSION_COOKIE_NAME, create_session_cookie(user.clerk_id))
    return client
