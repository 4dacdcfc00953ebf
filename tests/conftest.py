"""Pytest configuration and fixtures."""

import os
import threading

# Configure before the app modules read settings
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test.db")
os.environ.setdefault("SECRET_KEY", "test-admin-key")
os.environ.setdefault("RATE_LIMIT_STORAGE_URI", "memory://")

from typing import AsyncGenerator, Callable, Union

import httpx
import pytest
import pytest_asyncio
from cryptography.fernet import Fernet
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from avatarlab.api.deps import get_codec, get_credential_resolver
from avatarlab.db.models import ServiceName, UserApiKey
from avatarlab.db.session import Base, get_db
from avatarlab.errors import StorageError
from avatarlab.main import app
from avatarlab.middleware.rate_limit import limiter
from avatarlab.services.credentials import CredentialResolver, FernetCodec
from avatarlab.services.http import build_http_client, get_http_client
from avatarlab.services.storage import get_storage

USER_ID = "user-1"
OTHER_USER_ID = "user-2"

PLATFORM_KEYS = {
    "openai": "sk-platform",
    "heygen": "hg-platform",
    "kie-ai": "kie-platform",
    "elevenlabs": "el-platform",
    "stability": "st-platform",
    "google": "gg-platform",
}

StubResponse = Union[httpx.Response, Callable[[httpx.Request], httpx.Response], Exception]


class FakeStorage:
    """In-memory object storage; keys containing a ``fail_on`` marker fail."""

    def __init__(self):
        self.objects: dict[tuple[str, str], tuple[bytes, str]] = {}
        self.fail_on: set[str] = set()
        self.healthy = True
        self.upload_threads: list[threading.Thread] = []

    def upload_bytes(self, bucket: str, key: str, content: bytes, content_type: str) -> str:
        self.upload_threads.append(threading.current_thread())
        if any(marker in key for marker in self.fail_on):
            raise StorageError(f"Failed to upload {bucket}/{key}: simulated outage")
        self.objects[(bucket, key)] = (content, content_type)
        return key

    def public_url(self, bucket: str, key: str) -> str:
        return f"https://storage.test/{bucket}/{key}"

    def health_check(self, bucket: str = "generated-images") -> bool:
        return self.healthy


class VendorStub:
    """Route table for ``httpx.MockTransport``: first matching prefix wins."""

    def __init__(self):
        self.routes: list[tuple[str, str, StubResponse]] = []
        self.requests: list[httpx.Request] = []

    def add(self, method: str, url_prefix: str, response: StubResponse) -> None:
        self.routes.append((method, url_prefix, response))

    def calls_to(self, url_prefix: str) -> list[httpx.Request]:
        return [r for r in self.requests if str(r.url).startswith(url_prefix)]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        for method, url_prefix, response in self.routes:
            if request.method == method and str(request.url).startswith(url_prefix):
                if isinstance(response, Exception):
                    raise response
                if callable(response):
                    return response(request)
                return response
        return httpx.Response(404, json={"error": {"message": "no stub"}})


@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """Create a fresh SQLite database per test."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def codec() -> FernetCodec:
    return FernetCodec(Fernet.generate_key().decode())


@pytest.fixture
def resolver(codec, session_factory) -> CredentialResolver:
    return CredentialResolver(
        platform_keys=PLATFORM_KEYS,
        codec=codec,
        session_factory=session_factory,
    )


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def vendor() -> VendorStub:
    return VendorStub()


@pytest.fixture(autouse=True)
def reset_rate_limits():
    limiter.reset()
    yield


@pytest_asyncio.fixture
async def client(
    session_factory, codec, resolver, storage, vendor
) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client with vendors, storage and database replaced."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    async def override_get_http_client():
        async with build_http_client(transport=httpx.MockTransport(vendor)) as http_client:
            yield http_client

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_http_client] = override_get_http_client
    app.dependency_overrides[get_codec] = lambda: codec
    app.dependency_overrides[get_credential_resolver] = lambda: resolver
    app.dependency_overrides[get_storage] = lambda: storage

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    await resolver.drain()
    app.dependency_overrides.clear()


async def issue_token(db: AsyncSession, user_id: str) -> str:
    from avatarlab.auth.security import create_access_token

    _, full_token = await create_access_token(db, user_id=user_id, name="Test Token")
    await db.commit()
    return full_token


@pytest_asyncio.fixture
async def auth_headers(db_session: AsyncSession) -> dict:
    """Bearer headers for USER_ID."""
    token = await issue_token(db_session, USER_ID)
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def other_auth_headers(db_session: AsyncSession) -> dict:
    token = await issue_token(db_session, OTHER_USER_ID)
    return {"Authorization": f"Bearer {token}"}


async def add_user_key(
    db: AsyncSession,
    codec,
    service: ServiceName,
    secret: str,
    user_id: str = USER_ID,
    **fields,
) -> UserApiKey:
    """Store a credential row directly."""
    credential = UserApiKey(
        user_id=user_id,
        service=service.value,
        api_key_encrypted=codec.encode(secret),
        key_hint=secret[-4:],
        **fields,
    )
    db.add(credential)
    await db.commit()
    return credential
