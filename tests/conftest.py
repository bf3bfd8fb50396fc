"""Shared test fixtures."""

import io
import os
from collections.abc import AsyncGenerator, Callable
from datetime import timedelta
from typing import Any

# Set test environment before the package reads it
os.environ["BLOG_SECRET_KEY"] = "test-secret-key-for-unit-tests"
os.environ["BLOG_BCRYPT_ROUNDS"] = "4"
os.environ["BLOG_AUTH_RATE_LIMIT"] = "1000/minute"
os.environ["BLOG_LOG_LEVEL"] = "ERROR"  # Reduce log noise

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from PIL import Image  # noqa: E402

from blog_api.api import create_app  # noqa: E402
from blog_api.config import Settings  # noqa: E402
from blog_api.exceptions import UploadError  # noqa: E402
from blog_api.factory import Services, ServiceFactory  # noqa: E402
from blog_api.media import ImageUploader  # noqa: E402
from blog_api.storage import SQLRepository  # noqa: E402
from blog_api.tokens import TokenClaims, TokenIssuer, utc_now  # noqa: E402


class FakeImageStore:
    """In-memory object storage that records what it was given."""

    base_url = "https://images.test"

    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}
        self.deleted: list[str] = []
        self.fail_puts = False
        self.fail_deletes = False

    async def startup(self) -> None:
        pass

    async def shutdown(self) -> None:
        pass

    async def put(self, key: str, data: bytes, content_type: str) -> str:
        if self.fail_puts:
            raise UploadError(details={"provider_error": "quota exceeded"})
        url = f"{self.base_url}/{key}"
        self.objects[url] = data
        return url

    async def delete(self, url: str) -> None:
        if self.fail_deletes:
            raise ConnectionError("storage unreachable")
        self.objects.pop(url, None)
        self.deleted.append(url)

    async def health_check(self) -> bool:
        return True


@pytest.fixture
def make_png() -> Callable[..., bytes]:
    """Factory for PNG-encoded test images."""

    def _make_png(size: tuple[int, int] = (8, 8), color: str = "red") -> bytes:
        out = io.BytesIO()
        Image.new("RGB", size, color).save(out, format="PNG")
        return out.getvalue()

    return _make_png


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings pointing at a throwaway SQLite file."""
    return Settings(database_url=f"sqlite+aiosqlite:///{tmp_path / 'blog.db'}", bcrypt_rounds=4)


@pytest_asyncio.fixture
async def repository(settings: Settings) -> AsyncGenerator[SQLRepository, None]:
    """Started SQL repository backed by a temp file."""
    repo = SQLRepository(settings.database_url)
    await repo.startup()
    yield repo
    await repo.shutdown()


@pytest.fixture
def image_store() -> FakeImageStore:
    return FakeImageStore()


@pytest.fixture
def uploader(image_store: FakeImageStore) -> ImageUploader:
    return ImageUploader(image_store)


@pytest.fixture
def services(settings: Settings, repository: SQLRepository, image_store: FakeImageStore) -> Services:
    return ServiceFactory.build(settings, repository=repository, image_store=image_store)


@pytest.fixture
def issuer(settings: Settings) -> TokenIssuer:
    return TokenIssuer(settings.secret_key or "", ttl=timedelta(hours=24))


@pytest.fixture
def make_claims() -> Callable[..., TokenClaims]:
    """Factory for verified-looking claims without going through a token."""

    def _make_claims(user_id: str, username: str = "someone") -> TokenClaims:
        now = utc_now()
        return TokenClaims(
            user_id=user_id, username=username, issued_at=now, expires_at=now + timedelta(hours=24)
        )

    return _make_claims


@pytest_asyncio.fixture
async def client(settings: Settings, services: Services) -> AsyncGenerator[AsyncClient, None]:
    """Test client with services injected via app.state."""
    app = create_app(settings, services)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def signup(client: AsyncClient) -> Callable[..., Any]:
    """Register a user through the API and return (token, user)."""

    async def _signup(username: str, email: str, password: str = "pw1") -> tuple[str, dict]:
        response = await client.post(
            "/api/auth/signup",
            json={"username": username, "email": email, "password": password},
        )
        assert response.status_code == 201, response.text
        body = response.json()
        return body["token"], body["user"]

    return _signup
