"""Pytest configuration and shared fixtures.

This module provides:
- An in-memory SQLite database built from the application metadata
- Async session fixtures for repository/service tests
- FastAPI test client for route tests, with session auth overridden
- A Pillow-made certificate template and a stubbed SVG rasteriser
"""

# Set environment variables BEFORE any imports that trigger Settings validation
import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["DEBUG"] = "true"
os.environ.setdefault("REQUIRE_HTTPS", "false")
os.environ.setdefault("SESSION_SECRET_KEY", "test_session_secret_key_for_testing")
os.environ.setdefault("CERTIFICATE_SIGNING_KEY", "test_certificate_signing_key")
os.environ.setdefault("FRONTEND_URL", "https://events.example.edu")

import io
from collections.abc import AsyncGenerator, Callable, Generator
from pathlib import Path

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from PIL import Image
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

import models  # noqa: F401  (registers tables on Base.metadata)
from core.auth import require_auth
from core.config import clear_settings_cache
from core.database import Base, configure_sqlite_engine
from core.wide_event import clear_wide_event, init_wide_event

TEST_DATABASE_URL = "sqlite+aiosqlite://"

TEMPLATE_SIZE = (1200, 900)


@pytest.fixture(autouse=True)
def setup_wide_event():
    """Initialize wide_event context for all tests.

    In production this is done by middleware; in tests we do it here.
    """
    init_wide_event()
    yield
    clear_wide_event()


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Generator[None]:
    """Reset settings cache before each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()


# =============================================================================
# Rendering Fixtures
# =============================================================================


def _blank_png(width: int, height: int) -> bytes:
    buf = io.BytesIO()
    Image.new("RGBA", (width, height), (0, 0, 0, 0)).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def template_file(tmp_path: Path) -> Path:
    """A cream PNG template at the default layout size."""
    path = tmp_path / "template.png"
    Image.new("RGB", TEMPLATE_SIZE, (253, 246, 227)).save(path, format="PNG")
    return path


@pytest.fixture(autouse=True)
def certificate_template(
    template_file: Path, monkeypatch: pytest.MonkeyPatch
) -> Path:
    """Point CERTIFICATE_TEMPLATE_PATH at the Pillow template and stub CairoSVG.

    The system Cairo library is not required to run the suite: the text
    overlay rasterises to a transparent image of the requested size.
    """
    monkeypatch.setenv("CERTIFICATE_TEMPLATE_PATH", str(template_file))
    monkeypatch.setattr(
        "rendering.certificates.svg_to_png",
        lambda svg, *, width=None, height=None: _blank_png(
            width or TEMPLATE_SIZE[0], height or TEMPLATE_SIZE[1]
        ),
    )
    clear_settings_cache()
    return template_file


@pytest.fixture
def missing_template(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    path = tmp_path / "does-not-exist.png"
    monkeypatch.setenv("CERTIFICATE_TEMPLATE_PATH", str(path))
    clear_settings_cache()
    return path


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def test_engine() -> AsyncGenerator[AsyncEngine]:
    """Fresh in-memory database per test.

    StaticPool keeps the single connection alive so every session sees the
    same database.
    """
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    configure_sqlite_engine(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_maker(
    test_engine: AsyncEngine,
) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db_session(
    session_maker: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession]:
    """Session for setting up and inspecting data.

    Route tests must commit before issuing requests: the request handlers
    share the same underlying connection.
    """
    async with session_maker() as session:
        yield session


# =============================================================================
# FastAPI Test Client Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def app(
    test_engine: AsyncEngine,
    session_maker: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[FastAPI]:
    """FastAPI app wired to the test database.

    Lifespan does not run under ASGITransport, so app state is set here.
    """
    from main import create_app

    fastapi_app = create_app()
    fastapi_app.state.engine = test_engine
    fastapi_app.state.session_maker = session_maker
    fastapi_app.state.init_done = True
    fastapi_app.state.init_error = None

    yield fastapi_app

    fastapi_app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient]:
    """Unauthenticated async HTTP client."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
def login_as(app: FastAPI) -> Callable[[str], None]:
    """Authenticate subsequent requests as the given user ID.

    Replaces the session-cookie lookup; the user row is still loaded from
    the database, so deactivated or missing users get 401.
    """

    def _login(user_id: str) -> None:
        def _require_auth() -> str:
            return user_id

        app.dependency_overrides[require_auth] = _require_auth

    return _login


# =============================================================================
# Utility Fixtures
# =============================================================================


@pytest.fixture
def anyio_backend() -> str:
    """Use asyncio backend for anyio (required by httpx)."""
    return "asyncio"
