"""
RecipeShare Backend - Test Configuration (conftest.py)
=======================================================

What:  Shared pytest fixtures for the entire test suite.
Why:   Real transactional behavior matters here (rollback on callback failure),
       so the store runs against an in-memory SQLite database, not a mock.
       The S3 transport is a MagicMock behind the real ObjectStoreClient.

Fixture Hierarchy (all function-scoped):
    session_factory ─┬─ users ─ author / other_user
                     └─ store ─ pipeline
    s3_client ─ object_store ─┘
    auth_verifier, session_factory, object_store ─ test_client
    make_image: builds PNG/JPEG bytes with Pillow
"""

import io
import os

# Override settings for testing BEFORE any recipeshare import
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["S3_BUCKET_NAME"] = "recipes-test"
os.environ["AWS_REGION"] = "ap-northeast-3"
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_LEVEL"] = "WARNING"

from typing import Dict
from unittest.mock import MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from PIL import Image
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from recipeshare.auth import AuthenticatedUser, AuthVerifier
from recipeshare.database import Base
from recipeshare.exceptions import UnauthorizedError
from recipeshare.models import User
from recipeshare.services.image_service import ImageService
from recipeshare.services.object_store import ObjectStoreClient
from recipeshare.services.recipe_pipeline import RecipePipeline
from recipeshare.services.recipe_store import RecipeStore

AUTHOR_TOKEN = "author-token"
OTHER_TOKEN = "other-token"


class StaticTokenVerifier(AuthVerifier):
    """Maps fixed bearer tokens to users."""

    def __init__(self, tokens: Dict[str, AuthenticatedUser]):
        self.tokens = tokens

    async def verify(self, token: str) -> AuthenticatedUser:
        try:
            return self.tokens[token]
        except KeyError:
            raise UnauthorizedError("Invalid token")


# ══════════════════════════════════════════════════════════════════════════
# Database
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def session_factory():
    """
    Fresh in-memory SQLite database per test.

    StaticPool keeps the single connection alive so every session sees the
    same database.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def users(session_factory):
    """Two users: the recipe author and someone else."""
    author = User(email="chef@example.com", display_name="Chef Ana", avatar_url="https://cdn.example.com/ana.png")
    other = User(email="guest@example.com", display_name="Guest Bo")
    async with session_factory() as session:
        session.add_all([author, other])
        await session.commit()
    return author, other


@pytest.fixture
def author(users):
    return users[0]


@pytest.fixture
def other_user(users):
    return users[1]


@pytest.fixture
def store(session_factory):
    return RecipeStore(session_factory=session_factory, transaction_timeout=5, statement_timeout=5)


# ══════════════════════════════════════════════════════════════════════════
# Object Store
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def s3_client():
    """Stand-in for the boto3 S3 client; every call succeeds by default."""
    return MagicMock()


@pytest.fixture
def object_store(s3_client):
    return ObjectStoreClient(
        bucket_name="recipes-test",
        region="ap-northeast-3",
        client_factory=lambda: s3_client,
    )


@pytest.fixture
def pipeline(store, object_store):
    return RecipePipeline(
        store=store,
        object_store=object_store,
        image_service=ImageService(),
        retry_attempts=2,
        retry_min_wait=0,
        retry_max_wait=0,
    )


# ══════════════════════════════════════════════════════════════════════════
# Images
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def make_image():
    """
    Build encoded image bytes.

    Usage:
        data = make_image("JPEG", (2000, 1500))
        data = make_image("PNG", (64, 64), mode="RGBA")
    """

    def _make(fmt: str = "JPEG", size=(800, 600), color=(200, 120, 40), mode: str = "RGB") -> bytes:
        if mode == "RGBA" and len(color) == 3:
            color = color + (128,)
        image = Image.new(mode, size, color)
        out = io.BytesIO()
        image.save(out, format=fmt)
        return out.getvalue()

    return _make


# ══════════════════════════════════════════════════════════════════════════
# HTTP
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def auth_verifier(author, other_user):
    return StaticTokenVerifier({
        AUTHOR_TOKEN: AuthenticatedUser(user_id=author.id, email=author.email),
        OTHER_TOKEN: AuthenticatedUser(user_id=other_user.id, email=other_user.email),
    })


@pytest_asyncio.fixture
async def test_client(auth_verifier, object_store, session_factory):
    """
    HTTPX AsyncClient wired to an app built around the test collaborators.

    Usage:
        response = await test_client.get("/api/recipes")
    """
    from recipeshare.main import create_app

    app = create_app(
        auth_verifier=auth_verifier,
        object_store=object_store,
        session_factory=session_factory,
        pipeline_options={"retry_attempts": 2, "retry_min_wait": 0, "retry_max_wait": 0},
    )
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
