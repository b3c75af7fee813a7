"""Pytest configuration and fixtures."""

import sys
from collections.abc import AsyncGenerator, Callable
from datetime import datetime, timezone
from pathlib import Path

import orjson
import pytest
from sqlalchemy.pool import StaticPool

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from domain.entities.user import User, UserProfile
from infrastructure.database.connection import ConnectionProvider
from infrastructure.database.models import Base
from infrastructure.database.repositories.sqlalchemy_user_repo import SQLAlchemyUserRepository

# Test database URL (SQLite in memory, one shared connection per provider)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def provider() -> AsyncGenerator[ConnectionProvider, None]:
    """Create a provider over a fresh in-memory database with the schema in place."""
    provider = ConnectionProvider(TEST_DATABASE_URL, poolclass=StaticPool)
    async with provider.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield provider
    await provider.dispose()


@pytest.fixture
def repository(provider: ConnectionProvider) -> SQLAlchemyUserRepository:
    """Repository with the default (non-atomic) write mode."""
    return SQLAlchemyUserRepository(provider)


@pytest.fixture
def atomic_repository(provider: ConnectionProvider) -> SQLAlchemyUserRepository:
    """Repository that writes user and profile in one transaction."""
    return SQLAlchemyUserRepository(provider, atomic_writes=True)


@pytest.fixture
def make_user() -> Callable[..., User]:
    """Factory for users (and profiles) the way a caller builds them before create()."""
    return _make_user


def _make_user(
    username: str = "profileuser",
    links: dict[str, str] | None = None,
    with_profile: bool = True,
    **overrides: object,
) -> User:
    profile = None
    if with_profile:
        profile = UserProfile(
            bio=f"{username} bio",
            website_url=f"http://{username}.example.com",
            social_links=orjson.dumps(links).decode() if links is not None else None,
        )
    values: dict[str, object] = {
        "username": username,
        "email": f"{username}@example.com",
        "password_hash": "hashed-password",
        "first_name": "Profile",
        "last_name": "User",
        "date_created": datetime(2024, 1, 15, 12, 30, tzinfo=timezone.utc),
        "profile": profile,
    }
    values.update(overrides)
    return User(**values)  # type: ignore[arg-type]
