"""Connection release and concurrent use of SQLAlchemyUserRepository on a pooled database."""

import asyncio
from collections.abc import AsyncGenerator
from pathlib import Path
from typing import Callable

import pytest

from core.exceptions import PersistenceError, SocialLinksDecodeError
from domain.entities.user import User
from infrastructure.database.connection import ConnectionProvider
from infrastructure.database.models import Base
from infrastructure.database.repositories.sqlalchemy_user_repo import SQLAlchemyUserRepository

MakeUser = Callable[..., User]


@pytest.fixture
async def pooled_provider(tmp_path: Path) -> AsyncGenerator[ConnectionProvider, None]:
    """File-backed SQLite provider with the engine's default connection pool."""
    provider = ConnectionProvider(f"sqlite+aiosqlite:///{tmp_path / 'users.db'}")
    async with provider.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield provider
    await provider.dispose()


@pytest.fixture
def pooled_repository(pooled_provider: ConnectionProvider) -> SQLAlchemyUserRepository:
    return SQLAlchemyUserRepository(pooled_provider)


def _checked_out(provider: ConnectionProvider) -> int:
    return provider.engine.sync_engine.pool.checkedout()


class TestConnectionRelease:
    @pytest.mark.asyncio
    async def test_released_after_success(
        self,
        pooled_repository: SQLAlchemyUserRepository,
        pooled_provider: ConnectionProvider,
        make_user: MakeUser,
    ):
        user = make_user("released")
        user.id = await pooled_repository.create(user)
        await pooled_repository.update(user)
        await pooled_repository.search("rel")
        await pooled_repository.get_by_id_with_profile(user.id)
        await pooled_repository.delete(user.id)

        assert _checked_out(pooled_provider) == 0

    @pytest.mark.asyncio
    async def test_released_after_not_found(
        self, pooled_repository: SQLAlchemyUserRepository, pooled_provider: ConnectionProvider
    ):
        assert await pooled_repository.get_by_id_with_profile(999) is None
        assert await pooled_repository.search("nobody", page=3, page_size=5) == ([], 0)

        assert _checked_out(pooled_provider) == 0

    @pytest.mark.asyncio
    async def test_released_after_store_error(
        self,
        pooled_repository: SQLAlchemyUserRepository,
        pooled_provider: ConnectionProvider,
        make_user: MakeUser,
    ):
        await pooled_repository.create(make_user("taken"))

        with pytest.raises(PersistenceError):
            await pooled_repository.create(make_user("clash", email="taken@example.com"))

        assert _checked_out(pooled_provider) == 0

    @pytest.mark.asyncio
    async def test_no_connection_taken_for_rejected_input(
        self,
        pooled_repository: SQLAlchemyUserRepository,
        pooled_provider: ConnectionProvider,
        make_user: MakeUser,
    ):
        user = make_user("rejected")
        user.profile.social_links = "{nope"

        with pytest.raises(SocialLinksDecodeError):
            await pooled_repository.create(user)

        assert _checked_out(pooled_provider) == 0


class TestConcurrentReads:
    @pytest.mark.asyncio
    async def test_gathered_reads_agree_and_release(
        self,
        pooled_repository: SQLAlchemyUserRepository,
        pooled_provider: ConnectionProvider,
        make_user: MakeUser,
    ):
        ids = [await pooled_repository.create(make_user(f"crowd{i}")) for i in range(10)]

        searches = [pooled_repository.search("crowd", page=p, page_size=3) for p in (1, 2, 3, 4, 5)] * 2
        lookups = [pooled_repository.get_by_id_with_profile(user_id) for user_id in ids]

        results = await asyncio.gather(*searches, *lookups)

        search_results = results[: len(searches)]
        lookup_results = results[len(searches) :]
        assert {total for _, total in search_results} == {10}
        assert [len(page) for page, _ in search_results[:5]] == [3, 3, 3, 1, 0]
        assert [user.id for user in lookup_results] == ids
        assert all(user.profile is not None for user in lookup_results)
        assert _checked_out(pooled_provider) == 0
