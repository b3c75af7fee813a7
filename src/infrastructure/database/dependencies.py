"""Factories that build the database layer from settings.

The embedding application calls :func:`startup` once when the process starts
and :func:`shutdown` when it stops.
"""

from functools import lru_cache

from core.config import settings
from core.logging import setup_logging
from domain.repositories.user_repository import IUserRepository
from infrastructure.database.connection import ConnectionProvider
from infrastructure.database.repositories.sqlalchemy_user_repo import SQLAlchemyUserRepository


@lru_cache
def get_connection_provider() -> ConnectionProvider:
    """Get the process-wide connection provider."""
    return ConnectionProvider(settings.async_database_url, echo=settings.debug)


@lru_cache
def get_user_repository() -> IUserRepository:
    """Get User repository instance."""
    return SQLAlchemyUserRepository(
        get_connection_provider(),
        atomic_writes=settings.atomic_writes,
    )


def startup() -> ConnectionProvider:
    """Configure structured logging and build the connection provider."""
    setup_logging()
    return get_connection_provider()


async def shutdown() -> None:
    """Close pooled connections and drop the cached provider and repository."""
    if get_connection_provider.cache_info().currsize:
        await get_connection_provider().dispose()
    get_user_repository.cache_clear()
    get_connection_provider.cache_clear()
