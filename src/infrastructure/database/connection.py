"""Database connection provider."""

from typing import Any

import structlog
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from core.exceptions import ConfigurationError

logger = structlog.get_logger()


def _enable_sqlite_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
    """Turn on foreign key enforcement, which SQLite leaves off per connection."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys = ON")
    cursor.close()


class ConnectionProvider:
    """Hands out a new database connection per call.

    Pooling is left to the engine; the provider keeps no connection state of
    its own and is safe to share between concurrent callers.
    """

    def __init__(self, database_url: str | None, echo: bool = False, **engine_kwargs: Any) -> None:
        if not database_url:
            raise ConfigurationError()

        self._engine: AsyncEngine = create_async_engine(
            database_url,
            echo=echo,
            pool_pre_ping=True,
            **engine_kwargs,
        )
        if self._engine.dialect.name == "sqlite":
            event.listen(self._engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

        logger.info("connection_provider_created", dialect=self._engine.dialect.name)

    @property
    def engine(self) -> AsyncEngine:
        """Underlying async engine."""
        return self._engine

    def acquire(self) -> AsyncConnection:
        """Return a new, not yet opened connection.

        Use it as an async context manager so it is returned to the pool on
        every exit path.
        """
        return self._engine.connect()

    async def dispose(self) -> None:
        """Close all pooled connections."""
        await self._engine.dispose()
        logger.info("connection_provider_disposed")
