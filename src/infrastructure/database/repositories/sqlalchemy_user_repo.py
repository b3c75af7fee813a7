"""SQLAlchemy implementation of the User aggregate repository."""

from typing import Any, Mapping

import structlog
from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection

from core.exceptions import InvalidPaginationError, MissingIdentityError, PersistenceError
from domain.entities.user import User, UserProfile
from infrastructure.database.connection import ConnectionProvider
from infrastructure.database.models import UserModel, UserProfileModel
from infrastructure.database.social_links import normalize_on_read, normalize_on_write

logger = structlog.get_logger()

users = UserModel.__table__
profiles = UserProfileModel.__table__


class SQLAlchemyUserRepository:
    """SQLAlchemy implementation of IUserRepository.

    Every operation opens its own connection from the provider and closes it
    before returning, so one instance can be shared freely.

    The user row and the profile row are written with separate commits unless
    ``atomic_writes`` is set. In the default mode a failed profile write leaves
    the user row in place; the caller only sees the PersistenceError.
    """

    def __init__(self, provider: ConnectionProvider, atomic_writes: bool = False) -> None:
        self._provider = provider
        self._atomic_writes = atomic_writes

    async def search(
        self, query: str | None = None, page: int = 1, page_size: int = 10
    ) -> tuple[list[User], int]:
        """Get one page of users whose username starts with ``query``.

        Matching is case-insensitive and an empty query matches every user.
        Returns the page (ordered by ID) and the number of matching users
        across all pages. Both come from one statement, except for a page past
        the end, where the total is read by a second statement.
        """
        if page < 1 or page_size < 1:
            raise InvalidPaginationError(page, page_size)

        offset = (page - 1) * page_size
        filters = []
        if query:
            filters.append(users.c.username.istartswith(query, autoescape=True))

        counted = users.alias("counted")
        count_filters = []
        if query:
            count_filters.append(counted.c.username.istartswith(query, autoescape=True))
        total = (
            select(func.count())
            .select_from(counted)
            .where(*count_filters)
            .scalar_subquery()
        )

        stmt = (
            select(users, profiles, total.label("total_count"))
            .select_from(users.outerjoin(profiles, profiles.c.user_id == users.c.id))
            .where(*filters)
            .order_by(users.c.id)
            .offset(offset)
            .limit(page_size)
        )

        try:
            async with self._provider.acquire() as conn:
                rows = (await conn.execute(stmt)).mappings().all()
                if rows:
                    total_count = int(rows[0]["total_count"])
                else:
                    # Past the last page: no row carries the count.
                    count_stmt = select(func.count()).select_from(users).where(*filters)
                    total_count = int((await conn.execute(count_stmt)).scalar_one())
        except SQLAlchemyError as exc:
            raise self._persistence_error("search", exc) from exc

        result = []
        for row in rows:
            user = self._to_entity(row)
            if row["user_id"] is not None:
                user.profile = self._to_profile(row)
            result.append(user)
        return result, total_count

    async def get_by_id_with_profile(self, user_id: int) -> User | None:
        """Get a user by ID with its profile attached, or None if there is no such user."""
        try:
            async with self._provider.acquire() as conn:
                user_row = (
                    await conn.execute(select(users).where(users.c.id == user_id))
                ).mappings().one_or_none()
                if user_row is None:
                    return None
                profile_row = (
                    await conn.execute(select(profiles).where(profiles.c.user_id == user_id))
                ).mappings().one_or_none()
        except SQLAlchemyError as exc:
            raise self._persistence_error("get_by_id_with_profile", exc) from exc

        user = self._to_entity(user_row)
        if profile_row is not None:
            user.profile = self._to_profile(profile_row)
        return user

    async def create(self, user: User) -> int:
        """Create a user and, if attached, its profile. Returns the new user ID.

        Raises:
            SocialLinksDecodeError: The profile's social links are malformed.
                Nothing is written in that case.
            PersistenceError: Either insert failed.
        """
        social_links = None
        if user.profile is not None:
            social_links = normalize_on_write(user.profile.social_links)

        try:
            async with self._provider.acquire() as conn:
                result = await conn.execute(insert(users).values(**self._to_values(user)))
                user_id = int(result.inserted_primary_key[0])
                await self._end_step(conn)

                if user.profile is not None:
                    await conn.execute(
                        insert(profiles).values(
                            user_id=user_id,
                            bio=user.profile.bio,
                            website_url=user.profile.website_url,
                            social_links=social_links,
                        )
                    )
                await conn.commit()
        except SQLAlchemyError as exc:
            raise self._persistence_error("create", exc) from exc

        logger.info("user_created", user_id=user_id, with_profile=user.profile is not None)
        return user_id

    async def update(self, user: User) -> int:
        """Overwrite every mutable column of a user and, if attached, its profile.

        The return value counts only the profile rows updated (0 or 1). It is
        0 when no profile is attached even though the user row was written,
        and 0 when the user has no stored profile row to update.

        Raises:
            MissingIdentityError: ``user.id`` is not set.
            SocialLinksDecodeError: The profile's social links are malformed.
            PersistenceError: Either update failed.
        """
        if user.id is None:
            raise MissingIdentityError()

        social_links = None
        if user.profile is not None:
            user.profile.user_id = user.id
            social_links = normalize_on_write(user.profile.social_links)

        try:
            async with self._provider.acquire() as conn:
                await conn.execute(
                    update(users).where(users.c.id == user.id).values(**self._to_values(user))
                )

                profile_rows = 0
                if user.profile is not None:
                    await self._end_step(conn)
                    result = await conn.execute(
                        update(profiles)
                        .where(profiles.c.user_id == user.id)
                        .values(
                            bio=user.profile.bio,
                            website_url=user.profile.website_url,
                            social_links=social_links,
                        )
                    )
                    profile_rows = result.rowcount
                await conn.commit()
        except SQLAlchemyError as exc:
            raise self._persistence_error("update", exc) from exc

        logger.info("user_updated", user_id=user.id, profile_rows=profile_rows)
        return profile_rows

    async def delete(self, user_id: int) -> int:
        """Delete a user; the profile goes with it through the foreign key cascade.

        Returns the number of user rows removed, 0 if the user did not exist.
        """
        try:
            async with self._provider.acquire() as conn:
                result = await conn.execute(delete(users).where(users.c.id == user_id))
                deleted = result.rowcount
                await conn.commit()
        except SQLAlchemyError as exc:
            raise self._persistence_error("delete", exc) from exc

        logger.info("user_deleted", user_id=user_id, rows=deleted)
        return deleted

    async def _end_step(self, conn: AsyncConnection) -> None:
        """Commit the statements so far unless both tables share one transaction."""
        if not self._atomic_writes:
            await conn.commit()

    def _persistence_error(self, operation: str, exc: SQLAlchemyError) -> PersistenceError:
        logger.error(
            "user_repository_error",
            operation=operation,
            error=str(exc),
            error_type=type(exc).__name__,
        )
        return PersistenceError(operation, exc)

    def _to_values(self, entity: User) -> dict[str, Any]:
        """Column values for the users table (everything except the ID)."""
        return {
            "username": entity.username,
            "email": entity.email,
            "password_hash": entity.password_hash,
            "first_name": entity.first_name,
            "last_name": entity.last_name,
            "profile_picture_url": entity.profile_picture_url,
            "date_created": entity.date_created,
        }

    def _to_entity(self, row: Mapping[Any, Any]) -> User:
        """Convert a users row to a domain entity."""
        return User(
            id=row["id"],
            username=row["username"],
            email=row["email"],
            password_hash=row["password_hash"],
            first_name=row["first_name"],
            last_name=row["last_name"],
            profile_picture_url=row["profile_picture_url"],
            date_created=row["date_created"],
        )

    def _to_profile(self, row: Mapping[Any, Any]) -> UserProfile:
        """Convert a user_profile row to a domain entity with canonical social links."""
        return UserProfile(
            user_id=row["user_id"],
            bio=row["bio"],
            website_url=row["website_url"],
            social_links=normalize_on_read(row["social_links"], row["user_id"]),
        )
