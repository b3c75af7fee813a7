"""User aggregate repository protocol."""

from typing import Protocol

from domain.entities.user import User


class IUserRepository(Protocol):
    """Repository interface for the User aggregate (user plus profile)."""

    async def search(
        self, query: str | None = None, page: int = 1, page_size: int = 10
    ) -> tuple[list[User], int]:
        """Get one page of users whose username starts with query, and the total match count."""
        ...

    async def get_by_id_with_profile(self, user_id: int) -> User | None:
        """Get a user with its profile attached."""
        ...

    async def create(self, user: User) -> int:
        """Create a user and its profile, returning the new user ID."""
        ...

    async def update(self, user: User) -> int:
        """Overwrite a user and its profile, returning the profile rows affected."""
        ...

    async def delete(self, user_id: int) -> int:
        """Delete a user (the profile cascades), returning the user rows affected."""
        ...
