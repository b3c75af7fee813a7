"""User aggregate domain entities."""

from dataclasses import dataclass, field
from datetime import datetime, timezone

import orjson


@dataclass
class UserProfile:
    """Domain entity for the profile that belongs to exactly one user.

    ``social_links`` holds the serialized JSON object text as stored in the
    database. Use :meth:`social_links_map` to work with it as a mapping.
    """

    user_id: int | None = None
    bio: str | None = None
    website_url: str | None = None
    social_links: str | None = None

    def social_links_map(self) -> dict[str, str]:
        """Decode the social links text, returning an empty mapping when absent."""
        if not self.social_links:
            return {}
        return dict(orjson.loads(self.social_links))


@dataclass
class User:
    """Domain entity for a registered user and its optional profile."""

    username: str
    email: str
    password_hash: str
    first_name: str
    last_name: str
    id: int | None = None
    profile_picture_url: str | None = None
    date_created: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    profile: UserProfile | None = None
