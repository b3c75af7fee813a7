"""Social links payload normalization.

The profile's social links are a mapping of provider name to URL, stored as
serialized JSON text. Everything that reaches or leaves the database is passed
through a decode/re-encode cycle so that only canonical text is ever observed.

Reads and writes fail differently and are kept as two separate functions:

* :func:`normalize_on_read` tolerates corrupt stored text. It logs and returns
  ``None`` so a single bad row never breaks a lookup.
* :func:`normalize_on_write` rejects malformed caller input with
  :class:`~core.exceptions.SocialLinksDecodeError`.
"""

from typing import Any

import orjson
import structlog

from core.exceptions import SocialLinksDecodeError

logger = structlog.get_logger()

EMPTY_SOCIAL_LINKS = "{}"


def encode_social_links(links: dict[str, str]) -> str:
    """Serialize a social links mapping to its canonical text form."""
    return orjson.dumps(links).decode("utf-8")


def decode_social_links(raw: str) -> dict[str, str]:
    """Parse social links text into a mapping of string to string.

    Raises:
        SocialLinksDecodeError: If the text is not valid JSON, is not an
            object, or holds a non-string value.
    """
    try:
        value: Any = orjson.loads(raw)
    except orjson.JSONDecodeError as exc:
        raise SocialLinksDecodeError(str(exc)) from exc

    if not isinstance(value, dict):
        raise SocialLinksDecodeError(f"expected a JSON object, got {type(value).__name__}")

    for key, url in value.items():
        if not isinstance(url, str):
            raise SocialLinksDecodeError(f"value for {key!r} must be a string")
    return value


def normalize_on_read(raw: str | None, user_id: int | None = None) -> str | None:
    """Canonicalize stored social links, degrading to ``None`` on corrupt data."""
    if not raw:
        return None
    try:
        return encode_social_links(decode_social_links(raw))
    except SocialLinksDecodeError as exc:
        logger.warning(
            "social_links_decode_failed",
            user_id=user_id,
            error=exc.details["reason"],
        )
        return None


def normalize_on_write(raw: str | None) -> str:
    """Canonicalize caller-supplied social links before they are stored.

    Absent links are stored as an empty object.
    """
    if raw is None:
        raw = EMPTY_SOCIAL_LINKS
    return encode_social_links(decode_social_links(raw))
