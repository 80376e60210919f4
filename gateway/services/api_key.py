"""API key provisioning and request authentication.

Keys are prefixed with ``sk_`` followed by 32 random alphanumerics and are
looked up by their exact value. Authentication counts one use of the key in
the same conditional update that validates it.
"""

from __future__ import annotations

import logging
import secrets
import string
import uuid

from gateway.db import api_keys as db_api_keys
from gateway.db.pool import get_connection, with_timeout
from gateway.errors import AuthError, AuthFailure, NotFoundError

logger = logging.getLogger(__name__)

KEY_PREFIX = "sk_"
KEY_LENGTH = 32
_KEY_ALPHABET = string.ascii_letters + string.digits


def generate_api_key() -> str:
    """Return a fresh ``sk_``-prefixed secret."""
    return KEY_PREFIX + "".join(secrets.choice(_KEY_ALPHABET) for _ in range(KEY_LENGTH))


async def create_key(conn, name: str, rate_limit: int | None = None) -> dict:
    """Create a new API key.

    Returns:
        The stored row. Its ``key`` field is the only time the secret is
        handed out by the admin API.
    """
    row = await db_api_keys.create_api_key(
        conn,
        id=str(uuid.uuid4()),
        key=generate_api_key(),
        name=name,
        rate_limit=rate_limit,
    )
    logger.info("Created API key %s (%s)", row["id"], name)
    return row


async def authenticate(raw_key: str | None) -> dict:
    """Validate a raw key and count one use of it.

    Acquires its own pooled connection so that a storage outage is reported
    as an authentication failure rather than a server error.

    Raises:
        AuthError: ``MISSING`` when no key was sent, ``INVALID`` when no
            active key matches, ``STORAGE`` when the lookup failed.
    """
    if raw_key is None or not raw_key.strip():
        raise AuthError(AuthFailure.MISSING)

    try:
        async with get_connection() as conn:
            principal = await with_timeout(
                db_api_keys.find_and_increment_active_key(conn, raw_key.strip())
            )
    except Exception as exc:
        logger.exception("Storage error during API key validation")
        raise AuthError(AuthFailure.STORAGE) from exc

    if principal is None:
        logger.debug("Rejected unknown or inactive API key")
        raise AuthError(AuthFailure.INVALID)

    return principal


async def set_active(conn, key_id: str, is_active: bool) -> dict:
    """Activate or deactivate a key.

    Raises:
        NotFoundError: If no key has this ID.
    """
    if not await db_api_keys.set_api_key_active(conn, key_id, is_active):
        raise NotFoundError("API key not found")
    logger.info("API key %s %s", key_id, "activated" if is_active else "deactivated")
    return await db_api_keys.get_api_key_by_id(conn, key_id)  # type: ignore[return-value]


async def delete_key(conn, key_id: str) -> None:
    """Delete a key together with its readings and telemetry.

    Raises:
        ValueError: If ``key_id`` is not a UUID.
        NotFoundError: If no key has this ID.
    """
    try:
        uuid.UUID(key_id)
    except ValueError:
        raise ValueError("Invalid UUID format")

    if not await db_api_keys.delete_api_key(conn, key_id):
        raise NotFoundError("API key not found")
    logger.info("Deleted API key %s", key_id)
