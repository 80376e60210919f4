"""Database layer for API key operations.

All functions are async, take a connection (conn) as the first parameter,
and use parameterized queries with %s placeholders. ``key`` is a reserved
word in MySQL and is always quoted.
"""

from __future__ import annotations

from datetime import datetime, timezone

import aiomysql


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


async def create_api_key(
    conn,
    id: str,
    key: str,
    name: str,
    rate_limit: int | None = None,
) -> dict:
    """Insert a new API key record."""
    now = _utcnow()
    async with conn.cursor(aiomysql.DictCursor) as cur:
        await cur.execute(
            """
            INSERT INTO api_keys (id, `key`, name, rate_limit, created_at, updated_at)
            VALUES (%s, %s, %s, %s, %s, %s)
            """,
            (id, key, name, rate_limit, now, now),
        )
        await conn.commit()

    return await get_api_key_by_id(conn, id)  # type: ignore[return-value]


async def find_and_increment_active_key(conn, key: str) -> dict | None:
    """Count one use of an active key and return its row.

    The conditional UPDATE is the only place the usage counter changes. It
    matches only active keys, so the row lock it takes serializes concurrent
    authentications of the same key; the row is read back inside the same
    transaction and only when the update hit it.
    """
    await conn.begin()
    try:
        async with conn.cursor(aiomysql.DictCursor) as cur:
            await cur.execute(
                """
                UPDATE api_keys
                SET usage_count = usage_count + 1, updated_at = %s
                WHERE `key` = %s AND is_active = 1
                """,
                (_utcnow(), key),
            )
            if cur.rowcount != 1:
                await conn.rollback()
                return None

            await cur.execute("SELECT * FROM api_keys WHERE `key` = %s", (key,))
            row = await cur.fetchone()
        await conn.commit()
    except Exception:
        await conn.rollback()
        raise
    return row


async def get_api_key_by_key(conn, key: str) -> dict | None:
    """Look up an API key by its secret, active or not."""
    async with conn.cursor(aiomysql.DictCursor) as cur:
        await cur.execute("SELECT * FROM api_keys WHERE `key` = %s", (key,))
        return await cur.fetchone()


async def get_api_key_id(conn, key: str) -> str | None:
    """Resolve a secret to its key ID without touching usage counters."""
    async with conn.cursor(aiomysql.DictCursor) as cur:
        await cur.execute("SELECT id FROM api_keys WHERE `key` = %s", (key,))
        row = await cur.fetchone()
    return row["id"] if row else None


async def get_api_key_by_id(conn, key_id: str) -> dict | None:
    """Look up an API key by its primary key ID."""
    async with conn.cursor(aiomysql.DictCursor) as cur:
        await cur.execute("SELECT * FROM api_keys WHERE id = %s", (key_id,))
        return await cur.fetchone()


async def list_api_keys(conn) -> list:
    """List all API keys with metadata (no secrets exposed)."""
    async with conn.cursor(aiomysql.DictCursor) as cur:
        await cur.execute(
            """
            SELECT id, name, usage_count, is_active, rate_limit, created_at, updated_at
            FROM api_keys
            ORDER BY created_at DESC
            """
        )
        return await cur.fetchall()


async def set_api_key_active(conn, key_id: str, is_active: bool) -> bool:
    """Activate or deactivate a key. Returns False if no such key exists."""
    async with conn.cursor(aiomysql.DictCursor) as cur:
        await cur.execute(
            "UPDATE api_keys SET is_active = %s, updated_at = %s WHERE id = %s",
            (int(is_active), _utcnow(), key_id),
        )
        await conn.commit()
        if cur.rowcount:
            return True

    # MySQL reports zero affected rows when no column value changed.
    return await get_api_key_by_id(conn, key_id) is not None


async def delete_api_key(conn, key_id: str) -> bool:
    """Delete a key and its telemetry. Returns False if no such key exists."""
    async with conn.cursor(aiomysql.DictCursor) as cur:
        await cur.execute("DELETE FROM api_keys WHERE id = %s", (key_id,))
        await conn.commit()
        return cur.rowcount > 0


async def count_api_keys(conn) -> dict | None:
    """Return ``{"total": n, "active": m}`` over all keys."""
    async with conn.cursor(aiomysql.DictCursor) as cur:
        await cur.execute(
            """
            SELECT COUNT(*) AS total,
                   COUNT(CASE WHEN is_active = 1 THEN 1 END) AS active
            FROM api_keys
            """
        )
        return await cur.fetchone()
