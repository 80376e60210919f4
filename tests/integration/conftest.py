"""Integration test helper fixtures.

These fixtures use the real DB (via db_conn) and the ASGI test client.
"""

import secrets
import string
import uuid
from datetime import datetime, timezone

import pytest


def _utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


async def _create_key(conn, name="test-key", is_active=True, rate_limit=None, usage_count=0):
    """Insert an API key directly into the DB and return its row dict."""
    key_id = str(uuid.uuid4())
    key = "sk_" + "".join(secrets.choice(string.ascii_letters + string.digits) for _ in range(32))
    now = _utcnow()

    async with conn.cursor() as cur:
        await cur.execute(
            """INSERT INTO api_keys (id, `key`, name, usage_count, is_active, rate_limit, created_at, updated_at)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s)""",
            (key_id, key, name, usage_count, int(is_active), rate_limit, now, now),
        )

    return {
        "id": key_id,
        "key": key,
        "name": name,
        "usage_count": usage_count,
        "is_active": is_active,
        "rate_limit": rate_limit,
    }


async def _insert_request(conn, api_key_id, created_at, endpoint="/readings", status_code=201):
    """Append one telemetry row with an explicit timestamp."""
    async with conn.cursor() as cur:
        await cur.execute(
            """INSERT INTO requests (id, api_key_id, endpoint, method, status_code, response_time_ms, created_at)
            VALUES (%s, %s, %s, %s, %s, %s, %s)""",
            (str(uuid.uuid4()), api_key_id, endpoint, "POST", status_code, 5, created_at),
        )


async def _usage_count(conn, key_id):
    async with conn.cursor() as cur:
        await cur.execute("SELECT usage_count FROM api_keys WHERE id = %s", (key_id,))
        row = await cur.fetchone()
    return row[0]


@pytest.fixture
async def active_key(db_conn):
    """An active key with the default rate limit."""
    return await _create_key(db_conn, name="active-key")


@pytest.fixture
async def inactive_key(db_conn):
    """A deactivated key."""
    return await _create_key(db_conn, name="inactive-key", is_active=False)


@pytest.fixture
def key_headers(active_key):
    return {"X-API-Key": active_key["key"]}
