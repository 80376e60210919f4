"""Database layer for the request telemetry log.

All functions are async, take a connection (conn) as the first parameter,
and use parameterized queries with %s placeholders. Rows in ``requests`` are
append-only: nothing here updates or deletes them.
"""

from __future__ import annotations

import uuid
from datetime import datetime

import aiomysql


async def insert_request_record(
    conn,
    api_key_id: str,
    endpoint: str,
    method: str,
    status_code: int,
    response_time_ms: int | None,
    created_at: datetime,
) -> str:
    """Append a single telemetry row and return its ID."""
    record_id = str(uuid.uuid4())
    async with conn.cursor(aiomysql.DictCursor) as cur:
        await cur.execute(
            """
            INSERT INTO requests
                (id, api_key_id, endpoint, method, status_code, response_time_ms, created_at)
            VALUES (%s, %s, %s, %s, %s, %s, %s)
            """,
            (record_id, api_key_id, endpoint, method, status_code, response_time_ms, created_at),
        )
        await conn.commit()
    return record_id


async def count_requests(
    conn,
    api_key_id: str | None = None,
    since: datetime | None = None,
) -> int:
    """Count telemetry rows with optional key and lower time bound filters."""
    conditions: list[str] = []
    params: list = []

    if api_key_id is not None:
        conditions.append("api_key_id = %s")
        params.append(api_key_id)
    if since is not None:
        conditions.append("created_at >= %s")
        params.append(since)

    where_clause = ""
    if conditions:
        where_clause = "WHERE " + " AND ".join(conditions)

    async with conn.cursor(aiomysql.DictCursor) as cur:
        await cur.execute(f"SELECT COUNT(*) AS cnt FROM requests {where_clause}", tuple(params))
        row = await cur.fetchone()
    return int(row["cnt"]) if row else 0


async def average_latency(conn) -> float | None:
    """Mean response time over rows where latency was measured."""
    async with conn.cursor(aiomysql.DictCursor) as cur:
        await cur.execute(
            """
            SELECT AVG(response_time_ms) AS avg_ms
            FROM requests
            WHERE response_time_ms IS NOT NULL
            """
        )
        row = await cur.fetchone()
    if not row or row["avg_ms"] is None:
        return None
    return float(row["avg_ms"])


async def top_endpoints(conn, limit: int = 5) -> list:
    """Return the busiest endpoints as ``{"endpoint", "count"}`` rows."""
    async with conn.cursor(aiomysql.DictCursor) as cur:
        await cur.execute(
            """
            SELECT endpoint, COUNT(*) AS count
            FROM requests
            GROUP BY endpoint
            ORDER BY count DESC, endpoint ASC
            LIMIT %s
            """,
            (limit,),
        )
        return await cur.fetchall()


async def status_buckets(conn) -> dict | None:
    """Count rows per status class. Codes outside 2xx/4xx/5xx are not counted."""
    async with conn.cursor(aiomysql.DictCursor) as cur:
        await cur.execute(
            """
            SELECT
                COUNT(CASE WHEN status_code >= 200 AND status_code < 300 THEN 1 END) AS success,
                COUNT(CASE WHEN status_code >= 400 AND status_code < 500 THEN 1 END) AS client_error,
                COUNT(CASE WHEN status_code >= 500 AND status_code < 600 THEN 1 END) AS server_error
            FROM requests
            """
        )
        return await cur.fetchone()


async def usage_summary(
    conn,
    key: str,
    day_start: datetime,
    month_start: datetime,
) -> dict | None:
    """Lifetime, today and this-month totals for one key.

    Returns None when the key does not exist. A key without telemetry yields
    zero counts and a NULL ``last_used``.
    """
    async with conn.cursor(aiomysql.DictCursor) as cur:
        await cur.execute(
            """
            SELECT
                ak.name,
                COUNT(r.id) AS total_requests,
                COUNT(CASE WHEN r.created_at >= %s THEN 1 END) AS requests_today,
                COUNT(CASE WHEN r.created_at >= %s THEN 1 END) AS requests_this_month,
                MAX(r.created_at) AS last_used
            FROM api_keys ak
            LEFT JOIN requests r ON ak.id = r.api_key_id
            WHERE ak.`key` = %s
            GROUP BY ak.id, ak.name
            """,
            (day_start, month_start, key),
        )
        return await cur.fetchone()


async def daily_counts(conn, api_key_id: str, since: datetime) -> list:
    """Per-day request counts for a key from ``since`` onwards, oldest first."""
    async with conn.cursor(aiomysql.DictCursor) as cur:
        await cur.execute(
            """
            SELECT DATE(created_at) AS date, COUNT(id) AS requests
            FROM requests
            WHERE api_key_id = %s AND created_at >= %s
            GROUP BY DATE(created_at)
            ORDER BY date
            """,
            (api_key_id, since),
        )
        return await cur.fetchall()
