"""Database layer for sensor readings."""

from __future__ import annotations

import uuid
from datetime import datetime

import aiomysql


async def insert_reading(
    conn,
    api_key_id: str,
    sensor_id: str,
    value: float,
    unit: str,
    created_at: datetime,
) -> str:
    """Store one reading and return its ID."""
    reading_id = str(uuid.uuid4())
    async with conn.cursor(aiomysql.DictCursor) as cur:
        await cur.execute(
            """
            INSERT INTO readings (id, api_key_id, sensor_id, value, unit, created_at)
            VALUES (%s, %s, %s, %s, %s, %s)
            """,
            (reading_id, api_key_id, sensor_id, value, unit, created_at),
        )
        await conn.commit()
    return reading_id


async def list_readings(conn, api_key_id: str) -> list:
    """All readings submitted with a key, newest first."""
    async with conn.cursor(aiomysql.DictCursor) as cur:
        await cur.execute(
            """
            SELECT id, api_key_id, sensor_id, value, unit, created_at
            FROM readings
            WHERE api_key_id = %s
            ORDER BY created_at DESC
            """,
            (api_key_id,),
        )
        return await cur.fetchall()
