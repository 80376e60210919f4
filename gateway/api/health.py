"""Liveness and storage reachability for load balancers.

``/health`` always answers 200. The body says ``healthy`` when a pooled
connection answers ``SELECT 1`` within the storage timeout and ``degraded``
otherwise, alongside the pool's current size and idle count.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter

from gateway.db.pool import get_connection, pool_occupancy, with_timeout
from gateway.models.metrics import HealthStatus, PoolStats

logger = logging.getLogger(__name__)

router = APIRouter()


async def _ping(conn) -> None:
    async with conn.cursor() as cur:
        await cur.execute("SELECT 1")


@router.get("/health", response_model=HealthStatus)
async def health_check():
    db_ok = False
    try:
        async with get_connection() as conn:
            await with_timeout(_ping(conn), conn=conn)
            db_ok = True
    except Exception:
        logger.warning("Database health check failed", exc_info=True)

    size, idle = pool_occupancy()
    return HealthStatus(
        status="healthy" if db_ok else "degraded",
        timestamp=datetime.now(timezone.utc).isoformat(),
        database="connected" if db_ok else "unreachable",
        database_pool_stats=PoolStats(size=size, num_idle=idle),
    )
