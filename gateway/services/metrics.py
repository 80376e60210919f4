"""System metrics snapshot over the request telemetry log.

The snapshot favours availability over precision: each sub-aggregate runs
on its own and falls back to a zero or empty value when it fails, so the
metrics endpoint keeps answering during partial storage trouble. A failed
sub-query is logged as a warning with its traceback; a sub-query that
simply found no rows is logged at debug level. The sub-queries are not
taken from one consistent snapshot and may race with in-flight telemetry
writes. A sub-query that times out closes the connection, and the ones
after it then fail and report their defaults.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from gateway.db import api_keys as db_api_keys
from gateway.db import requests as db_requests
from gateway.db.pool import pool_occupancy, with_timeout
from gateway.errors import AggregationError
from gateway.models.metrics import EndpointUsage, PoolStats, StatusDistribution, SystemMetrics

logger = logging.getLogger(__name__)

TOP_ENDPOINTS_LIMIT = 5


async def _aggregate(name: str, conn, awaitable):
    try:
        return await with_timeout(awaitable, conn=conn)
    except Exception as exc:
        raise AggregationError(name) from exc


async def _degrade(name: str, conn, awaitable, default):
    """Run one sub-aggregate, substituting ``default`` if it fails or is empty."""
    try:
        result = await _aggregate(name, conn, awaitable)
    except AggregationError:
        logger.warning("Metrics sub-query %s failed, reporting default", name, exc_info=True)
        return default

    if result is None or result == []:
        logger.debug("Metrics sub-query %s returned no rows", name)
        return default
    return result


async def snapshot(conn, now: datetime | None = None) -> SystemMetrics:
    """Collect a point-in-time view of traffic, keys and pool occupancy."""
    now = now or datetime.now(timezone.utc).replace(tzinfo=None)

    total_requests = await _degrade("total_requests", conn, db_requests.count_requests(conn), 0)
    key_stats = await _degrade("api_key_counts", conn, db_api_keys.count_api_keys(conn), {})
    avg_response = await _degrade(
        "avg_response_time", conn, db_requests.average_latency(conn), None
    )
    last_hour = await _degrade(
        "requests_last_hour",
        conn,
        db_requests.count_requests(conn, since=now - timedelta(hours=1)),
        0,
    )
    last_24h = await _degrade(
        "requests_last_24h",
        conn,
        db_requests.count_requests(conn, since=now - timedelta(hours=24)),
        0,
    )
    top_rows = await _degrade(
        "top_endpoints", conn, db_requests.top_endpoints(conn, TOP_ENDPOINTS_LIMIT), []
    )
    buckets = await _degrade("status_distribution", conn, db_requests.status_buckets(conn), {})

    size, idle = pool_occupancy()

    return SystemMetrics(
        total_requests=total_requests,
        total_api_keys=int(key_stats.get("total") or 0),
        active_api_keys=int(key_stats.get("active") or 0),
        avg_response_time_ms=avg_response,
        requests_last_hour=last_hour,
        requests_last_24h=last_24h,
        top_endpoints=[
            EndpointUsage(endpoint=row["endpoint"], count=int(row["count"])) for row in top_rows
        ],
        status_distribution=StatusDistribution(
            success_2xx=int(buckets.get("success") or 0),
            client_error_4xx=int(buckets.get("client_error") or 0),
            server_error_5xx=int(buckets.get("server_error") or 0),
        ),
        database_pool_stats=PoolStats(size=size, num_idle=idle),
    )


def empty_snapshot() -> SystemMetrics:
    """Snapshot with every telemetry aggregate at its default."""
    size, idle = pool_occupancy()
    return SystemMetrics(
        total_requests=0,
        total_api_keys=0,
        active_api_keys=0,
        requests_last_hour=0,
        requests_last_24h=0,
        top_endpoints=[],
        status_distribution=StatusDistribution(),
        database_pool_stats=PoolStats(size=size, num_idle=idle),
    )
