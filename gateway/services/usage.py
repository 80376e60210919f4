"""Per-key usage statistics and monthly reports.

Calendar boundaries (today, this month) are computed in UTC, the time zone
the telemetry log is stored in.
"""

from __future__ import annotations

import csv
import io
import logging
from datetime import datetime, timezone

import aiomysql

from gateway.db import api_keys as db_api_keys
from gateway.db import requests as db_requests
from gateway.db.pool import with_timeout
from gateway.errors import NotFoundError, StorageError
from gateway.models.usage import DailyUsage, MonthlyReport, UsageStats

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _day_start(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def _month_start(now: datetime) -> datetime:
    return _day_start(now).replace(day=1)


async def stats_for(conn, key: str, now: datetime | None = None) -> UsageStats:
    """Lifetime, daily and monthly request totals for one key.

    Raises:
        NotFoundError: If the key does not exist.
        StorageError: If the query fails or times out.
    """
    now = now or _utcnow()
    try:
        row = await with_timeout(
            db_requests.usage_summary(
                conn, key, day_start=_day_start(now), month_start=_month_start(now)
            )
        )
    except aiomysql.Error as exc:
        logger.exception("Failed to get usage stats")
        raise StorageError("Failed to retrieve usage statistics") from exc

    if row is None:
        raise NotFoundError("API key not found")

    return UsageStats(
        api_key_name=row["name"],
        total_requests=int(row["total_requests"]),
        requests_today=int(row["requests_today"]),
        requests_this_month=int(row["requests_this_month"]),
        last_used=row["last_used"],
    )


async def monthly_report(conn, key: str, now: datetime | None = None) -> MonthlyReport:
    """Per-day request counts from the first of the current month through now.

    Only days with at least one request appear in the breakdown, oldest
    first. ``total_requests`` is always the sum of the breakdown.

    Raises:
        NotFoundError: If the key does not exist.
        StorageError: If a query fails or times out.
    """
    now = now or _utcnow()
    try:
        api_key = await with_timeout(db_api_keys.get_api_key_by_key(conn, key))
    except aiomysql.Error as exc:
        logger.exception("DB error validating key for report")
        raise StorageError("Failed to generate report") from exc

    if api_key is None:
        raise NotFoundError("API key not found")

    try:
        rows = await with_timeout(db_requests.daily_counts(conn, api_key["id"], _month_start(now)))
    except aiomysql.Error as exc:
        logger.exception("Failed to get monthly report data")
        raise StorageError("Failed to generate report") from exc

    breakdown = [DailyUsage(date=str(row["date"]), requests=int(row["requests"])) for row in rows]

    return MonthlyReport(
        api_key_name=api_key["name"],
        month=f"{now.month:02d}",
        year=now.year,
        total_requests=sum(day.requests for day in breakdown),
        daily_breakdown=breakdown,
    )


def render_report_csv(report: MonthlyReport) -> str:
    """Render a report as ``Date,Requests`` CSV, one line per day."""
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(["Date", "Requests"])
    for day in report.daily_breakdown:
        writer.writerow([day.date, day.requests])
    return buf.getvalue()
