from __future__ import annotations

import logging

from fastapi import APIRouter

from gateway.db.pool import get_connection
from gateway.models.metrics import SystemMetrics
from gateway.services import metrics as metrics_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/metrics", response_model=SystemMetrics)
async def get_metrics():
    """System-wide traffic, key and connection-pool metrics.

    Always answers 200; sub-aggregates that cannot be computed, including
    all of them when no connection is available, are reported as zero.
    """
    try:
        async with get_connection() as conn:
            return await metrics_service.snapshot(conn)
    except Exception:
        logger.warning("No storage connection for metrics, reporting defaults", exc_info=True)
        return metrics_service.empty_snapshot()
