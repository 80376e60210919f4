from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from gateway.db import readings as db_readings
from gateway.dependencies import get_db, require_api_key
from gateway.models.reading import (
    Reading,
    ReadingData,
    ReadingListResponse,
    ReadingRequest,
    ReadingResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/readings",
    response_model=ReadingResponse,
    status_code=201,
)
async def submit_reading(
    body: ReadingRequest,
    principal: dict = Depends(require_api_key),
    conn=Depends(get_db),
):
    """Store one sensor reading for the calling key."""
    now = datetime.now(timezone.utc)
    logger.info(
        "Received reading from API key %s: sensor=%s, value=%s, unit=%s",
        principal["id"],
        body.sensor_id,
        body.value,
        body.unit,
    )
    await db_readings.insert_reading(
        conn,
        api_key_id=principal["id"],
        sensor_id=body.sensor_id,
        value=body.value,
        unit=body.unit,
        created_at=now.replace(tzinfo=None),
    )
    return ReadingResponse(
        message="Reading recorded successfully",
        timestamp=now,
        data=ReadingData(sensor_id=body.sensor_id, value=body.value, unit=body.unit),
    )


@router.get("/readings", response_model=ReadingListResponse)
async def get_readings(principal: dict = Depends(require_api_key), conn=Depends(get_db)):
    """List the calling key's readings, newest first."""
    rows = await db_readings.list_readings(conn, principal["id"])
    return ReadingListResponse(count=len(rows), readings=[Reading(**r) for r in rows])
