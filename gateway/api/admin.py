from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import PlainTextResponse

from gateway.db import api_keys as db_api_keys
from gateway.dependencies import get_db, require_admin
from gateway.models.api_key import (
    ApiKeyCreatedResponse,
    ApiKeyListResponse,
    ApiKeyResponse,
    ChangeActiveRequest,
    CreateApiKeyRequest,
)
from gateway.models.common import MessageResponse
from gateway.models.usage import MonthlyReport, UsageStats
from gateway.services import api_key as api_key_service
from gateway.services import usage as usage_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/keys", dependencies=[Depends(require_admin)])


# ---------------------------------------------------------------------------
# Key provisioning
# ---------------------------------------------------------------------------


@router.post("", response_model=ApiKeyCreatedResponse, status_code=201)
async def create_api_key(body: CreateApiKeyRequest, conn=Depends(get_db)):
    """Create a new API key. The full key is returned only once."""
    row = await api_key_service.create_key(conn, name=body.name, rate_limit=body.rate_limit)
    return ApiKeyCreatedResponse(id=row["id"], key=row["key"], name=row["name"])


@router.get("", response_model=ApiKeyListResponse)
async def list_api_keys(conn=Depends(get_db)):
    """List all API keys (metadata only, no secrets)."""
    keys = await db_api_keys.list_api_keys(conn)
    return ApiKeyListResponse(keys=[ApiKeyResponse(**k) for k in keys])


@router.delete("/{key_id}", response_model=MessageResponse)
async def delete_api_key(key_id: str, conn=Depends(get_db)):
    """Delete an API key with its readings and telemetry."""
    try:
        await api_key_service.delete_key(conn, key_id)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return MessageResponse(message="API key deleted successfully")


@router.put("/{key_id}/active", response_model=ApiKeyResponse)
async def change_api_key_active(key_id: str, body: ChangeActiveRequest, conn=Depends(get_db)):
    """Activate or deactivate an API key."""
    row = await api_key_service.set_active(conn, key_id, body.is_active)
    return ApiKeyResponse(**row)


# ---------------------------------------------------------------------------
# Usage
# ---------------------------------------------------------------------------


@router.get("/{key}/stats", response_model=UsageStats)
async def get_usage_stats(key: str, conn=Depends(get_db)):
    """Lifetime, today and this-month request totals for a key."""
    return await usage_service.stats_for(conn, key)


@router.get("/{key}/report", response_model=MonthlyReport)
async def get_monthly_report(
    key: str,
    format: str | None = Query(None, pattern="^(json|csv)$"),
    conn=Depends(get_db),
):
    """Per-day request counts for the current month, as JSON or CSV."""
    report = await usage_service.monthly_report(conn, key)
    if format == "csv":
        return PlainTextResponse(usage_service.render_report_csv(report), media_type="text/csv")
    return report
