"""
Admin / observability endpoints
===============================

GET /api/v1/admin/health  -- simple health check
GET /api/v1/admin/pool    -- connection-pool snapshot
"""

from fastapi import APIRouter, Depends, Request

from ridehail.api.dependencies import get_database
from ridehail.api.middleware import limiter
from ridehail.api.schemas import HealthResponse, PoolStatsResponse
from ridehail.config import settings
from ridehail.infrastructure.database import Database

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/pool", response_model=PoolStatsResponse, summary="Pool statistics")
@limiter.limit(settings.api_rate_limit)
async def pool_stats(
    request: Request,
    database: Database = Depends(get_database),
):
    return PoolStatsResponse(stats=database.pool_stats())


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health():
    return HealthResponse()
