"""Bin endpoints: listing, detail with recent readings, and stats."""

import time

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status

from src.api.auth import verify_api_key
from src.api.dependencies import get_bin_repository, get_reading_repository
from src.api.models import (
    BinDetailResponse,
    BinItem,
    BinsResponse,
    BinStatsResponse,
    ErrorResponse,
    ReadingItem,
)
from src.bins.repository import BinRepository, ReadingRepository
from src.bins.schemas import VALID_BIN_STATUSES, VALID_BIN_TYPES

logger = structlog.get_logger(__name__)
router = APIRouter()

RECENT_READINGS_LIMIT = 10


@router.get(
    "/bins",
    response_model=BinsResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Invalid API key"},
        422: {"model": ErrorResponse, "description": "Invalid filter parameter"},
    },
    summary="List bins",
    description="List bins, optionally filtered by status and waste category.",
)
async def list_bins(
    status_filter: str | None = Query(default=None, alias="status"),
    bin_type: str | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    api_key: str = Depends(verify_api_key),
    bin_repo: BinRepository = Depends(get_bin_repository),
) -> BinsResponse:
    start_time = time.perf_counter()

    if status_filter and status_filter not in VALID_BIN_STATUSES:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Invalid status {status_filter!r}. Must be one of: {sorted(VALID_BIN_STATUSES)}",
        )
    if bin_type and bin_type not in VALID_BIN_TYPES:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Invalid bin_type {bin_type!r}. Must be one of: {sorted(VALID_BIN_TYPES)}",
        )

    bins = await bin_repo.get_all(
        status=status_filter,
        bin_type=bin_type,
        limit=limit,
        offset=offset,
    )
    items = [BinItem.model_validate(b.to_dict()) for b in bins]

    latency_ms = (time.perf_counter() - start_time) * 1000
    return BinsResponse(bins=items, total=len(items), latency_ms=round(latency_ms, 2))


@router.get(
    "/bins/stats/overview",
    response_model=BinStatsResponse,
    summary="Bin statistics",
    description="Totals, average fill, status counts and fill-level brackets.",
)
async def bin_stats(
    api_key: str = Depends(verify_api_key),
    bin_repo: BinRepository = Depends(get_bin_repository),
) -> BinStatsResponse:
    stats = await bin_repo.get_stats()
    return BinStatsResponse(**stats)


@router.get(
    "/bins/{bin_id}",
    response_model=BinDetailResponse,
    responses={404: {"model": ErrorResponse, "description": "Bin not found"}},
    summary="Get bin",
    description="Bin detail with its most recent readings.",
)
async def get_bin(
    bin_id: str,
    api_key: str = Depends(verify_api_key),
    bin_repo: BinRepository = Depends(get_bin_repository),
    reading_repo: ReadingRepository = Depends(get_reading_repository),
) -> BinDetailResponse:
    bin_ = await bin_repo.get_by_id(bin_id)
    if bin_ is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Bin not found: {bin_id}",
        )

    readings = await reading_repo.get_recent(bin_id=bin_id, limit=RECENT_READINGS_LIMIT)
    return BinDetailResponse(
        bin=BinItem.model_validate(bin_.to_dict()),
        recent_readings=[ReadingItem.model_validate(r.to_dict()) for r in readings],
    )
