"""Reading endpoints: device submission and reading queries."""

import time

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status

from src.api.auth import verify_api_key
from src.api.dependencies import get_ingestion_coordinator, get_reading_repository
from src.api.models import (
    ErrorResponse,
    ReadingCreateRequest,
    ReadingCreateResponse,
    ReadingItem,
    ReadingsResponse,
)
from src.bins.repository import ReadingRepository
from src.services.ingestion_service import IngestionCoordinator
from src.services.schemas import ReadingSubmission

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.post(
    "/readings",
    response_model=ReadingCreateResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        401: {"model": ErrorResponse, "description": "Invalid API key"},
        404: {"model": ErrorResponse, "description": "Unknown bin code"},
        422: {"model": ErrorResponse, "description": "Invalid reading"},
        503: {"model": ErrorResponse, "description": "Reading could not be stored"},
    },
    summary="Submit a sensor reading",
    description=(
        "Persist a reading, update the bin's fill level, evaluate thresholds "
        "and raise alerts. Events and notifications are sent asynchronously."
    ),
)
async def submit_reading(
    request: ReadingCreateRequest,
    api_key: str = Depends(verify_api_key),
    coordinator: IngestionCoordinator = Depends(get_ingestion_coordinator),
) -> ReadingCreateResponse:
    submission = ReadingSubmission(**request.model_dump())
    result = await coordinator.submit_reading(submission)
    return ReadingCreateResponse.model_validate(result.to_dict())


@router.get(
    "/readings",
    response_model=ReadingsResponse,
    responses={401: {"model": ErrorResponse, "description": "Invalid API key"}},
    summary="List readings",
    description="List readings, optionally for one bin. Most recent first.",
)
async def list_readings(
    bin_id: str | None = Query(default=None, description="Filter by bin id"),
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    api_key: str = Depends(verify_api_key),
    reading_repo: ReadingRepository = Depends(get_reading_repository),
) -> ReadingsResponse:
    start_time = time.perf_counter()

    readings = await reading_repo.get_recent(bin_id=bin_id, limit=limit, offset=offset)
    items = [ReadingItem.model_validate(r.to_dict()) for r in readings]

    latency_ms = (time.perf_counter() - start_time) * 1000
    logger.info("Readings listed", total=len(items), bin_id=bin_id)

    return ReadingsResponse(
        readings=items,
        total=len(items),
        latency_ms=round(latency_ms, 2),
    )


@router.get(
    "/readings/{reading_id}",
    response_model=ReadingItem,
    responses={404: {"model": ErrorResponse, "description": "Reading not found"}},
    summary="Get reading",
)
async def get_reading(
    reading_id: str,
    api_key: str = Depends(verify_api_key),
    reading_repo: ReadingRepository = Depends(get_reading_repository),
) -> ReadingItem:
    reading = await reading_repo.get_by_id(reading_id)
    if reading is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Reading not found: {reading_id}",
        )
    return ReadingItem.model_validate(reading.to_dict())
