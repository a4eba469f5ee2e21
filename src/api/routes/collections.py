"""Collection endpoints: logging an emptied bin and collection history."""

import time

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status

from src.api.auth import verify_api_key
from src.api.dependencies import get_collection_repository, get_ingestion_coordinator
from src.api.models import (
    CollectionCreateRequest,
    CollectionCreateResponse,
    CollectionItem,
    CollectionsResponse,
    ErrorResponse,
)
from src.bins.repository import CollectionLogRepository
from src.services.ingestion_service import IngestionCoordinator
from src.services.schemas import CollectionRequest

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.post(
    "/collections",
    response_model=CollectionCreateResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        401: {"model": ErrorResponse, "description": "Invalid API key"},
        404: {"model": ErrorResponse, "description": "Unknown bin or collector"},
        422: {"model": ErrorResponse, "description": "Invalid request"},
        503: {"model": ErrorResponse, "description": "Collection could not be stored"},
    },
    summary="Log a collection",
    description=(
        "Record that a bin was emptied: logs the prior fill, resets the bin "
        "to 0 and resolves its open alerts."
    ),
)
async def log_collection(
    request: CollectionCreateRequest,
    api_key: str = Depends(verify_api_key),
    coordinator: IngestionCoordinator = Depends(get_ingestion_coordinator),
) -> CollectionCreateResponse:
    result = await coordinator.log_collection(CollectionRequest(**request.model_dump()))
    return CollectionCreateResponse.model_validate(result.to_dict())


@router.get(
    "/collections",
    response_model=CollectionsResponse,
    responses={401: {"model": ErrorResponse, "description": "Invalid API key"}},
    summary="List collections",
    description="List collection logs filtered by bin and collector. Most recent first.",
)
async def list_collections(
    bin_id: str | None = Query(default=None),
    collected_by: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    api_key: str = Depends(verify_api_key),
    collection_repo: CollectionLogRepository = Depends(get_collection_repository),
) -> CollectionsResponse:
    start_time = time.perf_counter()

    logs = await collection_repo.get_recent(
        bin_id=bin_id,
        collected_by=collected_by,
        limit=limit,
        offset=offset,
    )
    items = [CollectionItem.model_validate(log.to_dict()) for log in logs]

    latency_ms = (time.perf_counter() - start_time) * 1000
    return CollectionsResponse(
        collections=items,
        total=len(items),
        latency_ms=round(latency_ms, 2),
    )


@router.get(
    "/collections/{log_id}",
    response_model=CollectionItem,
    responses={404: {"model": ErrorResponse, "description": "Collection not found"}},
    summary="Get collection",
)
async def get_collection(
    log_id: str,
    api_key: str = Depends(verify_api_key),
    collection_repo: CollectionLogRepository = Depends(get_collection_repository),
) -> CollectionItem:
    log = await collection_repo.get_by_id(log_id)
    if log is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Collection not found: {log_id}",
        )
    return CollectionItem.model_validate(log.to_dict())
