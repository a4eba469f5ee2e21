"""Alert endpoints for listing, inspecting and resolving alerts."""

import time

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from src.alerts.repository import AlertRepository
from src.alerts.schemas import VALID_ALERT_TYPES, VALID_SEVERITIES
from src.alerts.service import AlertService
from src.api.auth import verify_api_key
from src.api.dependencies import get_alert_repository, get_alert_service
from src.api.models import (
    AlertItem,
    AlertsResponse,
    AlertStatsResponse,
    AlertUpdateRequest,
    ErrorResponse,
)

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.get(
    "/alerts",
    response_model=AlertsResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Invalid API key"},
        422: {"model": ErrorResponse, "description": "Invalid filter parameter"},
    },
    summary="List alerts",
    description=(
        "List alerts with optional filtering by bin, resolution state, "
        "severity and type. Ordered by most recent first."
    ),
)
async def list_alerts(
    bin_id: str | None = Query(default=None, description="Filter by bin id"),
    resolved: bool | None = Query(default=None, description="Filter by resolution state"),
    severity: str | None = Query(
        default=None,
        description="Filter by severity: low, medium, high, critical",
    ),
    alert_type: str | None = Query(
        default=None,
        description="Filter by type: fill_warning, fill_critical, gas_detected, maintenance_needed",
    ),
    limit: int = Query(default=50, ge=1, le=500, description="Maximum alerts to return"),
    offset: int = Query(default=0, ge=0, description="Offset for pagination"),
    api_key: str = Depends(verify_api_key),
    alert_repo: AlertRepository = Depends(get_alert_repository),
) -> AlertsResponse:
    start_time = time.perf_counter()

    if severity and severity not in VALID_SEVERITIES:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=(
                f"Invalid severity {severity!r}. "
                f"Must be one of: {sorted(VALID_SEVERITIES)}"
            ),
        )

    if alert_type and alert_type not in VALID_ALERT_TYPES:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=(
                f"Invalid alert_type {alert_type!r}. "
                f"Must be one of: {sorted(VALID_ALERT_TYPES)}"
            ),
        )

    alerts = await alert_repo.get_recent(
        bin_id=bin_id,
        resolved=resolved,
        severity=severity,
        alert_type=alert_type,
        limit=limit,
        offset=offset,
    )
    items = [AlertItem.model_validate(a.to_dict()) for a in alerts]

    latency_ms = (time.perf_counter() - start_time) * 1000

    logger.info(
        "Alerts listed",
        total=len(items),
        severity=severity,
        alert_type=alert_type,
        latency_ms=round(latency_ms, 2),
    )

    return AlertsResponse(
        alerts=items,
        total=len(items),
        latency_ms=round(latency_ms, 2),
    )


@router.get(
    "/alerts/stats/overview",
    response_model=AlertStatsResponse,
    summary="Alert statistics",
    description="Total and unresolved counts plus breakdowns by severity and type.",
)
async def alert_stats(
    api_key: str = Depends(verify_api_key),
    alert_repo: AlertRepository = Depends(get_alert_repository),
) -> AlertStatsResponse:
    stats = await alert_repo.get_stats()
    return AlertStatsResponse(**stats)


@router.get(
    "/alerts/{alert_id}",
    response_model=AlertItem,
    responses={404: {"model": ErrorResponse, "description": "Alert not found"}},
    summary="Get alert",
)
async def get_alert(
    alert_id: str,
    api_key: str = Depends(verify_api_key),
    alert_repo: AlertRepository = Depends(get_alert_repository),
) -> AlertItem:
    alert = await alert_repo.get_by_id(alert_id)
    if alert is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Alert not found: {alert_id}",
        )
    return AlertItem.model_validate(alert.to_dict())


@router.patch(
    "/alerts/{alert_id}",
    response_model=AlertItem,
    responses={404: {"model": ErrorResponse, "description": "Alert not found"}},
    summary="Resolve or reopen an alert",
    description="Setting ``resolved=false`` clears resolved_at and resolved_by.",
)
async def update_alert(
    alert_id: str,
    request: AlertUpdateRequest,
    api_key: str = Depends(verify_api_key),
    alert_service: AlertService = Depends(get_alert_service),
) -> AlertItem:
    alert = await alert_service.resolve_one(
        alert_id,
        resolved=request.resolved,
        resolved_by=request.resolved_by,
    )
    logger.info("Alert updated", alert_id=alert_id, resolved=alert.resolved)
    return AlertItem.model_validate(alert.to_dict())


@router.delete(
    "/alerts/{alert_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse, "description": "Alert not found"}},
    summary="Delete an alert",
    description="Notifications sent for the alert are kept with alert_id cleared.",
)
async def delete_alert(
    alert_id: str,
    api_key: str = Depends(verify_api_key),
    alert_service: AlertService = Depends(get_alert_service),
) -> Response:
    await alert_service.delete_one(alert_id)
    logger.info("Alert deleted", alert_id=alert_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
