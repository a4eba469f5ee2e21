"""
Request and response models for the bin-monitor API.
"""

from typing import Any

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Response model for errors."""

    detail: str = Field(..., description="Error message")
    error_type: str = Field(default="error", description="Error category")
    field: str | None = Field(default=None, description="Offending field, if any")


# ── Readings ─────────────────────────────────────────────


class ReadingCreateRequest(BaseModel):
    """Sensor payload submitted by a bin."""

    bin_code: str = Field(..., min_length=1, description="Human-readable bin code")
    fill_level: int = Field(..., ge=0, le=100, description="Fill percentage, 0-100")
    waste_type: str | None = Field(default=None)
    weight: float | None = Field(default=None, description="Weight in kg")
    gas_level: float | None = Field(default=None, description="Gas concentration in ppm")
    temperature: float | None = Field(default=None, description="Temperature in °C")
    moisture: float | None = Field(default=None, description="Moisture percentage")
    battery_level: float | None = Field(default=None, description="Sensor battery percentage")


class ReadingItem(BaseModel):
    id: str
    bin_id: str
    fill_level: int
    waste_type: str | None = None
    weight: float | None = None
    gas_level: float | None = None
    temperature: float | None = None
    moisture: float | None = None
    battery_level: float | None = None
    created_at: str | None = None


class ReadingCreateResponse(BaseModel):
    reading: ReadingItem
    alerts_generated: int = Field(..., description="Alerts created by this reading")


class ReadingsResponse(BaseModel):
    readings: list[ReadingItem]
    total: int
    latency_ms: float


# ── Collections ──────────────────────────────────────────


class CollectionCreateRequest(BaseModel):
    """Report that a bin has been emptied."""

    bin_id: str = Field(..., min_length=1)
    collected_by: str | None = Field(default=None, description="Collector user id")
    notes: str | None = Field(default=None)


class CollectionItem(BaseModel):
    id: str
    bin_id: str
    collected_by: str | None = None
    fill_level_before: int
    fill_level_after: int
    notes: str | None = None
    collected_at: str | None = None


class CollectionCreateResponse(BaseModel):
    collection_log: CollectionItem
    alerts_resolved: int


class CollectionsResponse(BaseModel):
    collections: list[CollectionItem]
    total: int
    latency_ms: float


# ── Alerts ───────────────────────────────────────────────


class AlertItem(BaseModel):
    id: str
    bin_id: str
    alert_type: str
    severity: str
    message: str
    resolved: bool
    resolved_by: str | None = None
    resolved_at: str | None = None
    created_at: str


class AlertsResponse(BaseModel):
    alerts: list[AlertItem]
    total: int
    latency_ms: float


class AlertUpdateRequest(BaseModel):
    """Manual resolution (or reopening) of one alert."""

    resolved: bool = Field(default=True)
    resolved_by: str | None = Field(default=None, description="Resolving user id")


class AlertStatsResponse(BaseModel):
    total: int
    unresolved: int
    by_severity: dict[str, int] = Field(default_factory=dict)
    by_type: dict[str, int] = Field(default_factory=dict)


# ── Bins ─────────────────────────────────────────────────


class BinItem(BaseModel):
    id: str
    bin_code: str
    location: str
    latitude: float | None = None
    longitude: float | None = None
    bin_type: str
    status: str
    fill_level: int
    last_emptied: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


class BinsResponse(BaseModel):
    bins: list[BinItem]
    total: int
    latency_ms: float


class BinDetailResponse(BaseModel):
    bin: BinItem
    recent_readings: list[ReadingItem] = Field(default_factory=list)


class BinStatsResponse(BaseModel):
    total_bins: int
    avg_fill_level: int
    by_status: dict[str, int] = Field(default_factory=dict)
    fill_brackets: dict[str, int] = Field(default_factory=dict)


# ── Health ───────────────────────────────────────────────


class ComponentHealth(BaseModel):
    """Health status for an individual infrastructure component."""

    status: str = Field(..., description="healthy or unhealthy")
    latency_ms: float | None = Field(default=None)
    details: dict[str, Any] | None = Field(default=None)


class HealthResponse(BaseModel):
    """Response model for health check."""

    status: str = Field(
        ...,
        description="Overall service status: healthy, degraded, or unhealthy",
    )
    components: dict[str, ComponentHealth] = Field(default_factory=dict)
    background_queue_depth: int = Field(default=0)
    observers_connected: int = Field(default=0)
    version: str = Field(..., description="API version")
