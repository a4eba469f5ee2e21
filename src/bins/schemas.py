"""Schema definitions for bins, sensor readings and collection logs.

Maps 1:1 to the ``bins``, ``sensor_readings`` and ``collection_logs``
tables. Readings and collection logs are append-only; a bin's
``fill_level`` only drops to 0 through a collection event.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

BinType = Literal["general", "organic", "recyclable", "hazardous"]

VALID_BIN_TYPES: frozenset[str] = frozenset({
    "general",
    "organic",
    "recyclable",
    "hazardous",
})

BinStatus = Literal["active", "maintenance", "decommissioned"]

VALID_BIN_STATUSES: frozenset[str] = frozenset({
    "active",
    "maintenance",
    "decommissioned",
})


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def validate_fill_level(value: int) -> None:
    """Raise ValueError unless ``value`` is an int in [0, 100]."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"fill_level must be an integer, got {value!r}")
    if not 0 <= value <= 100:
        raise ValueError(f"fill_level must be in [0, 100], got {value}")


@dataclass
class Bin:
    """A physical waste receptacle.

    Attributes:
        bin_id: UUID4 identifier.
        bin_code: Unique human-readable code (e.g. ``BIN-001``).
        location: Free-text location descriptor.
        bin_type: Waste category.
        status: Operational status.
        fill_level: Current fill percentage, 0-100.
        latitude / longitude: Optional coordinates.
        last_emptied: When the last collection happened.
    """

    bin_code: str
    location: str
    bin_type: str = "general"
    status: str = "active"
    fill_level: int = 0
    bin_id: str = field(default_factory=_new_id)
    latitude: float | None = None
    longitude: float | None = None
    last_emptied: datetime | None = None
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    def __post_init__(self) -> None:
        if self.bin_type not in VALID_BIN_TYPES:
            raise ValueError(
                f"Invalid bin_type {self.bin_type!r}. "
                f"Must be one of: {sorted(VALID_BIN_TYPES)}"
            )
        if self.status not in VALID_BIN_STATUSES:
            raise ValueError(
                f"Invalid status {self.status!r}. "
                f"Must be one of: {sorted(VALID_BIN_STATUSES)}"
            )
        validate_fill_level(self.fill_level)

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            "id": self.bin_id,
            "bin_code": self.bin_code,
            "location": self.location,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "bin_type": self.bin_type,
            "status": self.status,
            "fill_level": self.fill_level,
            "last_emptied": _iso(self.last_emptied),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


@dataclass
class Reading:
    """One telemetry sample from a bin's sensor suite.

    Optional measurements are ``None`` when the device did not report
    them; absence is never treated as a threshold breach.
    """

    bin_id: str
    fill_level: int
    reading_id: str = field(default_factory=_new_id)
    waste_type: str | None = None
    weight: float | None = None
    gas_level: float | None = None
    temperature: float | None = None
    moisture: float | None = None
    battery_level: float | None = None
    created_at: datetime = field(default_factory=_now)

    def __post_init__(self) -> None:
        validate_fill_level(self.fill_level)

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            "id": self.reading_id,
            "bin_id": self.bin_id,
            "fill_level": self.fill_level,
            "waste_type": self.waste_type,
            "weight": self.weight,
            "gas_level": self.gas_level,
            "temperature": self.temperature,
            "moisture": self.moisture,
            "battery_level": self.battery_level,
            "created_at": _iso(self.created_at),
        }


@dataclass
class CollectionLog:
    """A single emptying of a bin. Created exactly once per collection."""

    bin_id: str
    fill_level_before: int
    fill_level_after: int = 0
    log_id: str = field(default_factory=_new_id)
    collected_by: str | None = None
    notes: str | None = None
    collected_at: datetime = field(default_factory=_now)

    def __post_init__(self) -> None:
        validate_fill_level(self.fill_level_before)
        if self.fill_level_after != 0:
            raise ValueError(
                f"fill_level_after must be 0, got {self.fill_level_after}"
            )

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            "id": self.log_id,
            "bin_id": self.bin_id,
            "collected_by": self.collected_by,
            "fill_level_before": self.fill_level_before,
            "fill_level_after": self.fill_level_after,
            "notes": self.notes,
            "collected_at": _iso(self.collected_at),
        }
