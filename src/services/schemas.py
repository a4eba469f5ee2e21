"""Request and result types for the ingestion and collection workflows.

Requests validate on construction and raise InvalidInputError, so a
malformed submission is rejected before anything is written.
"""

from dataclasses import dataclass, field
from typing import Any

from src.alerts.schemas import Alert
from src.bins.schemas import Bin, CollectionLog, Reading
from src.services.errors import InvalidInputError

_OPTIONAL_MEASUREMENTS = (
    "weight",
    "gas_level",
    "temperature",
    "moisture",
    "battery_level",
)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _require_text(value: Any, name: str) -> None:
    if not isinstance(value, str) or not value.strip():
        raise InvalidInputError(f"{name} is required", field=name)


@dataclass
class ReadingSubmission:
    """One sensor payload as submitted by a device."""

    bin_code: str
    fill_level: int
    waste_type: str | None = None
    weight: float | None = None
    gas_level: float | None = None
    temperature: float | None = None
    moisture: float | None = None
    battery_level: float | None = None

    def __post_init__(self) -> None:
        _require_text(self.bin_code, "bin_code")

        if self.fill_level is None:
            raise InvalidInputError("fill_level is required", field="fill_level")
        if not isinstance(self.fill_level, int) or isinstance(self.fill_level, bool):
            raise InvalidInputError(
                f"fill_level must be an integer, got {self.fill_level!r}",
                field="fill_level",
            )
        if not 0 <= self.fill_level <= 100:
            raise InvalidInputError(
                f"fill_level must be between 0 and 100, got {self.fill_level}",
                field="fill_level",
            )

        for name in _OPTIONAL_MEASUREMENTS:
            value = getattr(self, name)
            if value is not None and not _is_number(value):
                raise InvalidInputError(
                    f"{name} must be a number, got {value!r}", field=name,
                )

        if self.waste_type is not None and not isinstance(self.waste_type, str):
            raise InvalidInputError("waste_type must be a string", field="waste_type")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ReadingSubmission":
        """Build from a decoded JSON payload, ignoring unknown keys."""
        if not isinstance(data, dict):
            raise InvalidInputError("reading payload must be an object")
        return cls(
            bin_code=data.get("bin_code"),
            fill_level=data.get("fill_level"),
            waste_type=data.get("waste_type"),
            **{name: data.get(name) for name in _OPTIONAL_MEASUREMENTS},
        )

    def to_reading(self, bin_id: str) -> Reading:
        return Reading(
            bin_id=bin_id,
            fill_level=self.fill_level,
            waste_type=self.waste_type,
            weight=self.weight,
            gas_level=self.gas_level,
            temperature=self.temperature,
            moisture=self.moisture,
            battery_level=self.battery_level,
        )


@dataclass
class CollectionRequest:
    """A report that a bin has been emptied."""

    bin_id: str
    collected_by: str | None = None
    notes: str | None = None

    def __post_init__(self) -> None:
        _require_text(self.bin_id, "bin_id")
        if self.collected_by is not None and not isinstance(self.collected_by, str):
            raise InvalidInputError("collected_by must be a string", field="collected_by")
        if self.notes is not None and not isinstance(self.notes, str):
            raise InvalidInputError("notes must be a string", field="notes")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CollectionRequest":
        if not isinstance(data, dict):
            raise InvalidInputError("collection payload must be an object")
        return cls(
            bin_id=data.get("bin_id"),
            collected_by=data.get("collected_by"),
            notes=data.get("notes"),
        )


@dataclass
class IngestionResult:
    """Outcome of a reading submission."""

    reading: Reading
    alerts: list[Alert] = field(default_factory=list)

    @property
    def alerts_generated(self) -> int:
        return len(self.alerts)

    def to_dict(self) -> dict[str, Any]:
        return {
            "reading": self.reading.to_dict(),
            "alerts_generated": self.alerts_generated,
        }


@dataclass
class CollectionResult:
    """Outcome of a collection event."""

    collection_log: CollectionLog
    alerts_resolved: int = 0
    bin: Bin | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "collection_log": self.collection_log.to_dict(),
            "alerts_resolved": self.alerts_resolved,
        }
