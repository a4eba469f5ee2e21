"""Schema definitions for alert records.

Maps 1:1 to the ``alerts`` table. Each alert represents one threshold
breach on one reading: a fill level warning, a critical fill, a gas
detection, or a maintenance condition (temperature or battery).
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

AlertType = Literal[
    "fill_warning",
    "fill_critical",
    "gas_detected",
    "maintenance_needed",
]

VALID_ALERT_TYPES: frozenset[str] = frozenset({
    "fill_warning",
    "fill_critical",
    "gas_detected",
    "maintenance_needed",
})

AlertSeverity = Literal["low", "medium", "high", "critical"]

VALID_SEVERITIES: frozenset[str] = frozenset({
    "low",
    "medium",
    "high",
    "critical",
})


def _validate_kind_and_severity(alert_type: str, severity: str) -> None:
    if alert_type not in VALID_ALERT_TYPES:
        raise ValueError(
            f"Invalid alert_type {alert_type!r}. "
            f"Must be one of: {sorted(VALID_ALERT_TYPES)}"
        )
    if severity not in VALID_SEVERITIES:
        raise ValueError(
            f"Invalid severity {severity!r}. "
            f"Must be one of: {sorted(VALID_SEVERITIES)}"
        )


@dataclass(frozen=True)
class CandidateAlert:
    """An alert the threshold policy wants raised, before persistence."""

    alert_type: str
    severity: str
    message: str

    def __post_init__(self) -> None:
        _validate_kind_and_severity(self.alert_type, self.severity)


@dataclass
class Alert:
    """A persisted alert record from the alerts table.

    Attributes:
        alert_id: UUID4 identifier.
        bin_id: Bin whose reading breached a threshold.
        alert_type: What condition was detected.
        severity: Urgency level (low, medium, high, critical).
        message: Human-readable description of the condition.
        resolved: Whether the condition has been dealt with.
        resolved_by: User credited with the resolution, if any.
        resolved_at: When the alert was resolved.
        created_at: When the alert was generated.
    """

    bin_id: str
    alert_type: str
    severity: str
    message: str
    alert_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    resolved: bool = False
    resolved_by: str | None = None
    resolved_at: datetime | None = None
    created_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    def __post_init__(self) -> None:
        _validate_kind_and_severity(self.alert_type, self.severity)
        if not self.resolved and (
            self.resolved_at is not None or self.resolved_by is not None
        ):
            raise ValueError(
                "An open alert cannot carry resolved_at or resolved_by"
            )

    @classmethod
    def from_candidate(cls, bin_id: str, candidate: CandidateAlert) -> "Alert":
        """Build an open alert for ``bin_id`` from a policy candidate."""
        return cls(
            bin_id=bin_id,
            alert_type=candidate.alert_type,
            severity=candidate.severity,
            message=candidate.message,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            "id": self.alert_id,
            "bin_id": self.bin_id,
            "alert_type": self.alert_type,
            "severity": self.severity,
            "message": self.message,
            "resolved": self.resolved,
            "resolved_by": self.resolved_by,
            "resolved_at": (
                self.resolved_at.isoformat() if self.resolved_at else None
            ),
            "created_at": self.created_at.isoformat(),
        }
