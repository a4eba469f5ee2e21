"""Real-time change events for bins, readings and alerts."""

from src.events.hub import DEFAULT_CHANNEL, ObserverHub, bin_room
from src.events.publisher import (
    ALERT_CREATED,
    ALERT_FOR_BIN,
    BIN_STATUS_CHANGED,
    BIN_UPDATED,
    READING_CREATED,
    EventPublisher,
    build_envelope,
)

__all__ = [
    "ALERT_CREATED",
    "ALERT_FOR_BIN",
    "BIN_STATUS_CHANGED",
    "BIN_UPDATED",
    "DEFAULT_CHANNEL",
    "EventPublisher",
    "ObserverHub",
    "READING_CREATED",
    "bin_room",
    "build_envelope",
]
