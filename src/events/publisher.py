"""Fire-and-forget change events for real-time observers.

Every publish emits two envelopes: a global one (``room`` is null) and a
scoped one for the owning bin's room. Envelopes go to Redis pub/sub when
a client is configured, otherwise straight to a local ObserverHub.
Delivery is at-most-once: failures are logged and counted, never raised.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any

from src.alerts.schemas import Alert
from src.bins.schemas import Bin, Reading
from src.events.hub import DEFAULT_CHANNEL, ObserverHub, bin_room
from src.observability.metrics import get_metrics

logger = logging.getLogger(__name__)

READING_CREATED = "reading_created"
BIN_UPDATED = "bin_updated"
ALERT_CREATED = "alert_created"
ALERT_FOR_BIN = "alert_for_bin"
BIN_STATUS_CHANGED = "bin_status_changed"


def build_envelope(event: str, room: str | None, data: dict[str, Any]) -> dict[str, Any]:
    return {
        "event": event,
        "room": room,
        "data": data,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


class EventPublisher:
    """Publishes reading, alert and bin change events.

    Constructed once at process start and handed to the ingestion
    coordinator; there is no module-level instance.
    """

    def __init__(
        self,
        redis_client: Any | None = None,
        hub: ObserverHub | None = None,
        channel: str = DEFAULT_CHANNEL,
    ) -> None:
        self._redis = redis_client
        self._hub = hub
        self._channel = channel
        self._metrics = get_metrics()

    async def publish_reading(self, reading: Reading) -> None:
        """Global ``reading_created`` plus scoped ``bin_updated``."""
        data = reading.to_dict()
        await self._emit(READING_CREATED, None, data)
        await self._emit(BIN_UPDATED, bin_room(reading.bin_id), data)

    async def publish_alert(self, alert: Alert) -> None:
        """Global ``alert_created`` plus scoped ``alert_for_bin``."""
        data = alert.to_dict()
        await self._emit(ALERT_CREATED, None, data)
        await self._emit(ALERT_FOR_BIN, bin_room(alert.bin_id), data)

    async def publish_bin_update(self, bin_: Bin) -> None:
        """Global ``bin_status_changed`` plus scoped ``bin_updated``."""
        data = bin_.to_dict()
        await self._emit(BIN_STATUS_CHANGED, None, data)
        await self._emit(BIN_UPDATED, bin_room(bin_.bin_id), data)

    async def _emit(self, event: str, room: str | None, data: dict[str, Any]) -> bool:
        envelope = build_envelope(event, room, data)
        try:
            if self._redis is not None:
                await self._redis.publish(self._channel, json.dumps(envelope))
            elif self._hub is not None:
                await self._hub.deliver(envelope)
            else:
                logger.debug("No event sink configured, dropping %s", event)
            self._metrics.record_event(event, ok=True)
            return True
        except Exception as e:
            self._metrics.record_event(event, ok=False)
            logger.warning("Failed to publish %s (room=%s): %s", event, room, e)
            return False
