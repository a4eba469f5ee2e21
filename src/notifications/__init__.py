"""Notification delivery for alerts.

Components:
- Notification: Dataclass mapping to the notifications table
- NotificationRepository: pending insert and status transitions
- NotificationConfig: Pydantic settings for routing, timeouts and providers
- DeliveryTransport / WebhookTransport / LoggingTransport: Channel transports
- CircuitBreaker: Resilience wrapper for transports
- NotificationDispatcher: record → deliver → finalize, plus recipient fan-out
"""

from src.notifications.channels import (
    CircuitBreaker,
    CircuitState,
    DeliveryTransport,
    LoggingTransport,
    WebhookTransport,
    build_transports,
)
from src.notifications.config import NotificationConfig
from src.notifications.dispatcher import NotificationDispatcher, plan_deliveries
from src.notifications.repository import NotificationRepository
from src.notifications.schemas import VALID_CHANNELS, VALID_STATUSES, Notification

__all__ = [
    "CircuitBreaker",
    "CircuitState",
    "DeliveryTransport",
    "LoggingTransport",
    "Notification",
    "NotificationConfig",
    "NotificationDispatcher",
    "NotificationRepository",
    "VALID_CHANNELS",
    "VALID_STATUSES",
    "WebhookTransport",
    "build_transports",
    "plan_deliveries",
]
