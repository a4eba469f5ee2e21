"""Notification dispatcher: durable record, delivery, status update.

Every delivery is bracketed by a ``pending`` insert and a ``sent`` or
``failed`` update. Transport failures and timeouts only change the
stored status; they never propagate to the caller. Deliveries run
concurrently under a semaphore so a burst of recipients cannot open an
unbounded number of outbound calls.

Pattern: Orchestrator (like AlertService), delegates to stateless transports.
"""

import asyncio
import logging
import time
from dataclasses import replace
from datetime import datetime, timezone

from src.alerts.schemas import Alert
from src.notifications.channels import CircuitBreaker, DeliveryTransport
from src.notifications.config import NotificationConfig
from src.notifications.repository import NotificationRepository
from src.notifications.schemas import Notification
from src.observability.metrics import get_metrics
from src.services.errors import StorageError
from src.users.repository import UserRepository
from src.users.schemas import User

logger = logging.getLogger(__name__)


def recipient_address(user: User, channel: str) -> str | None:
    """Channel-specific address for a user: email, phone or user id."""
    if channel == "email":
        return user.email
    if channel == "sms":
        return user.phone
    return user.user_id


def plan_deliveries(
    users: list[User],
    alert: Alert,
    sms_severities: list[str] | frozenset[str] = frozenset({"critical"}),
) -> list[tuple[User, str]]:
    """Apply the recipient policy to an alert.

    Every user gets an email; users with a phone also get an SMS when the
    alert's severity is in ``sms_severities``. Push is never planned.

    Returns:
        (user, channel) pairs in user order, email before sms.
    """
    deliveries: list[tuple[User, str]] = []
    for user in users:
        if user.email:
            deliveries.append((user, "email"))
        if user.phone and alert.severity in sms_severities:
            deliveries.append((user, "sms"))
    return deliveries


class NotificationDispatcher:
    """Orchestrates notification delivery across channel transports.

    Wraps each transport in a CircuitBreaker. No retry: a failed
    delivery stays ``failed``.
    """

    def __init__(
        self,
        notification_repo: NotificationRepository,
        transports: dict[str, DeliveryTransport],
        user_repo: UserRepository | None = None,
        config: NotificationConfig | None = None,
    ) -> None:
        self._notification_repo = notification_repo
        self._user_repo = user_repo
        self._config = config or NotificationConfig()
        self._semaphore = asyncio.Semaphore(self._config.max_concurrent_deliveries)
        self._metrics = get_metrics()

        # Wrap each transport in a circuit breaker
        self._transports: dict[str, CircuitBreaker] = {}
        for channel, transport in transports.items():
            if isinstance(transport, CircuitBreaker):
                self._transports[channel] = transport
            else:
                self._transports[channel] = CircuitBreaker(
                    transport=transport,
                    failure_threshold=self._config.circuit_breaker_threshold,
                    recovery_timeout=self._config.circuit_breaker_recovery_seconds,
                )

    @property
    def transports(self) -> dict[str, CircuitBreaker]:
        """Access wrapped transports (for inspection/testing)."""
        return self._transports

    async def notify(
        self,
        user: User,
        alert: Alert | None,
        channel: str,
        message: str | None = None,
    ) -> Notification:
        """Record, deliver and finalize one notification.

        Args:
            user: Recipient.
            alert: Related alert, if any.
            channel: sms, email or push.
            message: Body; defaults to the alert's message.

        Returns:
            The notification in its final ``sent`` or ``failed`` state.

        Raises:
            StorageError: If the pending record cannot be written. No
                delivery is attempted in that case.
        """
        if message is None:
            message = alert.message if alert is not None else ""

        notification = Notification(
            user_id=user.user_id,
            alert_id=alert.alert_id if alert is not None else None,
            channel=channel,
            message=message,
        )
        try:
            notification = await self._notification_repo.create_pending(notification)
        except Exception as e:
            logger.error(
                "Failed to record %s notification for user %s: %s",
                channel, user.user_id, e,
            )
            self._metrics.record_notification(channel, "not_recorded")
            raise StorageError(
                f"Could not record {channel} notification for user {user.user_id}"
            ) from e

        start = time.perf_counter()
        delivered = await self._deliver(user, channel, message)
        latency = time.perf_counter() - start

        status = "sent" if delivered else "failed"
        self._metrics.record_notification(channel, status, latency)

        notification = replace(
            notification,
            status=status,
            sent_at=datetime.now(timezone.utc) if delivered else None,
        )
        try:
            updated = await self._notification_repo.mark_status(
                notification.notification_id, status,
            )
            if updated is not None:
                notification = updated
        except Exception as e:
            logger.error(
                "Failed to update notification %s to %s: %s",
                notification.notification_id, status, e,
            )

        logger.info(
            "%s notification %s -> %s (user: %s)",
            channel, notification.notification_id, status, user.user_id,
        )
        return notification

    async def _deliver(self, user: User, channel: str, message: str) -> bool:
        transport = self._transports.get(channel)
        if transport is None:
            logger.warning("No transport configured for channel %s", channel)
            return False

        address = recipient_address(user, channel)
        if not address:
            logger.warning(
                "User %s has no %s address", user.user_id, channel,
            )
            return False

        async with self._semaphore:
            try:
                return await asyncio.wait_for(
                    transport.send(address, message),
                    timeout=self._config.delivery_timeout_seconds,
                )
            except asyncio.TimeoutError:
                transport.record_failure()
                logger.warning(
                    "%s delivery to user %s timed out after %.1fs",
                    channel, user.user_id, self._config.delivery_timeout_seconds,
                )
                return False
            except Exception as e:
                transport.record_failure()
                logger.warning(
                    "%s delivery to user %s raised: %s", channel, user.user_id, e,
                )
                return False

    async def notify_recipients(self, alert: Alert) -> list[Notification]:
        """Fan an alert out to every eligible recipient.

        Recipients are active users in ``recipient_roles``. Each delivery
        is independent: one failure never blocks another.

        Returns:
            Notifications that were recorded (sent or failed).
        """
        if self._user_repo is None:
            logger.warning("No user repository, skipping fan-out for %s", alert.alert_id)
            return []

        try:
            users = await self._user_repo.get_active_by_roles(
                self._config.recipient_roles,
            )
        except Exception as e:
            logger.error("Failed to load recipients for alert %s: %s", alert.alert_id, e)
            return []

        deliveries = plan_deliveries(users, alert, self._config.sms_severities)
        if not deliveries:
            return []

        results = await asyncio.gather(
            *(self.notify(user, alert, channel) for user, channel in deliveries),
            return_exceptions=True,
        )

        notifications: list[Notification] = []
        for (user, channel), result in zip(deliveries, results):
            if isinstance(result, BaseException):
                logger.error(
                    "Notification to user %s via %s failed: %s",
                    user.user_id, channel, result,
                )
                continue
            notifications.append(result)

        sent = sum(1 for n in notifications if n.status == "sent")
        logger.info(
            "Alert %s fan-out: %d planned, %d recorded, %d sent",
            alert.alert_id, len(deliveries), len(notifications), sent,
        )
        return notifications
