"""Delivery transports for notification channels.

Provides an ABC for delivery transports plus two implementations: an
HTTP webhook transport for a real provider gateway and a logging
transport used when no provider is configured. A CircuitBreaker
decorator wraps any transport so a dead provider fails fast.

Pattern: Decorator (CircuitBreaker wraps any DeliveryTransport).
"""

import enum
import logging
import time
from abc import ABC, abstractmethod

import httpx

from src.notifications.config import NotificationConfig
from src.services.errors import DeliveryError

logger = logging.getLogger(__name__)


class DeliveryTransport(ABC):
    """Abstract base for channel-specific delivery transports.

    ``send`` reports ordinary delivery failure by returning False; it
    only raises for programmer error.
    """

    @property
    @abstractmethod
    def channel(self) -> str:
        """Channel this transport serves ('email', 'sms' or 'push')."""

    @abstractmethod
    async def send(self, recipient: str, message: str) -> bool:
        """Deliver ``message`` to ``recipient``.

        Args:
            recipient: Channel-specific address (email, phone, user id).
            message: Message body.

        Returns:
            True if the provider accepted the message, False otherwise.
        """


class LoggingTransport(DeliveryTransport):
    """Logs the message and reports success. Stand-in for a provider."""

    def __init__(self, channel: str) -> None:
        self._channel = channel

    @property
    def channel(self) -> str:
        return self._channel

    async def send(self, recipient: str, message: str) -> bool:
        logger.info(
            "Delivering %s notification to %s: %s",
            self._channel, recipient, message,
        )
        return True


class WebhookTransport(DeliveryTransport):
    """Delivers messages as JSON POST to a provider gateway.

    Creates a new ``httpx.AsyncClient`` per call (short-lived, no pooling)
    matching the project's HTTP pattern.
    """

    def __init__(
        self,
        channel: str,
        url: str,
        headers: dict[str, str] | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._channel = channel
        self._url = url
        self._headers = headers or {}
        self._timeout = timeout

    @property
    def channel(self) -> str:
        return self._channel

    def _build_payload(self, recipient: str, message: str) -> dict:
        return {
            "channel": self._channel,
            "to": recipient,
            "message": message,
        }

    async def _post(self, payload: dict) -> None:
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            resp = await client.post(
                self._url,
                json=payload,
                headers=self._headers,
            )
            if not resp.is_success:
                raise DeliveryError(
                    f"{self._channel} gateway returned {resp.status_code}"
                )

    async def send(self, recipient: str, message: str) -> bool:
        try:
            await self._post(self._build_payload(recipient, message))
            return True
        except httpx.TimeoutException:
            logger.warning(
                "%s gateway %s timed out for %s",
                self._channel, self._url, recipient,
            )
            return False
        except (DeliveryError, httpx.HTTPError) as e:
            logger.warning(
                "%s gateway %s failed for %s: %s",
                self._channel, self._url, recipient, e,
            )
            return False


class CircuitState(enum.Enum):
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker(DeliveryTransport):
    """Wraps a DeliveryTransport with circuit breaker protection.

    State machine: CLOSED → OPEN → HALF_OPEN → CLOSED.

    - CLOSED: All requests pass through. Consecutive failures tracked.
    - OPEN: Requests rejected immediately. After recovery_timeout, moves
      to HALF_OPEN.
    - HALF_OPEN: One trial delivery at a time; concurrent sends are
      rejected until it finishes. Success → CLOSED, failure → OPEN.
    """

    def __init__(
        self,
        transport: DeliveryTransport,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0,
    ) -> None:
        self._transport = transport
        self._failure_threshold = failure_threshold
        self._recovery_timeout = recovery_timeout
        self._state = CircuitState.CLOSED
        self._consecutive_failures = 0
        self._last_failure_time: float = 0.0
        self._trial_in_flight = False

    @property
    def channel(self) -> str:
        return self._transport.channel

    @property
    def state(self) -> CircuitState:
        return self._state

    def record_failure(self) -> None:
        """Count a failure observed outside ``send`` (e.g. a timeout)."""
        self._consecutive_failures += 1
        self._last_failure_time = time.monotonic()

        if self._state == CircuitState.HALF_OPEN:
            self._state = CircuitState.OPEN
            logger.warning(
                "Circuit breaker %s: HALF_OPEN → OPEN (probe failed)",
                self.channel,
            )
        elif (
            self._state == CircuitState.CLOSED
            and self._consecutive_failures >= self._failure_threshold
        ):
            self._state = CircuitState.OPEN
            logger.warning(
                "Circuit breaker %s: CLOSED → OPEN after %d failures",
                self.channel, self._consecutive_failures,
            )

    async def send(self, recipient: str, message: str) -> bool:
        if self._state == CircuitState.OPEN:
            if time.monotonic() - self._last_failure_time >= self._recovery_timeout:
                self._state = CircuitState.HALF_OPEN
                logger.info(
                    "Circuit breaker %s: OPEN → HALF_OPEN (recovery probe)",
                    self.channel,
                )
            else:
                logger.debug(
                    "Circuit breaker %s: OPEN, rejecting delivery to %s",
                    self.channel, recipient,
                )
                return False

        is_trial = False
        if self._state == CircuitState.HALF_OPEN:
            if self._trial_in_flight:
                logger.debug(
                    "Circuit breaker %s: trial delivery in flight, rejecting send to %s",
                    self.channel, recipient,
                )
                return False
            self._trial_in_flight = is_trial = True

        try:
            success = await self._transport.send(recipient, message)
        finally:
            if is_trial:
                self._trial_in_flight = False

        if success:
            if self._state == CircuitState.HALF_OPEN:
                logger.info(
                    "Circuit breaker %s: HALF_OPEN → CLOSED (probe succeeded)",
                    self.channel,
                )
            self._state = CircuitState.CLOSED
            self._consecutive_failures = 0
        else:
            self.record_failure()

        return success


def build_transports(config: NotificationConfig) -> dict[str, DeliveryTransport]:
    """One transport per channel: webhook if a URL is configured, else logging."""
    transports: dict[str, DeliveryTransport] = {}
    for channel in ("email", "sms", "push"):
        url = config.webhook_url_for(channel)
        if url:
            transports[channel] = WebhookTransport(
                channel=channel,
                url=url,
                timeout=config.delivery_timeout_seconds,
            )
        else:
            transports[channel] = LoggingTransport(channel)
    return transports
