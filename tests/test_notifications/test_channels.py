"""Tests for delivery transports and the circuit breaker."""

import asyncio
import json
import time

import httpx
import pytest
import respx

from src.notifications.channels import (
    CircuitBreaker,
    CircuitState,
    DeliveryTransport,
    LoggingTransport,
    WebhookTransport,
    build_transports,
)
from src.notifications.config import NotificationConfig

GATEWAY = "https://gateway.example.com/sms"


class _FlakyTransport(DeliveryTransport):
    """Returns queued results in order."""

    def __init__(self, results: list[bool]) -> None:
        self._results = list(results)
        self.calls = 0

    @property
    def channel(self) -> str:
        return "sms"

    async def send(self, recipient: str, message: str) -> bool:
        self.calls += 1
        return self._results.pop(0)


class TestLoggingTransport:

    @pytest.mark.asyncio
    async def test_always_succeeds(self):
        transport = LoggingTransport("email")
        assert transport.channel == "email"
        assert await transport.send("ops@example.com", "hello") is True


class TestWebhookTransport:

    @pytest.mark.asyncio
    @respx.mock
    async def test_success_posts_payload(self):
        route = respx.post(GATEWAY).mock(return_value=httpx.Response(202))
        transport = WebhookTransport("sms", GATEWAY, headers={"Authorization": "Bearer t"})

        assert await transport.send("+15550001111", "Bin full") is True
        request = route.calls.last.request
        assert request.headers["Authorization"] == "Bearer t"
        assert json.loads(request.content) == {
            "channel": "sms",
            "to": "+15550001111",
            "message": "Bin full",
        }

    @pytest.mark.asyncio
    @respx.mock
    async def test_error_status_is_failure(self):
        respx.post(GATEWAY).mock(return_value=httpx.Response(500))
        transport = WebhookTransport("sms", GATEWAY)
        assert await transport.send("+15550001111", "Bin full") is False

    @pytest.mark.asyncio
    @respx.mock
    async def test_timeout_is_failure(self):
        respx.post(GATEWAY).mock(side_effect=httpx.ConnectTimeout("slow"))
        transport = WebhookTransport("sms", GATEWAY)
        assert await transport.send("+15550001111", "Bin full") is False

    @pytest.mark.asyncio
    @respx.mock
    async def test_connection_error_is_failure(self):
        respx.post(GATEWAY).mock(side_effect=httpx.ConnectError("refused"))
        transport = WebhookTransport("sms", GATEWAY)
        assert await transport.send("+15550001111", "Bin full") is False


class TestCircuitBreaker:

    @pytest.mark.asyncio
    async def test_passthrough_when_closed(self):
        breaker = CircuitBreaker(_FlakyTransport([True]), failure_threshold=2)
        assert await breaker.send("r", "m") is True
        assert breaker.state == CircuitState.CLOSED
        assert breaker.channel == "sms"

    @pytest.mark.asyncio
    async def test_opens_after_threshold(self):
        inner = _FlakyTransport([False, False, True])
        breaker = CircuitBreaker(inner, failure_threshold=2, recovery_timeout=60.0)

        await breaker.send("r", "m")
        assert breaker.state == CircuitState.CLOSED
        await breaker.send("r", "m")
        assert breaker.state == CircuitState.OPEN

        # Rejected without reaching the transport
        assert await breaker.send("r", "m") is False
        assert inner.calls == 2

    @pytest.mark.asyncio
    async def test_half_open_probe_closes_on_success(self):
        inner = _FlakyTransport([False, True])
        breaker = CircuitBreaker(inner, failure_threshold=1, recovery_timeout=60.0)

        await breaker.send("r", "m")
        assert breaker.state == CircuitState.OPEN

        breaker._last_failure_time = time.monotonic() - 61.0
        assert await breaker.send("r", "m") is True
        assert breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_half_open_probe_failure_reopens(self):
        inner = _FlakyTransport([False, False])
        breaker = CircuitBreaker(inner, failure_threshold=1, recovery_timeout=60.0)

        await breaker.send("r", "m")
        breaker._last_failure_time = time.monotonic() - 61.0
        assert await breaker.send("r", "m") is False
        assert breaker.state == CircuitState.OPEN

    @pytest.mark.asyncio
    async def test_half_open_admits_one_delivery_at_a_time(self):
        release = asyncio.Event()

        class _SlowTransport(_FlakyTransport):
            async def send(self, recipient: str, message: str) -> bool:
                self.calls += 1
                await release.wait()
                return True

        inner = _SlowTransport([])
        breaker = CircuitBreaker(inner, failure_threshold=1, recovery_timeout=60.0)
        breaker.record_failure()
        breaker._last_failure_time = time.monotonic() - 61.0

        first = asyncio.create_task(breaker.send("r0", "m"))
        await asyncio.sleep(0)
        others = [await breaker.send(f"r{i}", "m") for i in range(1, 5)]

        assert others == [False, False, False, False]
        assert inner.calls == 1

        release.set()
        assert await first is True
        assert breaker.state == CircuitState.CLOSED
        assert await breaker.send("r5", "m") is True
        assert inner.calls == 2

    @pytest.mark.asyncio
    async def test_raising_trial_delivery_frees_the_slot(self):
        class _BrokenTransport(_FlakyTransport):
            async def send(self, recipient: str, message: str) -> bool:
                self.calls += 1
                raise httpx.ConnectError("refused")

        inner = _BrokenTransport([])
        breaker = CircuitBreaker(inner, failure_threshold=1, recovery_timeout=60.0)
        breaker.record_failure()
        breaker._last_failure_time = time.monotonic() - 61.0

        with pytest.raises(httpx.ConnectError):
            await breaker.send("r", "m")
        assert breaker._trial_in_flight is False

    def test_record_failure_counts_external_failures(self):
        breaker = CircuitBreaker(_FlakyTransport([]), failure_threshold=2)
        breaker.record_failure()
        breaker.record_failure()
        assert breaker.state == CircuitState.OPEN


class TestBuildTransports:

    def test_logging_fallback(self):
        transports = build_transports(NotificationConfig())
        assert set(transports) == {"email", "sms", "push"}
        assert all(isinstance(t, LoggingTransport) for t in transports.values())

    def test_webhook_when_url_configured(self):
        config = NotificationConfig(sms_webhook_url=GATEWAY)
        transports = build_transports(config)
        assert isinstance(transports["sms"], WebhookTransport)
        assert isinstance(transports["email"], LoggingTransport)
