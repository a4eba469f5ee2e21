"""WebSocket observer hub fed by Redis pub/sub.

Subscribes to the ``bins:events`` Redis channel and pushes event
envelopes to connected WebSocket clients. Global envelopes (``room`` is
null) go to every client; scoped envelopes (``room`` is ``bin_<id>``)
go only to clients subscribed to that bin. Each API server process runs
its own subscriber, so this scales across multiple uvicorn workers.

Pattern: Background subscriber task + per-client room membership.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from starlette.websockets import WebSocket

from src.observability.metrics import get_metrics

logger = logging.getLogger(__name__)

DEFAULT_CHANNEL = "bins:events"


def bin_room(bin_id: str) -> str:
    """Name of the scoped subscription group for a bin."""
    return f"bin_{bin_id}"


@dataclass
class ClientConnection:
    """A connected WebSocket client and the bin rooms it joined."""

    ws: WebSocket
    rooms: set[str] = field(default_factory=set)
    connected_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )


class ObserverHub:
    """Manages WebSocket observers and the Redis pub/sub subscription.

    Lifecycle:
        1. ``start(redis_client)`` — subscribe to Redis channel, spawn listener
        2. ``connect(ws)`` / ``disconnect(ws)`` — manage clients
        3. ``stop()`` — cancel background tasks, close pub/sub

    Without ``start`` the hub still works in-process: the publisher can
    hand envelopes straight to ``deliver``.
    """

    def __init__(
        self,
        max_connections: int = 200,
        heartbeat_interval: int = 30,
        channel: str = DEFAULT_CHANNEL,
    ) -> None:
        self._max_connections = max_connections
        self._heartbeat_interval = heartbeat_interval
        self._channel = channel
        self._clients: dict[WebSocket, ClientConnection] = {}
        self._subscriber_task: asyncio.Task | None = None
        self._heartbeat_task: asyncio.Task | None = None
        self._pubsub: Any | None = None
        self._running = False
        self._metrics = get_metrics()

    @property
    def active_connections(self) -> int:
        """Number of currently connected WebSocket clients."""
        return len(self._clients)

    @property
    def running(self) -> bool:
        return self._running

    def connect(self, ws: WebSocket) -> bool:
        """Register a new WebSocket client.

        Returns:
            True if registered, False if max connections reached.
        """
        if len(self._clients) >= self._max_connections:
            return False

        self._clients[ws] = ClientConnection(ws=ws)
        self._metrics.set_observers_connected(len(self._clients))
        logger.info("Observer connected (total=%d)", len(self._clients))
        return True

    def disconnect(self, ws: WebSocket) -> None:
        """Remove a WebSocket client and all its room memberships."""
        removed = self._clients.pop(ws, None)
        if removed:
            self._metrics.set_observers_connected(len(self._clients))
            logger.info("Observer disconnected (total=%d)", len(self._clients))

    def subscribe(self, ws: WebSocket, bin_id: str) -> bool:
        client = self._clients.get(ws)
        if client is None:
            return False
        client.rooms.add(bin_room(bin_id))
        logger.debug("Observer joined %s", bin_room(bin_id))
        return True

    def unsubscribe(self, ws: WebSocket, bin_id: str) -> bool:
        client = self._clients.get(ws)
        if client is None:
            return False
        client.rooms.discard(bin_room(bin_id))
        logger.debug("Observer left %s", bin_room(bin_id))
        return True

    def handle_client_message(
        self,
        ws: WebSocket,
        message: dict[str, Any],
    ) -> dict[str, Any] | None:
        """Apply one client protocol message and return the reply, if any.

        Supported: ``subscribe_bin``, ``unsubscribe_bin`` (both need
        ``bin_id``) and ``ping``.
        """
        msg_type = message.get("type")

        if msg_type == "ping":
            return {"type": "pong"}

        if msg_type in ("subscribe_bin", "unsubscribe_bin"):
            bin_id = message.get("bin_id")
            if not isinstance(bin_id, str) or not bin_id:
                return {"type": "error", "message": "bin_id is required"}
            if msg_type == "subscribe_bin":
                self.subscribe(ws, bin_id)
                return {"type": "subscribed", "room": bin_room(bin_id)}
            self.unsubscribe(ws, bin_id)
            return {"type": "unsubscribed", "room": bin_room(bin_id)}

        return {"type": "error", "message": f"Unknown message type: {msg_type}"}

    async def start(self, redis_client: Any) -> None:
        """Start the Redis subscriber and heartbeat background tasks.

        Args:
            redis_client: An async Redis client instance.
        """
        if self._running:
            return

        self._running = True

        try:
            self._pubsub = redis_client.pubsub()
            await self._pubsub.subscribe(self._channel)
            self._subscriber_task = asyncio.create_task(
                self._listen(), name="observer-hub-listener",
            )
            self._heartbeat_task = asyncio.create_task(
                self._send_heartbeats(), name="observer-hub-heartbeat",
            )
            logger.info(
                "ObserverHub started (channel=%s, heartbeat=%ds)",
                self._channel, self._heartbeat_interval,
            )
        except Exception as e:
            self._running = False
            logger.error("Failed to start ObserverHub: %s", e)

    async def stop(self) -> None:
        """Stop the subscriber and heartbeat tasks, close pub/sub."""
        self._running = False

        for task in (self._subscriber_task, self._heartbeat_task):
            if task is not None:
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._subscriber_task = None
        self._heartbeat_task = None

        if self._pubsub is not None:
            try:
                await self._pubsub.unsubscribe(self._channel)
                await self._pubsub.close()
            except Exception as e:
                logger.warning("Error closing pub/sub: %s", e)
            self._pubsub = None

        self._clients.clear()
        self._metrics.set_observers_connected(0)
        logger.info("ObserverHub stopped")

    async def deliver(self, envelope: dict[str, Any]) -> int:
        """Send an envelope to every matching client.

        Returns:
            Number of clients the envelope was sent to.
        """
        room = envelope.get("room")
        text = json.dumps(envelope)

        sent = 0
        disconnected: list[WebSocket] = []

        for ws, client in list(self._clients.items()):
            if room is not None and room not in client.rooms:
                continue
            try:
                await ws.send_text(text)
                sent += 1
            except Exception:
                disconnected.append(ws)

        for ws in disconnected:
            self.disconnect(ws)

        return sent

    async def _listen(self) -> None:
        """Background task: read messages from Redis pub/sub and dispatch."""
        try:
            while self._running:
                try:
                    message = await self._pubsub.get_message(
                        ignore_subscribe_messages=True, timeout=1.0,
                    )
                    if message is not None and message["type"] == "message":
                        await self._dispatch_message(message["data"])
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    logger.warning("Error reading pub/sub message: %s", e)
                    await asyncio.sleep(1.0)
        except asyncio.CancelledError:
            pass

    async def _dispatch_message(self, raw_data: str | bytes) -> None:
        """Parse a pub/sub message and deliver it."""
        try:
            if isinstance(raw_data, bytes):
                raw_data = raw_data.decode("utf-8")
            envelope = json.loads(raw_data)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning("Invalid event message: %s", e)
            return

        if not isinstance(envelope, dict) or "event" not in envelope:
            logger.warning("Event message without event name, dropping")
            return

        await self.deliver(envelope)

    async def _send_heartbeats(self) -> None:
        """Background task: send periodic heartbeat pings to all clients."""
        try:
            while self._running:
                await asyncio.sleep(self._heartbeat_interval)
                if not self._clients:
                    continue

                heartbeat = json.dumps({
                    "type": "heartbeat",
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                })

                disconnected: list[WebSocket] = []
                for ws in list(self._clients):
                    try:
                        await ws.send_text(heartbeat)
                    except Exception:
                        disconnected.append(ws)

                for ws in disconnected:
                    self.disconnect(ws)
        except asyncio.CancelledError:
            pass
