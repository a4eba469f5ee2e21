"""WebSocket endpoint for real-time bin, reading and alert events.

Clients connect to ``/ws/bins`` and receive every global event. Sending
``{"type": "subscribe_bin", "bin_id": ...}`` additionally joins that
bin's room for scoped events; ``unsubscribe_bin`` leaves it and
``ping`` is answered with ``pong``.

Auth is via ``api_key`` query parameter since browsers cannot set
custom headers on WebSocket upgrade requests.
"""

import json
import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from src.api.auth import is_valid_api_key
from src.config.settings import get_settings
from src.events.hub import ObserverHub

logger = logging.getLogger(__name__)

router = APIRouter()

# Module-level hub reference, set during app lifespan
_hub: ObserverHub | None = None


def set_hub(hub: ObserverHub | None) -> None:
    """Set the module-level hub (called during app startup)."""
    global _hub
    _hub = hub


def get_hub() -> ObserverHub | None:
    """Get the current hub instance."""
    return _hub


@router.websocket("/ws/bins")
async def ws_bins(
    ws: WebSocket,
    api_key: str | None = Query(default=None),
) -> None:
    """WebSocket endpoint for real-time observer events.

    Query parameters:
        api_key: API key for authentication.
    """
    settings = get_settings()

    if not settings.ws_enabled:
        await ws.close(code=1008, reason="WebSocket events not enabled")
        return

    if not is_valid_api_key(api_key, settings.api_keys):
        await ws.close(code=1008, reason="Invalid or missing API key")
        return

    hub = _hub
    if hub is None:
        await ws.close(code=1011, reason="Observer hub not available")
        return

    await ws.accept()

    if not hub.connect(ws):
        await ws.close(code=1008, reason="Max connections reached")
        return

    try:
        while True:
            try:
                raw = await ws.receive_text()
            except WebSocketDisconnect:
                break

            try:
                message = json.loads(raw)
            except (json.JSONDecodeError, TypeError):
                await ws.send_text(json.dumps({"type": "error", "message": "Invalid JSON"}))
                continue
            if not isinstance(message, dict):
                await ws.send_text(json.dumps({"type": "error", "message": "Expected an object"}))
                continue

            reply = hub.handle_client_message(ws, message)
            if reply is not None:
                await ws.send_text(json.dumps(reply))
    finally:
        hub.disconnect(ws)
