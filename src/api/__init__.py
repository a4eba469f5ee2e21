"""
Bin monitor HTTP API.

Provides REST and WebSocket endpoints for:
- POST /readings - Sensor reading ingestion with alert evaluation
- POST /collections - Collection logging and alert resolution
- GET/PATCH /alerts - Alert listing and manual resolution
- GET /bins - Bin listing, detail and stats
- WS /ws/bins - Real-time event stream
"""

from src.api.app import create_app

__all__ = ["create_app"]
