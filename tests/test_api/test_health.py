"""Tests for the health endpoint."""

from unittest.mock import AsyncMock

from fastapi.testclient import TestClient

from src.api.app import create_app
from src.api.dependencies import get_database, get_redis_client
from src.api.routes.ws_bins import set_hub
from src.events.hub import ObserverHub


def _mock_db(healthy: bool = True):
    db = AsyncMock()
    if healthy:
        db.health_check = AsyncMock(return_value=True)
    else:
        db.health_check = AsyncMock(side_effect=Exception("Connection refused"))
    return db


def _mock_redis(healthy: bool = True):
    r = AsyncMock()
    if healthy:
        r.ping = AsyncMock(return_value=True)
    else:
        r.ping = AsyncMock(side_effect=Exception("Connection refused"))
    return r


def _make_client(db_healthy: bool = True, redis_healthy: bool = True) -> TestClient:
    app = create_app()
    app.dependency_overrides[get_database] = lambda: _mock_db(db_healthy)
    app.dependency_overrides[get_redis_client] = lambda: _mock_redis(redis_healthy)
    return TestClient(app)


class TestHealthEndpoint:

    def test_all_healthy(self):
        resp = _make_client().get("/health")

        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "healthy"
        assert data["version"] == "0.1.0"
        assert data["components"]["database"]["status"] == "healthy"
        assert data["components"]["redis"]["status"] == "healthy"
        assert data["components"]["database"]["latency_ms"] is not None

    def test_database_down_is_unhealthy(self):
        data = _make_client(db_healthy=False).get("/health").json()
        assert data["status"] == "unhealthy"
        assert "Connection refused" in data["components"]["database"]["details"]["error"]

    def test_redis_down_is_degraded(self):
        data = _make_client(redis_healthy=False).get("/health").json()
        assert data["status"] == "degraded"

    def test_no_auth_required(self):
        # verify_api_key is not overridden and not needed
        assert _make_client().get("/health").status_code == 200

    def test_reports_observers(self):
        hub = ObserverHub()
        set_hub(hub)
        try:
            data = _make_client().get("/health").json()
            assert data["observers_connected"] == 0
            assert data["background_queue_depth"] == 0
        finally:
            set_hub(None)

    def test_database_check_false_is_unhealthy(self):
        app = create_app()
        db = AsyncMock()
        db.health_check = AsyncMock(return_value=False)
        app.dependency_overrides[get_database] = lambda: db
        app.dependency_overrides[get_redis_client] = lambda: _mock_redis()

        data = TestClient(app).get("/health").json()

        assert data["status"] == "unhealthy"
        assert data["components"]["database"]["details"] is None
