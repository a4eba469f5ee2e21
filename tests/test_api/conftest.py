"""Shared fixtures for API tests."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from src.alerts.repository import AlertRepository
from src.alerts.schemas import Alert
from src.alerts.service import AlertService
from src.api.app import create_app
from src.api.auth import verify_api_key
from src.api.dependencies import (
    get_alert_repository,
    get_alert_service,
    get_bin_repository,
    get_collection_repository,
    get_ingestion_coordinator,
    get_reading_repository,
)
from src.bins.repository import BinRepository, CollectionLogRepository, ReadingRepository
from src.bins.schemas import Bin, CollectionLog, Reading
from src.services.ingestion_service import IngestionCoordinator

NOW = datetime(2026, 3, 1, 9, 0, 0, tzinfo=timezone.utc)


def make_bin(bin_id: str = "bin-1", fill_level: int = 40, **kwargs) -> Bin:
    return Bin(
        bin_id=bin_id,
        bin_code=kwargs.pop("bin_code", "BIN-001"),
        location=kwargs.pop("location", "Main St & 3rd"),
        fill_level=fill_level,
        created_at=NOW,
        updated_at=NOW,
        **kwargs,
    )


def make_reading(reading_id: str = "reading-1", fill_level: int = 40, **kwargs) -> Reading:
    return Reading(
        reading_id=reading_id,
        bin_id=kwargs.pop("bin_id", "bin-1"),
        fill_level=fill_level,
        created_at=NOW,
        **kwargs,
    )


def make_alert(alert_id: str = "alert-1", severity: str = "critical", **kwargs) -> Alert:
    return Alert(
        alert_id=alert_id,
        bin_id=kwargs.pop("bin_id", "bin-1"),
        alert_type=kwargs.pop("alert_type", "fill_critical"),
        severity=severity,
        message=kwargs.pop(
            "message", "Bin is 97% full. FLASH ALERT! Immediate collection required."
        ),
        created_at=NOW,
        **kwargs,
    )


def make_collection(log_id: str = "log-1", **kwargs) -> CollectionLog:
    return CollectionLog(
        log_id=log_id,
        bin_id=kwargs.pop("bin_id", "bin-1"),
        fill_level_before=kwargs.pop("fill_level_before", 88),
        collected_at=NOW,
        **kwargs,
    )


@pytest.fixture
def mock_coordinator():
    return AsyncMock(spec=IngestionCoordinator)


@pytest.fixture
def mock_alert_repo():
    repo = AsyncMock(spec=AlertRepository)
    repo.get_recent.return_value = []
    repo.get_by_id.return_value = None
    return repo


@pytest.fixture
def mock_alert_service():
    return AsyncMock(spec=AlertService)


@pytest.fixture
def mock_bin_repo():
    repo = AsyncMock(spec=BinRepository)
    repo.get_all.return_value = []
    repo.get_by_id.return_value = None
    return repo


@pytest.fixture
def mock_reading_repo():
    repo = AsyncMock(spec=ReadingRepository)
    repo.get_recent.return_value = []
    repo.get_by_id.return_value = None
    return repo


@pytest.fixture
def mock_collection_repo():
    repo = AsyncMock(spec=CollectionLogRepository)
    repo.get_recent.return_value = []
    repo.get_by_id.return_value = None
    return repo


@pytest.fixture
def app(
    mock_coordinator,
    mock_alert_repo,
    mock_alert_service,
    mock_bin_repo,
    mock_reading_repo,
    mock_collection_repo,
):
    """FastAPI app with every collaborator overridden by a mock."""
    app = create_app()
    app.dependency_overrides[verify_api_key] = lambda: "test-key"
    app.dependency_overrides[get_ingestion_coordinator] = lambda: mock_coordinator
    app.dependency_overrides[get_alert_repository] = lambda: mock_alert_repo
    app.dependency_overrides[get_alert_service] = lambda: mock_alert_service
    app.dependency_overrides[get_bin_repository] = lambda: mock_bin_repo
    app.dependency_overrides[get_reading_repository] = lambda: mock_reading_repo
    app.dependency_overrides[get_collection_repository] = lambda: mock_collection_repo
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    # No lifespan: nothing here should reach Redis or Postgres
    return TestClient(app, raise_server_exceptions=False)
