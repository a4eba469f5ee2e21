"""Tests for IngestionCoordinator with mocked collaborators."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from src.alerts.config import ThresholdConfig
from src.alerts.repository import AlertRepository
from src.alerts.service import AlertService
from src.bins.repository import BinRepository, CollectionLogRepository, ReadingRepository
from src.bins.schemas import Bin
from src.events.publisher import EventPublisher
from src.notifications.dispatcher import NotificationDispatcher
from src.services.background import BackgroundTaskPool
from src.services.errors import InvalidInputError, NotFoundError, StorageError
from src.services.ingestion_service import IngestionCoordinator
from src.users.repository import UserRepository
from src.users.schemas import User


def _bin(fill_level: int = 30) -> Bin:
    return Bin(
        bin_id="bin-1",
        bin_code="BIN-001",
        location="Main St & 3rd",
        fill_level=fill_level,
    )


@pytest.fixture
def bin_repo():
    repo = AsyncMock(spec=BinRepository)
    repo.get_by_code.return_value = _bin()
    repo.get_by_id.return_value = _bin(fill_level=88)
    repo.update_fill_level.side_effect = lambda bin_id, fill: _bin(fill_level=fill)
    repo.mark_emptied.side_effect = lambda bin_id, at=None: _bin(fill_level=0)
    return repo


@pytest.fixture
def reading_repo():
    repo = AsyncMock(spec=ReadingRepository)
    repo.create.side_effect = lambda reading: reading
    return repo


@pytest.fixture
def collection_repo():
    repo = AsyncMock(spec=CollectionLogRepository)
    repo.create.side_effect = lambda log: log
    return repo


@pytest.fixture
def alert_repo():
    repo = AsyncMock(spec=AlertRepository)
    repo.create_batch.side_effect = lambda alerts: alerts
    repo.resolve_open_for_bin.return_value = 2
    return repo


@pytest.fixture
def publisher():
    return AsyncMock(spec=EventPublisher)


@pytest.fixture
def dispatcher():
    d = AsyncMock(spec=NotificationDispatcher)
    d.notify_recipients.return_value = []
    return d


@pytest.fixture
def user_repo():
    repo = AsyncMock(spec=UserRepository)
    repo.get_by_id.return_value = User(
        user_id="user-1", email="c@example.com", full_name="Casey", role="collector",
    )
    return repo


@pytest.fixture
def coordinator(bin_repo, reading_repo, collection_repo, alert_repo, publisher, dispatcher, user_repo):
    return IngestionCoordinator(
        bin_repo=bin_repo,
        reading_repo=reading_repo,
        collection_repo=collection_repo,
        alert_service=AlertService(alert_repo),
        publisher=publisher,
        dispatcher=dispatcher,
        thresholds=ThresholdConfig(),
        user_repo=user_repo,
    )


# ── Reading workflow ─────────────────────────────────────


class TestSubmitReading:

    @pytest.mark.asyncio
    async def test_quiet_reading(self, coordinator, reading_repo, bin_repo, publisher, dispatcher):
        result = await coordinator.submit_reading({"bin_code": "BIN-001", "fill_level": 20})

        assert result.alerts_generated == 0
        assert result.reading.bin_id == "bin-1"
        reading_repo.create.assert_awaited_once()
        bin_repo.update_fill_level.assert_awaited_once_with("bin-1", 20)
        publisher.publish_reading.assert_awaited_once_with(result.reading)
        publisher.publish_alert.assert_not_called()
        dispatcher.notify_recipients.assert_not_called()

    @pytest.mark.asyncio
    async def test_flash_reading_notifies(self, coordinator, publisher, dispatcher):
        result = await coordinator.submit_reading({"bin_code": "BIN-001", "fill_level": 97})

        assert result.alerts_generated == 1
        alert = result.alerts[0]
        assert (alert.alert_type, alert.severity) == ("fill_critical", "critical")
        publisher.publish_alert.assert_awaited_once_with(alert)
        dispatcher.notify_recipients.assert_awaited_once_with(alert)

    @pytest.mark.asyncio
    async def test_medium_alert_is_not_notified(self, coordinator, publisher, dispatcher):
        result = await coordinator.submit_reading({"bin_code": "BIN-001", "fill_level": 60})

        assert result.alerts[0].severity == "medium"
        publisher.publish_alert.assert_awaited_once()
        dispatcher.notify_recipients.assert_not_called()

    @pytest.mark.asyncio
    async def test_multi_breach(self, coordinator, publisher, dispatcher):
        result = await coordinator.submit_reading({
            "bin_code": "BIN-001",
            "fill_level": 85,
            "gas_level": 250,
            "battery_level": 15,
        })

        assert [(a.alert_type, a.severity) for a in result.alerts] == [
            ("fill_critical", "high"),
            ("gas_detected", "high"),
            ("maintenance_needed", "medium"),
        ]
        assert publisher.publish_alert.await_count == 3
        assert dispatcher.notify_recipients.await_count == 2

    @pytest.mark.asyncio
    async def test_invalid_payload_writes_nothing(self, coordinator, reading_repo, bin_repo):
        with pytest.raises(InvalidInputError):
            await coordinator.submit_reading({"bin_code": "BIN-001", "fill_level": 150})
        bin_repo.get_by_code.assert_not_called()
        reading_repo.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_bin(self, coordinator, bin_repo, reading_repo):
        bin_repo.get_by_code.return_value = None
        with pytest.raises(NotFoundError):
            await coordinator.submit_reading({"bin_code": "NOPE", "fill_level": 10})
        reading_repo.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_reading_insert_failure(self, coordinator, reading_repo, publisher):
        reading_repo.create.side_effect = RuntimeError("db down")
        with pytest.raises(StorageError):
            await coordinator.submit_reading({"bin_code": "BIN-001", "fill_level": 97})
        publisher.publish_reading.assert_not_called()

    @pytest.mark.asyncio
    async def test_fill_update_failure_is_tolerated(self, coordinator, bin_repo):
        bin_repo.update_fill_level.side_effect = RuntimeError("db hiccup")
        result = await coordinator.submit_reading({"bin_code": "BIN-001", "fill_level": 97})
        assert result.alerts_generated == 1

    @pytest.mark.asyncio
    async def test_alert_persist_failure_keeps_reading(
        self, coordinator, alert_repo, publisher, dispatcher,
    ):
        alert_repo.create_batch.side_effect = RuntimeError("db down")
        result = await coordinator.submit_reading({"bin_code": "BIN-001", "fill_level": 97})

        assert result.alerts_generated == 0
        publisher.publish_reading.assert_awaited_once()
        publisher.publish_alert.assert_not_called()
        dispatcher.notify_recipients.assert_not_called()

    @pytest.mark.asyncio
    async def test_publisher_failure_is_tolerated(self, coordinator, publisher):
        publisher.publish_reading.side_effect = RuntimeError("redis down")
        result = await coordinator.submit_reading({"bin_code": "BIN-001", "fill_level": 10})
        assert result.reading.fill_level == 10

    @pytest.mark.asyncio
    async def test_custom_notify_severities(
        self, bin_repo, reading_repo, collection_repo, alert_repo, publisher, dispatcher,
    ):
        coordinator = IngestionCoordinator(
            bin_repo=bin_repo,
            reading_repo=reading_repo,
            collection_repo=collection_repo,
            alert_service=AlertService(alert_repo),
            publisher=publisher,
            dispatcher=dispatcher,
            thresholds=ThresholdConfig(notify_severities=["critical"]),
        )
        await coordinator.submit_reading({"bin_code": "BIN-001", "fill_level": 85})
        dispatcher.notify_recipients.assert_not_called()

    @pytest.mark.asyncio
    async def test_side_effects_go_through_pool(
        self, bin_repo, reading_repo, collection_repo, alert_repo, publisher, dispatcher,
    ):
        pool = BackgroundTaskPool(workers=2, queue_size=10)
        await pool.start()
        coordinator = IngestionCoordinator(
            bin_repo=bin_repo,
            reading_repo=reading_repo,
            collection_repo=collection_repo,
            alert_service=AlertService(alert_repo),
            publisher=publisher,
            dispatcher=dispatcher,
            background=pool,
        )

        result = await coordinator.submit_reading({"bin_code": "BIN-001", "fill_level": 97})
        await pool.join()
        await pool.stop()

        publisher.publish_reading.assert_awaited_once_with(result.reading)
        dispatcher.notify_recipients.assert_awaited_once_with(result.alerts[0])


# ── Collection workflow ──────────────────────────────────


class TestLogCollection:

    @pytest.mark.asyncio
    async def test_collection_resets_and_resolves(
        self, coordinator, collection_repo, bin_repo, alert_repo, publisher,
    ):
        result = await coordinator.log_collection({
            "bin_id": "bin-1",
            "collected_by": "user-1",
            "notes": "Heavy load",
        })

        log = collection_repo.create.call_args.args[0]
        assert log.fill_level_before == 88
        assert log.fill_level_after == 0
        assert log.collected_by == "user-1"
        bin_repo.mark_emptied.assert_awaited_once_with("bin-1", log.collected_at)
        alert_repo.resolve_open_for_bin.assert_awaited_once_with("bin-1", "user-1")
        assert result.alerts_resolved == 2
        publisher.publish_bin_update.assert_awaited_once()
        assert publisher.publish_bin_update.call_args.args[0].fill_level == 0

    @pytest.mark.asyncio
    async def test_already_empty_bin_is_still_collected(
        self, coordinator, collection_repo, bin_repo, publisher,
    ):
        bin_repo.get_by_id.return_value = _bin(fill_level=0)
        bin_repo.mark_emptied.side_effect = lambda bin_id, at=None: Bin(
            bin_id=bin_id, bin_code="BIN-001", location="Main St & 3rd",
            fill_level=0, last_emptied=at,
        )

        result = await coordinator.log_collection({"bin_id": "bin-1"})

        log = collection_repo.create.call_args.args[0]
        assert log.fill_level_before == 0
        assert log.fill_level_after == 0
        bin_repo.mark_emptied.assert_awaited_once_with("bin-1", log.collected_at)
        assert result.bin.last_emptied == log.collected_at
        publisher.publish_bin_update.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_anonymous_collection(self, coordinator, user_repo):
        result = await coordinator.log_collection({"bin_id": "bin-1"})
        assert result.collection_log.collected_by is None
        user_repo.get_by_id.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_bin(self, coordinator, bin_repo, collection_repo):
        bin_repo.get_by_id.return_value = None
        with pytest.raises(NotFoundError):
            await coordinator.log_collection({"bin_id": "missing"})
        collection_repo.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_collector(self, coordinator, user_repo, collection_repo):
        user_repo.get_by_id.return_value = None
        with pytest.raises(NotFoundError):
            await coordinator.log_collection({"bin_id": "bin-1", "collected_by": "ghost"})
        collection_repo.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_bin_id(self, coordinator):
        with pytest.raises(InvalidInputError):
            await coordinator.log_collection({"notes": "no id"})

    @pytest.mark.asyncio
    async def test_log_insert_failure(self, coordinator, collection_repo, bin_repo, alert_repo):
        collection_repo.create.side_effect = RuntimeError("db down")
        with pytest.raises(StorageError):
            await coordinator.log_collection({"bin_id": "bin-1"})
        bin_repo.mark_emptied.assert_not_called()
        alert_repo.resolve_open_for_bin.assert_not_called()

    @pytest.mark.asyncio
    async def test_resolution_failure_is_tolerated(self, coordinator, alert_repo):
        alert_repo.resolve_open_for_bin.side_effect = RuntimeError("db hiccup")
        result = await coordinator.log_collection({"bin_id": "bin-1"})
        assert result.alerts_resolved == 0

    @pytest.mark.asyncio
    async def test_reset_failure_skips_bin_event(self, coordinator, bin_repo, publisher):
        bin_repo.mark_emptied.side_effect = RuntimeError("db hiccup")
        result = await coordinator.log_collection({"bin_id": "bin-1"})
        assert result.collection_log.fill_level_before == 88
        publisher.publish_bin_update.assert_not_called()


# ── Concurrency ──────────────────────────────────────────


class TestPerBinOrdering:

    @pytest.mark.asyncio
    async def test_same_bin_work_is_serialized(self, coordinator, reading_repo):
        active = 0
        peak = 0

        async def slow_create(reading):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1
            return reading

        reading_repo.create.side_effect = slow_create
        await asyncio.gather(*(
            coordinator.submit_reading({"bin_code": "BIN-001", "fill_level": 10 + i})
            for i in range(5)
        ))
        assert peak == 1

    def test_lock_reused_while_held(self, coordinator):
        lock = coordinator._lock_for("bin-1")
        assert coordinator._lock_for("bin-1") is lock
        assert coordinator._lock_for("bin-2") is not lock
