"""
Ingestion coordinator - the reading and collection workflows.

Sequences validation, persistence, threshold evaluation, alerting,
event publication and notification fan-out for each incoming reading,
and the reset/resolve sequence for each collection event.

Failure policy:
- Invalid input and unknown bins are rejected before any write.
- A failed reading or collection-log insert raises StorageError.
- Everything after the primary write is best-effort: logged, counted,
  never raised.
- Publication and notification are handed to the background pool; the
  caller only waits on the primary write.
"""

import asyncio
import time
import weakref
from collections.abc import Awaitable, Callable
from typing import Any

import structlog

from src.alerts.config import ThresholdConfig
from src.alerts.service import AlertService
from src.alerts.triggers import evaluate_reading
from src.bins.repository import BinRepository, CollectionLogRepository, ReadingRepository
from src.bins.schemas import Bin, CollectionLog
from src.events.publisher import EventPublisher
from src.notifications.dispatcher import NotificationDispatcher
from src.observability.metrics import get_metrics
from src.observability.tracing import get_tracer, traced
from src.services.background import BackgroundTaskPool
from src.services.errors import (
    BinMonitorError,
    NotFoundError,
    StorageError,
)
from src.services.schemas import (
    CollectionRequest,
    CollectionResult,
    IngestionResult,
    ReadingSubmission,
)
from src.users.repository import UserRepository

logger = structlog.get_logger(__name__)


class IngestionCoordinator:
    """
    Entry point for sensor readings and collection events.

    Collaborators are passed in explicitly; the coordinator owns no
    connections of its own.

    Usage:
        coordinator = IngestionCoordinator(
            bin_repo=..., reading_repo=..., collection_repo=...,
            alert_service=..., publisher=..., dispatcher=..., background=pool,
        )
        result = await coordinator.submit_reading({"bin_code": "BIN-001", "fill_level": 97})
    """

    def __init__(
        self,
        bin_repo: BinRepository,
        reading_repo: ReadingRepository,
        collection_repo: CollectionLogRepository,
        alert_service: AlertService,
        publisher: EventPublisher,
        dispatcher: NotificationDispatcher | None = None,
        background: BackgroundTaskPool | None = None,
        thresholds: ThresholdConfig | None = None,
        user_repo: UserRepository | None = None,
    ):
        """
        Initialize the coordinator.

        Args:
            bin_repo: Bin lookups and fill updates
            reading_repo: Reading persistence
            collection_repo: Collection log persistence
            alert_service: Alert recording and resolution
            publisher: Real-time event publisher
            dispatcher: Notification dispatcher (None disables fan-out)
            background: Worker pool for side effects (None runs them inline)
            thresholds: Threshold tiers and notification severities
            user_repo: Used to check ``collected_by`` references
        """
        self._bin_repo = bin_repo
        self._reading_repo = reading_repo
        self._collection_repo = collection_repo
        self._alert_service = alert_service
        self._publisher = publisher
        self._dispatcher = dispatcher
        self._background = background
        self._thresholds = thresholds or ThresholdConfig()
        self._user_repo = user_repo

        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )
        self._metrics = get_metrics()
        self._tracer = get_tracer("src.services.ingestion")

    @property
    def thresholds(self) -> ThresholdConfig:
        return self._thresholds

    def _lock_for(self, bin_id: str) -> asyncio.Lock:
        """Per-bin lock, created on demand and released with its last holder."""
        lock = self._locks.get(bin_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[bin_id] = lock
        return lock

    async def _spawn(
        self,
        fn: Callable[..., Awaitable[Any]],
        *args: Any,
        name: str,
    ) -> None:
        """Hand a side effect to the pool, or run it inline without one."""
        if self._background is not None:
            self._background.submit(fn, *args, name=name)
            return
        try:
            await fn(*args)
        except Exception as e:
            logger.error("Side effect failed", task=name, error=str(e))

    # ------------------------------------------------------------------
    # Reading workflow
    # ------------------------------------------------------------------

    async def submit_reading(
        self,
        submission: ReadingSubmission | dict[str, Any],
    ) -> IngestionResult:
        """
        Ingest one sensor reading.

        Args:
            submission: ReadingSubmission or its decoded JSON payload

        Returns:
            The persisted reading and the alerts it generated

        Raises:
            InvalidInputError: Payload is malformed or out of range
            NotFoundError: No bin has the submitted code
            StorageError: The bin lookup or reading insert failed
        """
        start = time.perf_counter()
        try:
            if not isinstance(submission, ReadingSubmission):
                submission = ReadingSubmission.from_dict(submission)
            with structlog.contextvars.bound_contextvars(bin_code=submission.bin_code):
                with traced(
                    self._tracer,
                    "submit_reading",
                    {"bin.code": submission.bin_code, "reading.fill_level": submission.fill_level},
                ):
                    result = await self._ingest(submission)
        except BinMonitorError as e:
            self._metrics.record_reading(_outcome_for(e))
            raise

        self._metrics.record_reading("accepted", time.perf_counter() - start)
        return result

    async def _ingest(self, submission: ReadingSubmission) -> IngestionResult:
        bin_ = await self._find_bin_by_code(submission.bin_code)
        reading = submission.to_reading(bin_.bin_id)

        async with self._lock_for(bin_.bin_id):
            try:
                reading = await self._reading_repo.create(reading)
            except Exception as e:
                logger.error("Reading insert failed", bin_id=bin_.bin_id, error=str(e))
                raise StorageError(f"Could not store reading for bin {bin_.bin_code}") from e

            try:
                updated = await self._bin_repo.update_fill_level(bin_.bin_id, reading.fill_level)
                if updated is None:
                    logger.warning("Bin vanished before fill update", bin_id=bin_.bin_id)
            except Exception as e:
                logger.warning("Bin fill update failed", bin_id=bin_.bin_id, error=str(e))

        await self._spawn(self._publisher.publish_reading, reading, name="publish_reading")

        candidates = evaluate_reading(reading, self._thresholds)
        alerts = await self._alert_service.record_alerts(bin_.bin_id, candidates)

        notify_severities = set(self._thresholds.notify_severities)
        for alert in alerts:
            await self._spawn(self._publisher.publish_alert, alert, name="publish_alert")
            if self._dispatcher is not None and alert.severity in notify_severities:
                await self._spawn(
                    self._dispatcher.notify_recipients, alert, name="notify_recipients",
                )

        logger.info(
            "Reading ingested",
            reading_id=reading.reading_id,
            fill_level=reading.fill_level,
            candidates=len(candidates),
            alerts_generated=len(alerts),
        )
        return IngestionResult(reading=reading, alerts=alerts)

    async def _find_bin_by_code(self, bin_code: str) -> Bin:
        try:
            bin_ = await self._bin_repo.get_by_code(bin_code)
        except Exception as e:
            raise StorageError(f"Could not look up bin {bin_code}") from e
        if bin_ is None:
            raise NotFoundError("Bin", bin_code)
        return bin_

    # ------------------------------------------------------------------
    # Collection workflow
    # ------------------------------------------------------------------

    async def log_collection(
        self,
        request: CollectionRequest | dict[str, Any],
    ) -> CollectionResult:
        """
        Record that a bin was emptied.

        Args:
            request: CollectionRequest or its decoded JSON payload

        Returns:
            The collection log and the number of alerts it resolved

        Raises:
            InvalidInputError: bin_id missing or malformed
            NotFoundError: Bin (or the named collector) does not exist
            StorageError: The collection-log insert failed
        """
        start = time.perf_counter()
        if not isinstance(request, CollectionRequest):
            request = CollectionRequest.from_dict(request)

        with structlog.contextvars.bound_contextvars(bin_id=request.bin_id):
            with traced(
                self._tracer,
                "log_collection",
                {"bin.id": request.bin_id, "collection.collected_by": request.collected_by},
            ):
                result = await self._collect(request)

        self._metrics.record_collection(time.perf_counter() - start)
        return result

    async def _collect(self, request: CollectionRequest) -> CollectionResult:
        if request.collected_by is not None and self._user_repo is not None:
            try:
                collector = await self._user_repo.get_by_id(request.collected_by)
            except Exception as e:
                raise StorageError(f"Could not look up user {request.collected_by}") from e
            if collector is None:
                raise NotFoundError("User", request.collected_by)

        async with self._lock_for(request.bin_id):
            try:
                bin_ = await self._bin_repo.get_by_id(request.bin_id)
            except Exception as e:
                raise StorageError(f"Could not look up bin {request.bin_id}") from e
            if bin_ is None:
                raise NotFoundError("Bin", request.bin_id)

            log = CollectionLog(
                bin_id=bin_.bin_id,
                fill_level_before=bin_.fill_level,
                collected_by=request.collected_by,
                notes=request.notes,
            )
            try:
                log = await self._collection_repo.create(log)
            except Exception as e:
                logger.error("Collection log insert failed", error=str(e))
                raise StorageError(f"Could not store collection for bin {bin_.bin_code}") from e

            updated: Bin | None = None
            try:
                updated = await self._bin_repo.mark_emptied(bin_.bin_id, log.collected_at)
            except Exception as e:
                logger.warning("Bin reset failed", error=str(e))

        resolved = 0
        try:
            resolved = await self._alert_service.resolve_open_alerts(
                bin_.bin_id, request.collected_by,
            )
        except Exception as e:
            logger.warning("Alert resolution failed", error=str(e))

        if updated is not None:
            await self._spawn(
                self._publisher.publish_bin_update, updated, name="publish_bin_update",
            )

        logger.info(
            "Collection logged",
            log_id=log.log_id,
            fill_level_before=log.fill_level_before,
            alerts_resolved=resolved,
        )
        return CollectionResult(collection_log=log, alerts_resolved=resolved, bin=updated)


def _outcome_for(error: BinMonitorError) -> str:
    if isinstance(error, NotFoundError):
        return "not_found"
    if isinstance(error, StorageError):
        return "storage_error"
    return "invalid"
