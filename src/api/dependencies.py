"""
Dependency injection for FastAPI endpoints.

Every collaborator is created lazily on first use and kept in a module
global for the life of the process. ``cleanup_dependencies`` tears them
down in reverse order at shutdown.
"""

import redis.asyncio as redis

from src.alerts.config import ThresholdConfig
from src.alerts.repository import AlertRepository
from src.alerts.service import AlertService
from src.bins.repository import BinRepository, CollectionLogRepository, ReadingRepository
from src.config.settings import get_settings
from src.events.hub import ObserverHub
from src.events.publisher import EventPublisher
from src.notifications.channels import build_transports
from src.notifications.config import NotificationConfig
from src.notifications.dispatcher import NotificationDispatcher
from src.notifications.repository import NotificationRepository
from src.services.background import BackgroundTaskPool
from src.services.ingestion_service import IngestionCoordinator
from src.storage.database import Database
from src.users.repository import UserRepository

# Global service instances (initialized on first request)
_database: Database | None = None
_redis_client: redis.Redis | None = None
_background_pool: BackgroundTaskPool | None = None
_event_publisher: EventPublisher | None = None
_notification_dispatcher: NotificationDispatcher | None = None
_alert_service: AlertService | None = None
_ingestion_coordinator: IngestionCoordinator | None = None
_observer_hub: ObserverHub | None = None


async def get_database() -> Database:
    """Get the shared connection pool, connecting on first use."""
    global _database

    if _database is None:
        _database = Database()
        await _database.connect()

    return _database


async def get_redis_client() -> redis.Redis:
    """Get the shared Redis client (used for event pub/sub)."""
    global _redis_client

    if _redis_client is None:
        settings = get_settings()
        _redis_client = redis.from_url(
            str(settings.redis_url),
            encoding="utf-8",
            decode_responses=True,
        )

    return _redis_client


async def get_bin_repository() -> BinRepository:
    return BinRepository(await get_database())


async def get_reading_repository() -> ReadingRepository:
    return ReadingRepository(await get_database())


async def get_collection_repository() -> CollectionLogRepository:
    return CollectionLogRepository(await get_database())


async def get_alert_repository() -> AlertRepository:
    return AlertRepository(await get_database())


async def get_user_repository() -> UserRepository:
    return UserRepository(await get_database())


async def get_alert_service() -> AlertService:
    global _alert_service

    if _alert_service is None:
        database = await get_database()
        _alert_service = AlertService(AlertRepository(database), UserRepository(database))

    return _alert_service


async def get_background_pool() -> BackgroundTaskPool:
    """Get the side-effect worker pool, starting it on first use."""
    global _background_pool

    if _background_pool is None:
        settings = get_settings()
        _background_pool = BackgroundTaskPool(
            workers=settings.background_workers,
            queue_size=settings.background_queue_size,
            drain_timeout=settings.background_drain_seconds,
        )
        await _background_pool.start()

    return _background_pool


def current_background_pool() -> BackgroundTaskPool | None:
    """The pool if it has been started, without creating one."""
    return _background_pool


async def get_event_publisher() -> EventPublisher:
    """Get the event publisher (Redis pub/sub fan-out across workers)."""
    global _event_publisher

    if _event_publisher is None:
        settings = get_settings()
        _event_publisher = EventPublisher(
            redis_client=await get_redis_client(),
            channel=settings.events_channel,
        )

    return _event_publisher


async def get_notification_dispatcher() -> NotificationDispatcher:
    global _notification_dispatcher

    if _notification_dispatcher is None:
        database = await get_database()
        config = NotificationConfig()
        _notification_dispatcher = NotificationDispatcher(
            notification_repo=NotificationRepository(database),
            transports=build_transports(config),
            user_repo=UserRepository(database),
            config=config,
        )

    return _notification_dispatcher


async def get_ingestion_coordinator() -> IngestionCoordinator:
    """Get the coordinator wired to every shared collaborator."""
    global _ingestion_coordinator

    if _ingestion_coordinator is None:
        database = await get_database()
        _ingestion_coordinator = IngestionCoordinator(
            bin_repo=BinRepository(database),
            reading_repo=ReadingRepository(database),
            collection_repo=CollectionLogRepository(database),
            alert_service=await get_alert_service(),
            publisher=await get_event_publisher(),
            dispatcher=await get_notification_dispatcher(),
            background=await get_background_pool(),
            thresholds=ThresholdConfig(),
            user_repo=UserRepository(database),
        )

    return _ingestion_coordinator


async def get_observer_hub() -> ObserverHub:
    """Get the WebSocket observer hub, subscribing it to Redis on first use."""
    global _observer_hub

    if _observer_hub is None:
        settings = get_settings()
        _observer_hub = ObserverHub(
            max_connections=settings.ws_max_connections,
            heartbeat_interval=settings.ws_heartbeat_seconds,
            channel=settings.events_channel,
        )
        await _observer_hub.start(await get_redis_client())

    return _observer_hub


async def stop_observer_hub() -> None:
    global _observer_hub

    if _observer_hub is not None:
        await _observer_hub.stop()
        _observer_hub = None


async def cleanup_dependencies() -> None:
    """Clean up global dependencies on shutdown."""
    global _database, _redis_client, _background_pool, _event_publisher
    global _notification_dispatcher, _alert_service, _ingestion_coordinator

    _ingestion_coordinator = None
    _notification_dispatcher = None
    _alert_service = None
    _event_publisher = None

    # Drain side effects before their connections go away
    if _background_pool is not None:
        await _background_pool.stop()
        _background_pool = None

    if _database is not None:
        await _database.close()
        _database = None

    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None
