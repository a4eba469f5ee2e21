"""Services that orchestrate reading ingestion and bin collection.

The coordinator lives in ``src.services.ingestion_service`` and is
imported from there; this package root only exposes the leaf modules so
that lower layers can import the error types without a cycle.
"""

from src.services.background import BackgroundTaskPool
from src.services.errors import (
    BinMonitorError,
    DeliveryError,
    InvalidInputError,
    NotFoundError,
    StorageError,
)

__all__ = [
    "BackgroundTaskPool",
    "BinMonitorError",
    "DeliveryError",
    "InvalidInputError",
    "NotFoundError",
    "StorageError",
]
