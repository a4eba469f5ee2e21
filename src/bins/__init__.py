"""Bins, sensor readings and collection logs.

Components:
- Bin / Reading / CollectionLog: Dataclasses mapping to their tables
- BinRepository: Lookup, fill updates, emptying and dashboard stats
- ReadingRepository / CollectionLogRepository: Append-only history
"""

from src.bins.repository import (
    BinRepository,
    CollectionLogRepository,
    ReadingRepository,
)
from src.bins.schemas import (
    VALID_BIN_STATUSES,
    VALID_BIN_TYPES,
    Bin,
    CollectionLog,
    Reading,
)

__all__ = [
    "Bin",
    "BinRepository",
    "CollectionLog",
    "CollectionLogRepository",
    "Reading",
    "ReadingRepository",
    "VALID_BIN_STATUSES",
    "VALID_BIN_TYPES",
]
