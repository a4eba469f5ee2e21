"""Storage layer for bin telemetry persistence."""

from src.storage.database import Database
from src.storage.schema import create_tables

__all__ = ["Database", "create_tables"]
