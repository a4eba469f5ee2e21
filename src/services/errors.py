"""Error taxonomy for the ingestion and collection workflows.

``InvalidInputError`` and ``NotFoundError`` are client-facing rejections
raised before any write. ``StorageError`` is raised only when a primary
write fails. ``DeliveryError`` never leaves a transport: the dispatcher
turns it into a ``failed`` notification status.
"""


class BinMonitorError(Exception):
    """Base class for all bin-monitor errors."""


class InvalidInputError(BinMonitorError, ValueError):
    """Malformed or out-of-range request data."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class NotFoundError(BinMonitorError, LookupError):
    """A referenced bin, alert, user or log does not exist."""

    def __init__(self, entity: str, identifier: str) -> None:
        super().__init__(f"{entity} not found: {identifier}")
        self.entity = entity
        self.identifier = identifier


class StorageError(BinMonitorError):
    """A primary durable-store operation failed."""


class DeliveryError(BinMonitorError):
    """A delivery transport could not hand off a message."""
