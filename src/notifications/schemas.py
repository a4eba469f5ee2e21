"""Schema definitions for notification records.

Maps 1:1 to the ``notifications`` table. A notification is one delivery
attempt of one alert to one user over one channel. It is created
``pending`` and moves exactly once to ``sent`` or ``failed``.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

NotificationChannel = Literal["sms", "email", "push"]

VALID_CHANNELS: frozenset[str] = frozenset({"sms", "email", "push"})

NotificationStatus = Literal["pending", "sent", "failed"]

VALID_STATUSES: frozenset[str] = frozenset({"pending", "sent", "failed"})


@dataclass
class Notification:
    """A notification delivery record.

    Attributes:
        notification_id: UUID4 identifier.
        user_id: Recipient user.
        alert_id: Related alert (may be cleared if the alert is deleted).
        channel: sms, email or push.
        message: Body handed to the delivery transport.
        status: pending, sent or failed.
        sent_at: Set only when status is ``sent``.
    """

    user_id: str
    channel: str
    message: str
    alert_id: str | None = None
    notification_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: str = "pending"
    sent_at: datetime | None = None
    created_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    def __post_init__(self) -> None:
        if self.channel not in VALID_CHANNELS:
            raise ValueError(
                f"Invalid channel {self.channel!r}. "
                f"Must be one of: {sorted(VALID_CHANNELS)}"
            )
        if self.status not in VALID_STATUSES:
            raise ValueError(
                f"Invalid status {self.status!r}. "
                f"Must be one of: {sorted(VALID_STATUSES)}"
            )
        if self.sent_at is not None and self.status != "sent":
            raise ValueError("sent_at is only valid for sent notifications")

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            "id": self.notification_id,
            "user_id": self.user_id,
            "alert_id": self.alert_id,
            "channel": self.channel,
            "message": self.message,
            "status": self.status,
            "sent_at": self.sent_at.isoformat() if self.sent_at else None,
            "created_at": self.created_at.isoformat(),
        }
