"""Notification repository: pending inserts and status transitions."""

import logging
from typing import Any

from src.notifications.schemas import Notification
from src.storage.database import Database

logger = logging.getLogger(__name__)


class NotificationRepository:
    """Repository for the ``notifications`` table."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def create_pending(self, notification: Notification) -> Notification:
        """Insert a notification in ``pending`` state.

        Returns:
            The created Notification with DB-assigned defaults.
        """
        sql = """
            INSERT INTO notifications (
                id, user_id, alert_id, channel, message, status, created_at
            ) VALUES ($1, $2, $3, $4, $5, 'pending', $6)
            RETURNING *
        """
        row = await self._db.fetchrow(
            sql,
            notification.notification_id,
            notification.user_id,
            notification.alert_id,
            notification.channel,
            notification.message,
            notification.created_at,
        )
        return _row_to_notification(row)

    async def mark_status(
        self,
        notification_id: str,
        status: str,
    ) -> Notification | None:
        """Move a notification to ``sent`` (stamping sent_at) or ``failed``.

        Returns:
            The updated Notification, or None if the row is gone.
        """
        sql = """
            UPDATE notifications
            SET status = $2,
                sent_at = CASE WHEN $2 = 'sent' THEN NOW() ELSE NULL END
            WHERE id = $1
            RETURNING *
        """
        row = await self._db.fetchrow(sql, notification_id, status)
        if row is None:
            return None
        return _row_to_notification(row)


def _row_to_notification(row: Any) -> Notification:
    """Convert an asyncpg Record to a Notification."""
    return Notification(
        notification_id=row["id"],
        user_id=row["user_id"],
        alert_id=row.get("alert_id"),
        channel=row["channel"],
        message=row["message"],
        status=row["status"],
        sent_at=row.get("sent_at"),
        created_at=row["created_at"],
    )
