"""Alert lifecycle service: persisting candidates and resolving alerts.

Trigger logic is delegated to stateless functions in ``triggers.py``;
this is the component with side effects (DB writes, metrics).
"""

import logging

from src.alerts.repository import AlertRepository
from src.alerts.schemas import Alert, CandidateAlert
from src.observability.metrics import get_metrics
from src.services.errors import NotFoundError, StorageError
from src.users.repository import UserRepository

logger = logging.getLogger(__name__)


class AlertService:
    """Orchestrator for alert persistence and resolution."""

    def __init__(
        self,
        alert_repo: AlertRepository,
        user_repo: UserRepository | None = None,
    ) -> None:
        self._alert_repo = alert_repo
        self._user_repo = user_repo
        self._metrics = get_metrics()

    async def record_alerts(
        self,
        bin_id: str,
        candidates: list[CandidateAlert],
    ) -> list[Alert]:
        """Persist a reading's candidates as open alerts, all or nothing.

        A persistence failure is logged and yields an empty list; the
        caller's reading workflow is never aborted by it.

        Args:
            bin_id: Bin the reading belongs to.
            candidates: Output of ``evaluate_reading``.

        Returns:
            Persisted alerts in candidate order, or [] on failure.
        """
        if not candidates:
            return []

        alerts = [Alert.from_candidate(bin_id, c) for c in candidates]
        try:
            persisted = await self._alert_repo.create_batch(alerts)
        except Exception as e:
            self._metrics.alert_persist_failures.inc()
            logger.error(
                "Failed to persist %d alerts for bin %s: %s",
                len(alerts), bin_id, e,
            )
            return []

        for alert in persisted:
            self._metrics.record_alert_created(alert.alert_type, alert.severity)
        logger.info(
            "Alerts recorded for bin %s: %d candidates, %d persisted",
            bin_id, len(candidates), len(persisted),
        )
        return persisted

    async def resolve_open_alerts(
        self,
        bin_id: str,
        resolved_by: str | None = None,
    ) -> int:
        """Resolve every open alert on a bin (collection side effect).

        Returns:
            Count of alerts resolved; 0 is not an error.
        """
        count = await self._alert_repo.resolve_open_for_bin(bin_id, resolved_by)
        self._metrics.record_alerts_resolved("collection", count)
        logger.info("Resolved %d open alerts for bin %s", count, bin_id)
        return count

    async def resolve_one(
        self,
        alert_id: str,
        resolved: bool = True,
        resolved_by: str | None = None,
    ) -> Alert:
        """Explicitly resolve (or reopen) a single alert.

        Raises:
            NotFoundError: If no alert has this ID, or ``resolved_by``
                names no user.
            StorageError: If a lookup or the update fails.
        """
        if resolved and resolved_by is not None:
            await self._require_user(resolved_by)

        try:
            alert = await self._alert_repo.set_resolution(alert_id, resolved, resolved_by)
        except Exception as e:
            logger.error("Failed to update alert %s: %s", alert_id, e)
            raise StorageError(f"Could not update alert {alert_id}") from e
        if alert is None:
            raise NotFoundError("Alert", alert_id)
        if resolved:
            self._metrics.record_alerts_resolved("manual", 1)
        return alert

    async def delete_one(self, alert_id: str) -> None:
        """Delete a single alert.

        Raises:
            NotFoundError: If no alert has this ID.
            StorageError: If the delete fails.
        """
        try:
            deleted = await self._alert_repo.delete(alert_id)
        except Exception as e:
            logger.error("Failed to delete alert %s: %s", alert_id, e)
            raise StorageError(f"Could not delete alert {alert_id}") from e
        if not deleted:
            raise NotFoundError("Alert", alert_id)
        logger.info("Deleted alert %s", alert_id)

    async def _require_user(self, user_id: str) -> None:
        if self._user_repo is None:
            return
        try:
            user = await self._user_repo.get_by_id(user_id)
        except Exception as e:
            raise StorageError(f"Could not look up user {user_id}") from e
        if user is None:
            raise NotFoundError("User", user_id)
