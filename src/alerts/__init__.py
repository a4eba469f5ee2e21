"""Threshold evaluation and alert lifecycle for bin readings.

Components:
- ThresholdConfig: Pydantic settings for the threshold tiers
- CandidateAlert / Alert: Dataclasses for policy output and the alerts table
- evaluate_reading: Stateless threshold policy (fill → gas → temperature → battery)
- AlertRepository: Atomic batch insert, resolution and stats queries
- AlertService: Orchestrator for recording and resolving alerts
"""

from src.alerts.config import ThresholdConfig
from src.alerts.repository import AlertRepository
from src.alerts.schemas import (
    VALID_ALERT_TYPES,
    VALID_SEVERITIES,
    Alert,
    AlertSeverity,
    AlertType,
    CandidateAlert,
)
from src.alerts.service import AlertService
from src.alerts.triggers import evaluate_reading

__all__ = [
    "Alert",
    "AlertRepository",
    "AlertService",
    "AlertSeverity",
    "AlertType",
    "CandidateAlert",
    "ThresholdConfig",
    "VALID_ALERT_TYPES",
    "VALID_SEVERITIES",
    "evaluate_reading",
]
