"""Shared fixtures for notification tests."""

import pytest

from src.alerts.schemas import Alert
from src.users.schemas import User


@pytest.fixture
def collector():
    return User(
        user_id="user-collector",
        email="collector@example.com",
        full_name="Casey Collector",
        role="collector",
        phone="+15550001111",
    )


@pytest.fixture
def admin_without_phone():
    return User(
        user_id="user-admin",
        email="admin@example.com",
        full_name="Alex Admin",
        role="admin",
    )


@pytest.fixture
def critical_alert():
    return Alert(
        alert_id="alert-critical",
        bin_id="bin-1",
        alert_type="fill_critical",
        severity="critical",
        message="Bin is 97% full. FLASH ALERT! Immediate collection required.",
    )


@pytest.fixture
def high_alert():
    return Alert(
        alert_id="alert-high",
        bin_id="bin-1",
        alert_type="gas_detected",
        severity="high",
        message="Elevated gas level detected: 250 ppm.",
    )
