"""Stateless trigger functions for reading evaluation.

Each function checks one measurement of a reading against the
configured tiers and returns a CandidateAlert if a tier is breached, or
None otherwise. No I/O, no state: persistence and notification live in
AlertService and the ingestion coordinator.

Tiers are mutually exclusive within a measurement; only the most severe
matching tier fires.
"""

from typing import Protocol

from src.alerts.config import ThresholdConfig
from src.alerts.schemas import CandidateAlert


class ReadingLike(Protocol):
    fill_level: int
    gas_level: float | None
    temperature: float | None
    battery_level: float | None


def _fmt(value: float) -> str:
    # 250.0 -> "250", 47.5 -> "47.5"
    return f"{value:g}"


def check_fill_level(
    reading: ReadingLike,
    config: ThresholdConfig,
) -> CandidateAlert | None:
    """Check the fill percentage against the flash/critical/warning tiers.

    Args:
        reading: Reading being evaluated.
        config: Threshold configuration.

    Returns:
        CandidateAlert or None.
    """
    fill = reading.fill_level

    if fill >= config.fill_flash:
        return CandidateAlert(
            alert_type="fill_critical",
            severity="critical",
            message=f"Bin is {fill}% full. FLASH ALERT! Immediate collection required.",
        )
    if fill >= config.fill_critical:
        return CandidateAlert(
            alert_type="fill_critical",
            severity="high",
            message=f"Bin is {fill}% full, approaching capacity.",
        )
    if fill >= config.fill_warning:
        return CandidateAlert(
            alert_type="fill_warning",
            severity="medium",
            message=f"Bin is {fill}% full, schedule collection soon.",
        )
    return None


def check_gas_level(
    reading: ReadingLike,
    config: ThresholdConfig,
) -> CandidateAlert | None:
    """Check gas concentration (ppm). Absent gas_level never fires."""
    gas = reading.gas_level
    if gas is None:
        return None

    if gas >= config.gas_critical:
        return CandidateAlert(
            alert_type="gas_detected",
            severity="critical",
            message=f"Dangerous gas level detected: {_fmt(gas)} ppm.",
        )
    if gas >= config.gas_warning:
        return CandidateAlert(
            alert_type="gas_detected",
            severity="high",
            message=f"Elevated gas level detected: {_fmt(gas)} ppm.",
        )
    return None


def check_temperature(
    reading: ReadingLike,
    config: ThresholdConfig,
) -> CandidateAlert | None:
    """Check internal temperature (°C). Absent temperature never fires."""
    temperature = reading.temperature
    if temperature is None:
        return None

    if temperature >= config.temperature_critical:
        return CandidateAlert(
            alert_type="maintenance_needed",
            severity="critical",
            message=f"Extreme temperature detected: {_fmt(temperature)}°C.",
        )
    if temperature >= config.temperature_warning:
        return CandidateAlert(
            alert_type="maintenance_needed",
            severity="high",
            message=f"High temperature detected: {_fmt(temperature)}°C.",
        )
    return None


def check_battery_level(
    reading: ReadingLike,
    config: ThresholdConfig,
) -> CandidateAlert | None:
    """Check sensor battery. Tiers are upper bounds (lower is worse)."""
    battery = reading.battery_level
    if battery is None:
        return None

    if battery <= config.battery_critical:
        return CandidateAlert(
            alert_type="maintenance_needed",
            severity="critical",
            message=f"Battery critically low: {_fmt(battery)}%.",
        )
    if battery <= config.battery_warning:
        return CandidateAlert(
            alert_type="maintenance_needed",
            severity="medium",
            message=f"Battery low: {_fmt(battery)}%.",
        )
    return None


def evaluate_reading(
    reading: ReadingLike,
    config: ThresholdConfig | None = None,
) -> list[CandidateAlert]:
    """Run every measurement check for a single reading.

    Order is fixed: fill, gas, temperature, battery. At most one
    candidate per measurement, so at most four in total.

    Args:
        reading: Reading being evaluated.
        config: Threshold configuration (defaults if omitted).

    Returns:
        List of candidate alerts (may be empty).
    """
    config = config or ThresholdConfig()
    candidates: list[CandidateAlert] = []

    for check in (
        check_fill_level,
        check_gas_level,
        check_temperature,
        check_battery_level,
    ):
        candidate = check(reading, config)
        if candidate is not None:
            candidates.append(candidate)

    return candidates
