"""Threshold configuration for reading evaluation.

One field per tier of the threshold table, so operators can tune
without a rebuild. All settings can be overridden via ``ALERTS_*``
environment variables (e.g. ``ALERTS_FILL_FLASH=90``).
"""

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ThresholdConfig(BaseSettings):
    """Configuration for the threshold policy and alert routing gate."""

    model_config = SettingsConfigDict(
        env_prefix="ALERTS_",
        case_sensitive=False,
        extra="ignore",
    )

    # Fill level (percent, inclusive lower bounds)
    fill_warning: int = Field(
        default=50,
        ge=0,
        le=100,
        description="fill_level at or above which fill_warning/medium fires",
    )
    fill_critical: int = Field(
        default=80,
        ge=0,
        le=100,
        description="fill_level at or above which fill_critical/high fires",
    )
    fill_flash: int = Field(
        default=95,
        ge=0,
        le=100,
        description="fill_level at or above which fill_critical/critical fires",
    )

    # Gas concentration (ppm, inclusive lower bounds)
    gas_warning: float = Field(
        default=200.0,
        ge=0.0,
        description="gas_level at or above which gas_detected/high fires",
    )
    gas_critical: float = Field(
        default=500.0,
        ge=0.0,
        description="gas_level at or above which gas_detected/critical fires",
    )

    # Temperature (°C, inclusive lower bounds)
    temperature_warning: float = Field(
        default=45.0,
        description="temperature at or above which maintenance_needed/high fires",
    )
    temperature_critical: float = Field(
        default=60.0,
        description="temperature at or above which maintenance_needed/critical fires",
    )

    # Battery (percent, inclusive upper bounds)
    battery_warning: float = Field(
        default=20.0,
        ge=0.0,
        le=100.0,
        description="battery_level at or below which maintenance_needed/medium fires",
    )
    battery_critical: float = Field(
        default=10.0,
        ge=0.0,
        le=100.0,
        description="battery_level at or below which maintenance_needed/critical fires",
    )

    # Severities that fan out to notification recipients
    notify_severities: list[str] = Field(
        default=["high", "critical"],
        description="Alert severities that trigger user notifications",
    )

    @model_validator(mode="after")
    def _check_tier_order(self) -> "ThresholdConfig":
        if not self.fill_warning <= self.fill_critical <= self.fill_flash:
            raise ValueError(
                "fill thresholds must satisfy warning <= critical <= flash"
            )
        if self.gas_warning > self.gas_critical:
            raise ValueError("gas_warning must not exceed gas_critical")
        if self.temperature_warning > self.temperature_critical:
            raise ValueError(
                "temperature_warning must not exceed temperature_critical"
            )
        if self.battery_critical > self.battery_warning:
            raise ValueError("battery_critical must not exceed battery_warning")
        return self
