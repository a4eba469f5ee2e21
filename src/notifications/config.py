"""Configuration for notification routing and delivery."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class NotificationConfig(BaseSettings):
    """Configuration for notification dispatch.

    All settings can be overridden via ``NOTIFICATIONS_*`` environment
    variables (e.g. ``NOTIFICATIONS_SMS_WEBHOOK_URL``).
    """

    model_config = SettingsConfigDict(
        env_prefix="NOTIFICATIONS_",
        case_sensitive=False,
        extra="ignore",
    )

    recipient_roles: list[str] = Field(
        default=["admin", "collector"],
        description="User roles that receive alert notifications",
    )
    sms_severities: list[str] = Field(
        default=["critical"],
        description="Alert severities that additionally go out by SMS",
    )
    delivery_timeout_seconds: float = Field(
        default=10.0,
        gt=0.0,
        le=120.0,
        description="Per-delivery transport timeout; a timeout is a failure",
    )
    max_concurrent_deliveries: int = Field(
        default=10,
        ge=1,
        le=200,
        description="Upper bound on in-flight transport calls",
    )
    circuit_breaker_threshold: int = Field(
        default=5,
        ge=1,
        description="Consecutive failures before circuit opens",
    )
    circuit_breaker_recovery_seconds: float = Field(
        default=60.0,
        ge=1.0,
        description="Seconds before circuit breaker probes recovery",
    )

    # Provider endpoints; a channel without a URL uses the logging transport
    email_webhook_url: str | None = Field(default=None)
    sms_webhook_url: str | None = Field(default=None)
    push_webhook_url: str | None = Field(default=None)

    def webhook_url_for(self, channel: str) -> str | None:
        return {
            "email": self.email_webhook_url,
            "sms": self.sms_webhook_url,
            "push": self.push_webhook_url,
        }.get(channel)
