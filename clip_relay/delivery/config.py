"""Delivery configuration.

Covers the Discord bot credentials, retry behaviour per clip and how
timestamps are rendered in notifications. All settings can be
overridden via ``DISCORD_*`` environment variables (``DISCORD_TOKEN``
holds the bot token).
"""

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DeliveryConfig(BaseSettings):
    """Settings for pushing clip notifications to Discord channels."""

    model_config = SettingsConfigDict(
        env_prefix="DISCORD_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    token: str | None = None
    api_base: str = "https://discord.com/api/v10"
    timeout_seconds: float = Field(default=10.0, gt=0.0, le=120.0)

    retry_max_attempts: int = Field(
        default=2,
        ge=1,
        le=10,
        description="Send attempts per clip for retryable failures",
    )
    retry_delays: list[float] = Field(
        default=[2.0, 5.0],
        description="Per-attempt delay in seconds before each retry",
    )

    display_timezone: str = Field(
        default="Europe/Berlin",
        description="IANA zone used for the date/time caption",
    )
    date_format: str = "%d.%m.%Y"
    time_format: str = "%H:%M"

    @field_validator("display_timezone")
    @classmethod
    def validate_display_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {v!r}") from e
        return v

    @property
    def configured(self) -> bool:
        """Check if a bot token is present."""
        return bool(self.token)
