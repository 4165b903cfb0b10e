"""Twitch Helix configuration.

All settings can be overridden via ``TWITCH_*`` environment variables,
e.g. ``TWITCH_CLIENT_ID`` and ``TWITCH_CLIENT_SECRET``.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class TwitchConfig(BaseSettings):
    """Credentials, endpoints and clip query limits for the Helix API."""

    model_config = SettingsConfigDict(
        env_prefix="TWITCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    client_id: str | None = None
    client_secret: str | None = None

    api_base: str = "https://api.twitch.tv/helix"
    token_url: str = "https://id.twitch.tv/oauth2/token"

    page_size: int = Field(
        default=20,
        ge=1,
        le=100,
        description="Clips requested per Helix page (the 'first' parameter)",
    )
    max_pages: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Pagination cursors followed per broadcaster per cycle",
    )
    lookback_hours: int = Field(
        default=24,
        ge=1,
        description="Window queried for a subscription that has never delivered",
    )
    max_lookback_hours: int = Field(
        default=168,
        ge=1,
        description="Furthest back a stale watermark is allowed to query",
    )

    request_timeout_seconds: float = Field(default=10.0, gt=0.0, le=120.0)
    max_retries: int = Field(
        default=0,
        ge=0,
        le=10,
        description="Retries on 429/5xx/transport errors (0 = fail fast to the caller)",
    )
    token_expiry_margin_seconds: int = Field(
        default=60,
        ge=0,
        description="Refresh the app token this long before it expires",
    )
    user_cache_ttl_seconds: int = Field(
        default=3600,
        ge=0,
        description="TTL for handle -> broadcaster id lookups (0 = no caching)",
    )

    @property
    def configured(self) -> bool:
        """Check if client credentials are present."""
        return bool(self.client_id and self.client_secret)
