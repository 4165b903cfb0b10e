"""Poll loop configuration.

All settings can be overridden via ``RELAY_*`` environment variables.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DeliveryFailurePolicy = Literal["withhold", "advance"]


class RelayConfig(BaseSettings):
    """Settings for the scheduler and the per-cycle subscription processing."""

    model_config = SettingsConfigDict(
        env_prefix="RELAY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    poll_interval_seconds: float = Field(
        default=300.0,
        gt=0.0,
        description="Delay between the end of one cycle and the start of the next",
    )
    max_concurrent_subscriptions: int = Field(
        default=4,
        ge=1,
        le=64,
        description="Subscriptions processed in parallel within one cycle",
    )
    delivery_failure_policy: DeliveryFailurePolicy = Field(
        default="withhold",
        description=(
            "withhold: stop a batch at the first failed clip and leave the "
            "watermark before it; advance: skip failed clips and advance past them"
        ),
    )
