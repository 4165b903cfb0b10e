"""Delivery of clip notifications to messaging destinations.

Components:
- DeliveryConfig: ``DISCORD_*`` settings
- build_notification: pure clip -> message payload rendering
- NotificationChannel / DiscordChannel: transports
- DeliveryFailure: transport-level failure with a retryable flag
- DeliveryDispatcher: render, send, retry and report success
"""

from clip_relay.delivery.channels import DeliveryFailure, DiscordChannel, NotificationChannel
from clip_relay.delivery.config import DeliveryConfig
from clip_relay.delivery.dispatcher import DeliveryDispatcher
from clip_relay.delivery.formatting import build_notification

__all__ = [
    "DeliveryConfig",
    "DeliveryDispatcher",
    "DeliveryFailure",
    "DiscordChannel",
    "NotificationChannel",
    "build_notification",
]
