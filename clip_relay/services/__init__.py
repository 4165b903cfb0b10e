"""Long-running services: the relay poll cycle and its scheduler."""

from clip_relay.services.config import RelayConfig
from clip_relay.services.relay_service import ClipRelayService, CycleReport, SubscriptionResult
from clip_relay.services.scheduler import Scheduler

__all__ = [
    "ClipRelayService",
    "CycleReport",
    "RelayConfig",
    "Scheduler",
    "SubscriptionResult",
]
