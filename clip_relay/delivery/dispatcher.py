"""Delivery dispatcher: render a clip and push it to one destination.

Failures are contained here. ``deliver`` reports success or failure to
the relay service and never raises for a destination problem, so one
broken channel cannot abort a poll cycle.
"""

import asyncio
import logging

from clip_relay.delivery.channels import DeliveryFailure, NotificationChannel
from clip_relay.delivery.config import DeliveryConfig
from clip_relay.delivery.formatting import build_notification
from clip_relay.observability.metrics import MetricsCollector
from clip_relay.twitch.schemas import ClipCandidate

logger = logging.getLogger(__name__)


class DeliveryDispatcher:
    """Renders clip notifications and sends them with bounded retries."""

    def __init__(
        self,
        channel: NotificationChannel,
        config: DeliveryConfig | None = None,
        metrics: MetricsCollector | None = None,
    ) -> None:
        self._channel = channel
        self._config = config or DeliveryConfig()
        self._metrics = metrics

    @property
    def channel(self) -> NotificationChannel:
        return self._channel

    def render(self, clip: ClipCandidate, broadcaster_handle: str = "") -> dict:
        return build_notification(
            clip,
            broadcaster_handle=broadcaster_handle,
            display_timezone=self._config.display_timezone,
            date_format=self._config.date_format,
            time_format=self._config.time_format,
        )

    async def deliver(
        self,
        clip: ClipCandidate,
        destination_id: str,
        broadcaster_handle: str = "",
    ) -> bool:
        """
        Push one clip notification to ``destination_id``.

        Retryable failures (rate limits, 5xx, network) are retried up to
        ``retry_max_attempts``; permanent ones (unknown channel, missing
        permission) fail immediately.

        Returns:
            True if the destination accepted the message.
        """
        try:
            payload = self.render(clip, broadcaster_handle)
        except Exception as e:
            logger.error("Could not render notification for clip %s: %s", clip.id, e)
            self._record(False, "error")
            return False

        delays = self._config.retry_delays
        max_attempts = self._config.retry_max_attempts

        for attempt in range(max_attempts):
            try:
                await self._channel.send(destination_id, payload)
            except DeliveryFailure as e:
                if not e.retryable:
                    logger.warning(
                        "Permanent delivery failure for clip %s to %s: %s",
                        clip.id, destination_id, e,
                    )
                    self._record(False, "permanent")
                    return False

                logger.warning(
                    "Delivery of clip %s to %s failed (attempt %d/%d): %s",
                    clip.id, destination_id, attempt + 1, max_attempts, e,
                )
                if attempt < max_attempts - 1:
                    delay = delays[min(attempt, len(delays) - 1)] if delays else 0.0
                    if e.retry_after is not None:
                        delay = max(delay, e.retry_after)
                    await asyncio.sleep(delay)
                continue
            except Exception as e:
                logger.error(
                    "Unexpected error delivering clip %s to %s: %s",
                    clip.id, destination_id, e,
                )
                self._record(False, "error")
                return False

            if attempt > 0:
                logger.info(
                    "Clip %s delivered to %s on attempt %d",
                    clip.id, destination_id, attempt + 1,
                )
            self._record(True)
            return True

        logger.warning(
            "All %d attempts exhausted for clip %s on %s",
            max_attempts, clip.id, destination_id,
        )
        self._record(False, "retryable")
        return False

    def _record(self, success: bool, reason: str = "error") -> None:
        if self._metrics is not None:
            self._metrics.record_delivery(success, reason)
