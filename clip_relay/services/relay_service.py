"""
Clip relay service - one poll cycle across all active subscriptions.

For each subscription:
    fetch clips newer than the watermark (oldest first)
    -> deliver each to the subscription's destination, in order
    -> record delivered clips in the history
    -> advance the watermark once, to the last clip processed

Failures are contained per subscription: an upstream outage, an unknown
broadcaster or a database hiccup for one subscription is logged and the
cycle moves on.
"""

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime

import structlog

from clip_relay.delivery.dispatcher import DeliveryDispatcher
from clip_relay.observability.logging import bind_context, clear_context
from clip_relay.observability.metrics import MetricsCollector, get_metrics
from clip_relay.services.config import RelayConfig
from clip_relay.subscriptions.repository import PersistenceFailure, SubscriptionStore
from clip_relay.subscriptions.schemas import ClipRecord, Subscription
from clip_relay.twitch.clips import ClipFetcher
from clip_relay.twitch.schemas import ClipCandidate

logger = structlog.get_logger(__name__)


@dataclass
class SubscriptionResult:
    """Outcome of processing one subscription in one cycle."""

    subscription_id: int
    broadcaster_handle: str
    fetched: int = 0
    delivered: int = 0
    failed: int = 0
    recorded: int = 0
    watermark_clip_id: str | None = None
    watermark_created_at: datetime | None = None
    watermark_advanced: bool = False
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class CycleReport:
    """Summary of a full poll cycle."""

    cycle_id: str
    results: list[SubscriptionResult] = field(default_factory=list)
    elapsed_seconds: float = 0.0

    @property
    def subscriptions(self) -> int:
        return len(self.results)

    @property
    def delivered(self) -> int:
        return sum(r.delivered for r in self.results)

    @property
    def failed(self) -> int:
        return sum(r.failed for r in self.results)

    @property
    def errors(self) -> int:
        return sum(1 for r in self.results if not r.ok)


class ClipRelayService:
    """
    Decides which clips are new for each subscription and delivers them.

    Usage:
        service = ClipRelayService(store, fetcher, dispatcher)
        report = await service.run_cycle()
    """

    def __init__(
        self,
        store: SubscriptionStore,
        fetcher: ClipFetcher,
        dispatcher: DeliveryDispatcher,
        config: RelayConfig | None = None,
        metrics: MetricsCollector | None = None,
    ) -> None:
        self._store = store
        self._fetcher = fetcher
        self._dispatcher = dispatcher
        self._config = config or RelayConfig()
        self._metrics = metrics or get_metrics()

    async def run_cycle(self) -> CycleReport:
        """
        Process every active subscription once.

        Listing the subscriptions is the only step whose failure aborts
        the cycle; the caller (Scheduler) contains that.
        """
        report = CycleReport(cycle_id=uuid.uuid4().hex[:12])
        start = time.monotonic()
        bind_context(cycle_id=report.cycle_id)

        try:
            subscriptions = await self._store.list_active()
            logger.info("Poll cycle started", subscriptions=len(subscriptions))

            semaphore = asyncio.Semaphore(self._config.max_concurrent_subscriptions)

            async def bounded(sub: Subscription) -> SubscriptionResult:
                async with semaphore:
                    return await self._process_isolated(sub)

            report.results = list(
                await asyncio.gather(*(bounded(sub) for sub in subscriptions))
            )
            report.elapsed_seconds = time.monotonic() - start
            self._metrics.record_cycle(report.subscriptions, report.elapsed_seconds)

            logger.info(
                "Poll cycle completed",
                subscriptions=report.subscriptions,
                delivered=report.delivered,
                failed=report.failed,
                errors=report.errors,
                elapsed_seconds=round(report.elapsed_seconds, 2),
            )
            return report
        finally:
            clear_context()

    async def _process_isolated(self, subscription: Subscription) -> SubscriptionResult:
        """Run process_subscription, turning any error into a failed result."""
        try:
            return await self.process_subscription(subscription)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(
                "Subscription processing failed",
                subscription_id=subscription.id,
                broadcaster=subscription.broadcaster_handle,
                error_type=type(e).__name__,
                error=str(e),
            )
            self._metrics.record_subscription_error(type(e).__name__)
            return SubscriptionResult(
                subscription_id=subscription.id,
                broadcaster_handle=subscription.broadcaster_handle,
                error=f"{type(e).__name__}: {e}",
            )

    async def process_subscription(self, subscription: Subscription) -> SubscriptionResult:
        """
        Deliver the clips that are new for one subscription.

        Errors from fetching (UpstreamUnavailable, CredentialError, ...)
        propagate before anything is delivered. Once delivery has started
        the watermark is advanced over whatever was processed, even if an
        unexpected error interrupts the batch.
        """
        since = subscription.watermark_created_at
        result = SubscriptionResult(
            subscription_id=subscription.id,
            broadcaster_handle=subscription.broadcaster_handle,
        )

        clips = await self._fetcher.fetch(subscription.broadcaster_handle, since)
        clips = [c for c in clips if c.created_at > since]
        result.fetched = len(clips)
        if not clips:
            return result

        last_processed: ClipCandidate | None = None
        try:
            for clip in clips:
                delivered = await self._dispatcher.deliver(
                    clip,
                    subscription.destination_id,
                    broadcaster_handle=subscription.broadcaster_handle,
                )

                if delivered:
                    result.delivered += 1
                    last_processed = clip
                    if await self._record_clip(clip, subscription):
                        result.recorded += 1
                    continue

                result.failed += 1
                if self._config.delivery_failure_policy == "withhold":
                    logger.warning(
                        "Delivery failed, withholding rest of batch",
                        subscription_id=subscription.id,
                        clip_id=clip.id,
                        withheld=len(clips) - result.delivered - result.failed,
                    )
                    break
                last_processed = clip
        finally:
            if last_processed is not None:
                await self._advance_watermark(subscription, last_processed, result)

        return result

    async def _record_clip(self, clip: ClipCandidate, subscription: Subscription) -> bool:
        """Append to the clip history; a failure here never blocks delivery."""
        try:
            inserted = await self._store.record_clip(
                ClipRecord.from_candidate(clip, subscription.broadcaster_handle)
            )
        except PersistenceFailure as e:
            logger.warning(
                "Could not record clip",
                subscription_id=subscription.id,
                clip_id=clip.id,
                error=str(e),
            )
            return False
        if inserted:
            self._metrics.clips_recorded.inc()
        return inserted

    async def _advance_watermark(
        self,
        subscription: Subscription,
        clip: ClipCandidate,
        result: SubscriptionResult,
    ) -> None:
        """Persist the new watermark; on failure the next cycle re-fetches the batch."""
        try:
            moved = await self._store.advance_watermark(
                subscription.id, clip.id, clip.created_at
            )
        except PersistenceFailure as e:
            logger.error(
                "Watermark advance failed, batch will be re-fetched next cycle",
                subscription_id=subscription.id,
                clip_id=clip.id,
                error=str(e),
            )
            self._metrics.record_subscription_error(type(e).__name__)
            result.error = f"{type(e).__name__}: {e}"
            return

        result.watermark_clip_id = clip.id
        result.watermark_created_at = clip.created_at
        result.watermark_advanced = moved
        if moved:
            self._metrics.watermark_advances.inc()
            logger.info(
                "Watermark advanced",
                subscription_id=subscription.id,
                clip_id=clip.id,
                created_at=clip.created_at.isoformat(),
                delivered=result.delivered,
            )
