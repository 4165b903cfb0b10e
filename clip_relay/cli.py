"""
Command-line interface for clip-relay.

Usage:
    clip-relay run                      # Poll forever on the configured interval
    clip-relay run-once                 # Run a single poll cycle
    clip-relay init-db                  # Create tables
    clip-relay subscribe HANDLE CHANNEL # Watch a broadcaster for a channel
    clip-relay unsubscribe HANDLE CHANNEL
    clip-relay subscriptions            # List subscriptions and watermarks
    clip-relay health                   # Check database and Twitch credentials
"""

import asyncio
import signal
from collections.abc import AsyncIterator
from contextlib import AsyncExitStack, asynccontextmanager

import click
import structlog

from clip_relay.config.settings import get_settings
from clip_relay.delivery.channels import DiscordChannel
from clip_relay.delivery.config import DeliveryConfig
from clip_relay.delivery.dispatcher import DeliveryDispatcher
from clip_relay.observability.logging import setup_logging
from clip_relay.observability.metrics import get_metrics
from clip_relay.services.config import RelayConfig
from clip_relay.services.relay_service import ClipRelayService
from clip_relay.services.scheduler import Scheduler
from clip_relay.storage.database import Database
from clip_relay.subscriptions.repository import SubscriptionStore
from clip_relay.subscriptions.schemas import EPOCH
from clip_relay.twitch.auth import TokenManager
from clip_relay.twitch.client import HelixClient
from clip_relay.twitch.clips import ClipFetcher, normalize_handle
from clip_relay.twitch.config import TwitchConfig
from clip_relay.twitch.http_client import HTTPClient, RetryConfig

logger = structlog.get_logger(__name__)


def _require_credentials(twitch: TwitchConfig, delivery: DeliveryConfig) -> None:
    """Refuse to start the relay without upstream and downstream credentials."""
    missing = []
    if not twitch.client_id:
        missing.append("TWITCH_CLIENT_ID")
    if not twitch.client_secret:
        missing.append("TWITCH_CLIENT_SECRET")
    if not delivery.token:
        missing.append("DISCORD_TOKEN")
    if missing:
        raise click.ClickException(
            f"Missing required environment variables: {', '.join(missing)}"
        )


def _build_token_manager(http: HTTPClient, twitch: TwitchConfig) -> TokenManager:
    return TokenManager(
        http,
        client_id=twitch.client_id or "",
        client_secret=twitch.client_secret or "",
        token_url=twitch.token_url,
        expiry_margin_seconds=twitch.token_expiry_margin_seconds,
        metrics=get_metrics(),
    )


@asynccontextmanager
async def relay_service(
    relay_config: RelayConfig | None = None,
) -> AsyncIterator[ClipRelayService]:
    """Connect the database and HTTP client and assemble a ClipRelayService."""
    twitch = TwitchConfig()
    delivery = DeliveryConfig()
    _require_credentials(twitch, delivery)

    async with AsyncExitStack() as stack:
        db = await stack.enter_async_context(Database())
        http = await stack.enter_async_context(
            HTTPClient(
                RetryConfig(max_retries=twitch.max_retries),
                timeout=twitch.request_timeout_seconds,
            )
        )

        metrics = get_metrics()
        tokens = _build_token_manager(http, twitch)
        helix = HelixClient(http, tokens, api_base=twitch.api_base, metrics=metrics)
        channel = DiscordChannel(
            delivery.token or "",
            api_base=delivery.api_base,
            timeout=delivery.timeout_seconds,
        )

        yield ClipRelayService(
            store=SubscriptionStore(db),
            fetcher=ClipFetcher(helix, twitch),
            dispatcher=DeliveryDispatcher(channel, delivery, metrics=metrics),
            config=relay_config,
            metrics=metrics,
        )


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(debug: bool) -> None:
    """Clip Relay - forwards new Twitch clips to Discord channels."""
    if debug:
        import os
        os.environ["LOG_LEVEL"] = "DEBUG"
        get_settings.cache_clear()

    setup_logging()


@main.command()
@click.option("--metrics/--no-metrics", default=True, help="Enable metrics server")
@click.option("--interval", default=None, type=float, help="Seconds between cycles")
def run(metrics: bool, interval: float | None) -> None:
    """Poll all active subscriptions until interrupted."""
    config = RelayConfig()
    if interval is not None:
        config = config.model_copy(update={"poll_interval_seconds": interval})

    async def _run():
        async with relay_service(config) as service:
            scheduler = Scheduler(service.run_cycle, config.poll_interval_seconds)

            if metrics:
                get_metrics().start_server()

            # Handle shutdown signals
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.add_signal_handler(sig, lambda: asyncio.create_task(scheduler.stop()))

            await scheduler.start()

    asyncio.run(_run())


@main.command("run-once")
def run_once() -> None:
    """Run a single poll cycle and print a summary."""

    async def _run():
        async with relay_service() as service:
            report = await service.run_cycle()

        click.echo(f"\nCycle {report.cycle_id} ({report.elapsed_seconds:.1f}s)")
        click.echo("-" * 50)
        for result in report.results:
            status = "ok" if result.ok else f"error: {result.error}"
            click.echo(
                f"  #{result.subscription_id} {result.broadcaster_handle}: "
                f"{result.delivered} delivered, {result.failed} failed ({status})"
            )
        click.echo("-" * 50)
        click.echo(
            f"Subscriptions: {report.subscriptions}  Delivered: {report.delivered}  "
            f"Failed: {report.failed}  Errors: {report.errors}"
        )

    asyncio.run(_run())


@main.command("init-db")
def init_db() -> None:
    """Initialize the database schema."""

    async def _run():
        async with Database() as db:
            await SubscriptionStore(db).create_tables()
        click.echo("Database initialized successfully")

    asyncio.run(_run())


@main.command()
@click.argument("handle")
@click.argument("channel_id")
def subscribe(handle: str, channel_id: str) -> None:
    """Relay clips of HANDLE to Discord channel CHANNEL_ID."""

    async def _run():
        async with Database() as db:
            sub = await SubscriptionStore(db).add_subscription(
                normalize_handle(handle), channel_id
            )
        click.echo(f"Subscription #{sub.id}: {sub.broadcaster_handle} -> {sub.destination_id}")

    asyncio.run(_run())


@main.command()
@click.argument("handle")
@click.argument("channel_id")
def unsubscribe(handle: str, channel_id: str) -> None:
    """Stop relaying clips of HANDLE to CHANNEL_ID."""

    async def _run():
        async with Database() as db:
            return await SubscriptionStore(db).deactivate(normalize_handle(handle), channel_id)

    if asyncio.run(_run()):
        click.echo("Subscription deactivated")
    else:
        click.echo("No active subscription found")


@main.command()
def subscriptions() -> None:
    """List subscriptions with their watermarks."""

    async def _run():
        async with Database() as db:
            return await SubscriptionStore(db).list_all()

    rows = asyncio.run(_run())
    if not rows:
        click.echo("No subscriptions")
        return

    for sub in rows:
        watermark = (
            f"{sub.watermark_clip_id} @ {sub.watermark_created_at.isoformat()}"
            if sub.watermark_created_at > EPOCH
            else "none"
        )
        state = "active" if sub.active else "inactive"
        click.echo(
            f"#{sub.id:<4} {sub.broadcaster_handle:<25} -> {sub.destination_id:<20} "
            f"[{state}] last: {watermark}"
        )


@main.command()
def health() -> None:
    """Check health of all dependencies."""

    async def check() -> dict[str, bool]:
        results: dict[str, bool] = {}
        twitch = TwitchConfig()
        delivery = DeliveryConfig()

        try:
            async with Database() as db:
                results["postgres"] = await db.health_check()
        except Exception as e:
            results["postgres"] = False
            logger.error("Postgres health check failed", error=str(e))

        results["twitch_configured"] = twitch.configured
        results["discord_configured"] = delivery.configured

        if twitch.configured:
            try:
                async with HTTPClient(timeout=twitch.request_timeout_seconds) as http:
                    await _build_token_manager(http, twitch).ensure_token()
                results["twitch_token"] = True
            except Exception as e:
                results["twitch_token"] = False
                logger.error("Twitch token check failed", error=str(e))

        return results

    results = asyncio.run(check())

    click.echo("\nHealth Check Results:")
    click.echo("-" * 40)

    all_healthy = True
    for name, status in results.items():
        icon = "✓" if status else "✗"
        color = "green" if status else "red"
        click.echo(click.style(f"  {icon} {name}: {status}", fg=color))
        if not status:
            all_healthy = False

    click.echo("-" * 40)

    if all_healthy:
        click.echo(click.style("All dependencies healthy!", fg="green"))
    else:
        click.echo(click.style("Some dependencies unhealthy", fg="red"))
        raise SystemExit(1)


if __name__ == "__main__":
    main()
