"""
Fixed-delay scheduler for poll cycles.

Runs one cycle immediately, then waits ``interval_seconds`` after each
cycle *completes* before starting the next, so cycles never overlap and
a slow cycle cannot build a backlog. Errors escaping a cycle are logged
and the loop carries on.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Any

import structlog

logger = structlog.get_logger(__name__)


class Scheduler:
    """
    Owns the poll loop lifecycle.

    Usage:
        scheduler = Scheduler(service.run_cycle, interval_seconds=300)
        await scheduler.start()   # runs until stop() is called

    Tests drive ``run_cycle_once()`` directly without any timers.
    """

    def __init__(
        self,
        cycle: Callable[[], Awaitable[Any]],
        interval_seconds: float,
        name: str = "clip_relay",
    ) -> None:
        self._cycle = cycle
        self._interval = interval_seconds
        self._name = name

        self._running = False
        self._stop_event = asyncio.Event()
        self._cycles_completed = 0
        self._cycles_failed = 0
        self._last_cycle_started: float | None = None
        self._last_cycle_finished: float | None = None

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def cycles_completed(self) -> int:
        return self._cycles_completed

    @property
    def cycles_failed(self) -> int:
        return self._cycles_failed

    async def run_cycle_once(self) -> bool:
        """
        Run a single cycle, containing any error it raises.

        Returns:
            True if the cycle finished without raising.
        """
        self._last_cycle_started = time.monotonic()
        try:
            await self._cycle()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._cycles_failed += 1
            logger.error(
                "Poll cycle raised",
                scheduler=self._name,
                error_type=type(e).__name__,
                error=str(e),
            )
            return False
        finally:
            self._last_cycle_finished = time.monotonic()

        self._cycles_completed += 1
        return True

    async def start(self) -> None:
        """Run cycles until ``stop()`` is called."""
        if self._running:
            raise RuntimeError(f"Scheduler {self._name} is already running")

        self._running = True
        self._stop_event.clear()
        logger.info("Scheduler started", scheduler=self._name, interval=self._interval)

        try:
            while not self._stop_event.is_set():
                await self.run_cycle_once()
                if self._stop_event.is_set():
                    break
                await self._wait_interval()
        except asyncio.CancelledError:
            logger.info("Scheduler cancelled", scheduler=self._name)
        finally:
            self._running = False
            logger.info(
                "Scheduler stopped",
                scheduler=self._name,
                cycles_completed=self._cycles_completed,
                cycles_failed=self._cycles_failed,
            )

    async def stop(self) -> None:
        """
        Request shutdown.

        The wait between cycles is interrupted immediately; a cycle that is
        already running is allowed to finish.
        """
        logger.info("Stopping scheduler", scheduler=self._name)
        self._stop_event.set()

    async def _wait_interval(self) -> None:
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
        except asyncio.TimeoutError:
            pass
