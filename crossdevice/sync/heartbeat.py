"""Periodic connectivity probe for satellites."""

import asyncio
import logging
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)


class Heartbeat:
    """Background task that probes the hub on a fixed interval.

    Each beat compares connectivity before and after the probe. Going
    offline is logged; coming back online is logged and triggers the
    reconnect callback (the sync engine's replay).
    """

    def __init__(
        self,
        probe: Callable[[], Awaitable[bool]],
        is_online: Callable[[], bool],
        on_reconnect: Callable[[], Awaitable[object]],
        interval_seconds: float = 30.0,
    ):
        """Initialize the heartbeat.

        Args:
            probe: Coroutine function that checks the hub and returns reachability.
            is_online: Returns the current connectivity state.
            on_reconnect: Awaited after an offline to online transition.
            interval_seconds: Fixed delay between probes.
        """
        self._probe = probe
        self._is_online = is_online
        self._on_reconnect = on_reconnect
        self._interval = interval_seconds
        self._task: asyncio.Task | None = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def interval_seconds(self) -> float:
        return self._interval

    async def start(self) -> None:
        """Start probing as a background task."""
        if self._running:
            return

        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info(f"Heartbeat started (interval={self._interval}s)")

    async def stop(self) -> None:
        """Stop probing and wait for the task to finish."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Heartbeat stopped")

    async def beat(self) -> bool:
        """Probe once and handle any state transition.

        Returns:
            Connectivity after the probe.
        """
        was_online = self._is_online()
        online = await self._probe()

        if not was_online and online:
            logger.info("Reconnected to hub")
            await self._on_reconnect()
        elif was_online and not online:
            logger.warning("Working offline - writes will sync when reconnected")

        return online

    async def _run_loop(self) -> None:
        while self._running:
            await asyncio.sleep(self._interval)
            try:
                await self.beat()
            except Exception as e:
                logger.error(f"Heartbeat failed: {e}", exc_info=True)
