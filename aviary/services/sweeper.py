"""Background sweeps for expired in-memory records.

Both the TTL cache and the rate limiter expire records lazily on access;
the sweeper reclaims memory for keys nobody reads again. Each sweeper is an
explicit object with ``start``/``stop`` so the application lifespan owns
it and tests can drive ``run_once`` directly.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

logger = logging.getLogger(__name__)


class PeriodicSweeper:
    """Runs a synchronous sweep callable on a fixed interval.

    A failing sweep is logged and the loop keeps going.
    """

    def __init__(self, name: str, sweep: Callable[[], int], *, interval_seconds: float) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        self.name = name
        self.interval_seconds = interval_seconds
        self._sweep = sweep
        self._task: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def run_once(self) -> int:
        """Run the sweep once. Returns records removed, or 0 if the sweep failed."""
        try:
            removed = self._sweep()
        except Exception:
            logger.exception("sweep.failed", extra={"sweeper": self.name})
            return 0
        if removed:
            logger.debug("sweep.completed", extra={"sweeper": self.name, "removed": removed})
        return removed

    async def start(self) -> None:
        if self.is_running:
            return
        logger.info(
            "sweep.started",
            extra={"sweeper": self.name, "interval_s": self.interval_seconds},
        )
        self._task = asyncio.create_task(self._loop(), name=f"sweeper:{self.name}")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("sweep.stopped", extra={"sweeper": self.name})

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            self.run_once()
