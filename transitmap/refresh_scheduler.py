"""Periodic position polling for every tracked trip overlay.

One asyncio task per scheduler. The next tick is only scheduled once the
previous tick's refreshes have all been dispatched, so a slow oracle pushes
later ticks back instead of stacking them up.
"""

import asyncio
import logging
from typing import Callable, Iterable, Optional

from transitmap.errors import InvalidState, OracleUnavailable
from transitmap.position_oracle import PositionOracle
from transitmap.time_utils import seconds_since_midnight
from transitmap.trip_overlay import TripOverlay

logger = logging.getLogger("transitmap.scheduler")


class PositionRefreshScheduler:
    def __init__(
        self,
        oracle: PositionOracle,
        handles: Callable[[], Iterable[TripOverlay]],
        clock: Callable[[], float] = seconds_since_midnight,
    ):
        self._oracle = oracle
        self._handles = handles
        self._clock = clock
        self._task: Optional[asyncio.Task] = None
        self._stopped = False
        self._sleeping = False
        self.tick_interval_ms: float = 0
        self.tick_count = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, tick_interval_ms: float) -> None:
        if self.running:
            raise InvalidState("Position refresh scheduler is already running")
        self.tick_interval_ms = tick_interval_ms
        self._stopped = False
        self._task = asyncio.get_running_loop().create_task(self._loop())
        logger.info(f"Position refresh started, every {tick_interval_ms:.0f} ms")

    def stop(self) -> None:
        """Prevent any further tick. A tick already in progress still finishes."""
        self._stopped = True
        if self._task is not None and self._sleeping and not self._task.done():
            self._task.cancel()
        logger.info("Position refresh stopped")

    async def wait_closed(self) -> None:
        if self._task is None:
            return
        try:
            await self._task
        except asyncio.CancelledError:
            pass

    async def _loop(self) -> None:
        while not self._stopped:
            self._sleeping = True
            try:
                await asyncio.sleep(self.tick_interval_ms / 1000)
            finally:
                self._sleeping = False
            if self._stopped:
                break
            try:
                await self.tick()
            except Exception as e:
                logger.error(f"Position refresh tick failed: {e}")

    async def tick(self) -> None:
        """Poll the oracle once for every tracked trip and animate towards the answers."""
        now = self._clock()
        handles = list(self._handles())
        self.tick_count += 1
        logger.debug(f"Tick {self.tick_count}: refreshing {len(handles)} trips at {now:.1f}s")
        await asyncio.gather(*(self._refresh(handle, now) for handle in handles))

    async def _refresh(self, handle: TripOverlay, now: float) -> None:
        try:
            position = await self._oracle.position_at(handle.trip_id, now)
        except OracleUnavailable as e:
            logger.warning(f"Keeping last position of trip {handle.trip_id}: {e}")
            return
        # Removed while the oracle call was pending.
        if handle.removed:
            return
        handle.refresh(position, self.tick_interval_ms)
