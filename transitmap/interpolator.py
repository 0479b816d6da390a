"""Time-driven linear interpolation between two map positions.

An animation runs as an asyncio task that wakes once per display frame,
computes the position for the elapsed fraction of the duration and hands it
to a step callback. Every run returns a ``CancelHandle``; a newer run for the
same marker must cancel the older one so that the two never race.
"""

import asyncio
import logging
from typing import Callable, Optional

from transitmap.config import FRAME_INTERVAL_MS
from transitmap.models import Coordinate

logger = logging.getLogger("transitmap.interpolator")

StepCallback = Callable[[Coordinate], None]


def lerp(start: float, end: float, t: float) -> float:
    """Linear interpolation. t ranges from 0.0 to 1.0."""
    return start + (end - start) * t


def interpolate(start: Coordinate, end: Coordinate, fraction: float) -> Coordinate:
    """Point at ``fraction`` of the way from start to end, clamped to [0, 1]."""
    t = min(max(fraction, 0.0), 1.0)
    return Coordinate(lat=lerp(start.lat, end.lat, t), lng=lerp(start.lng, end.lng, t))


class CancelHandle:
    """Stops an interpolation run. Cancelling more than once is a no-op."""

    def __init__(self, task: Optional[asyncio.Task] = None):
        self._task = task
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def done(self) -> bool:
        return self._cancelled or self._task is None or self._task.done()

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        if self._task is not None and not self._task.done():
            self._task.cancel()


async def _run(
    handle: CancelHandle,
    start: Coordinate,
    end: Coordinate,
    duration_ms: float,
    on_step: StepCallback,
    frame_interval_ms: float,
) -> None:
    loop = asyncio.get_running_loop()
    started = loop.time()

    while True:
        fraction = (loop.time() - started) * 1000 / duration_ms
        # The task may not have observed cancel() yet if it was requested
        # from inside on_step.
        if handle.cancelled:
            return
        try:
            on_step(interpolate(start, end, fraction))
        except Exception as e:
            logger.error(f"Interpolation step failed, stopping animation: {e!r}")
            return
        if fraction >= 1.0:
            return
        await asyncio.sleep(frame_interval_ms / 1000)


def animate(
    start: Coordinate,
    end: Coordinate,
    duration_ms: float,
    on_step: StepCallback,
    frame_interval_ms: float = FRAME_INTERVAL_MS,
) -> CancelHandle:
    """Move from ``start`` to ``end`` over ``duration_ms``, calling ``on_step`` per frame.

    Must be called from inside a running event loop. With a non-positive
    duration the single terminal step at ``end`` happens before returning.
    """
    if duration_ms <= 0:
        on_step(end)
        return CancelHandle()

    handle = CancelHandle()
    handle._task = asyncio.get_running_loop().create_task(
        _run(handle, start, end, duration_ms, on_step, frame_interval_ms)
    )
    return handle
