"""Keeps the set of trip overlays on the map in line with the desired trips."""

import asyncio
import logging
from typing import Iterable, Optional

from transitmap.config import FRAME_INTERVAL_MS
from transitmap.errors import InvalidState, OracleUnavailable
from transitmap.map_widget import MapWidget
from transitmap.position_oracle import PositionOracle
from transitmap.trip_overlay import TripOverlay

logger = logging.getLogger("transitmap.trip_set")


class ActiveTripSetManager:
    """Owns the trip id -> ``TripOverlay`` mapping for one map screen."""

    def __init__(
        self,
        oracle: PositionOracle,
        map_widget: MapWidget,
        frame_interval_ms: float = FRAME_INTERVAL_MS,
    ):
        self._oracle = oracle
        self._map = map_widget
        self._frame_interval_ms = frame_interval_ms
        self._handles: dict[int, TripOverlay] = {}
        self._lock = asyncio.Lock()
        self._disposed = False

    @property
    def handles(self) -> list[TripOverlay]:
        return list(self._handles.values())

    @property
    def tracked_ids(self) -> set[int]:
        return set(self._handles)

    @property
    def disposed(self) -> bool:
        return self._disposed

    def get(self, trip_id: int) -> Optional[TripOverlay]:
        return self._handles.get(trip_id)

    def __len__(self) -> int:
        return len(self._handles)

    def __contains__(self, trip_id: object) -> bool:
        return trip_id in self._handles

    async def _create(self, trip_id: int) -> Optional[TripOverlay]:
        try:
            return await TripOverlay.create(
                trip_id, self._oracle, self._map, frame_interval_ms=self._frame_interval_ms
            )
        except OracleUnavailable as e:
            logger.warning(f"Could not add trip {trip_id}: {e}")
            return None

    async def reconcile(self, desired_trip_ids: Iterable[int]) -> None:
        """Add overlays for newly desired trips and remove the ones no longer wanted.

        Trips in both sets keep their overlay untouched. Trips whose creation
        failed stay untracked and are retried on the next call.
        """
        desired = set(desired_trip_ids)
        async with self._lock:
            if self._disposed:
                raise InvalidState("Trip set manager was disposed")

            tracked = set(self._handles)
            stale = tracked - desired
            added = sorted(desired - tracked)
            if not stale and not added:
                return

            for trip_id in sorted(stale):
                self._handles.pop(trip_id).remove()

            created = await asyncio.gather(*(self._create(t) for t in added))
            for handle in created:
                if handle is None:
                    continue
                if self._disposed:
                    handle.remove()
                    continue
                self._handles[handle.trip_id] = handle

            logger.info(
                f"Reconciled trips: -{len(stale)} "
                f"+{sum(h is not None for h in created)}/{len(added)}, tracking {len(self._handles)}"
            )

    def dispose(self) -> None:
        """Remove every tracked overlay. Calling it again does nothing."""
        if self._disposed:
            return
        self._disposed = True
        handles, self._handles = self._handles, {}
        for handle in handles.values():
            handle.remove()
        logger.info(f"Trip set manager disposed, removed {len(handles)} trips")
