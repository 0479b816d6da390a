"""Map overlays (moving marker + static path) for a single trip."""

import asyncio
import logging
from typing import Optional

from transitmap.config import FRAME_INTERVAL_MS
from transitmap.errors import InvalidState
from transitmap.interpolator import CancelHandle, animate
from transitmap.map_widget import MapWidget, OverlayRef, random_color
from transitmap.models import Coordinate, MarkerStyle, PolylineStyle
from transitmap.position_oracle import PositionOracle
from transitmap.time_utils import seconds_since_midnight

logger = logging.getLogger("transitmap.overlay")


class TripOverlay:
    """Owns one trip's marker, path polyline and marker animation.

    ``last_known_position`` is the most recently polled position and the
    start of the next animation; ``displayed_position`` is where the marker
    currently is on screen, which lags behind while an animation runs.
    """

    def __init__(
        self,
        trip_id: int,
        map_widget: MapWidget,
        name: str,
        path: list[Coordinate],
        position: Coordinate,
        color: Optional[str] = None,
        frame_interval_ms: float = FRAME_INTERVAL_MS,
    ):
        self.trip_id = trip_id
        self.name = name
        self.path = path
        self.color = color or random_color()
        self.last_known_position = position
        self.displayed_position = position
        self._map = map_widget
        self._frame_interval_ms = frame_interval_ms
        self._interpolation: Optional[CancelHandle] = None
        self._removed = False

        self.path_ref: OverlayRef = map_widget.add_polyline(path, PolylineStyle(color=self.color))
        self.marker_ref: OverlayRef = map_widget.add_marker(
            position, MarkerStyle(color=self.color, label=name)
        )

    @classmethod
    async def create(
        cls,
        trip_id: int,
        oracle: PositionOracle,
        map_widget: MapWidget,
        seconds: Optional[float] = None,
        frame_interval_ms: float = FRAME_INTERVAL_MS,
    ) -> "TripOverlay":
        """Fetch the trip's shape, name and current position, then draw it.

        Raises ``OracleUnavailable`` before touching the map if any lookup fails.
        """
        now = seconds if seconds is not None else seconds_since_midnight()
        path, name, position = await asyncio.gather(
            oracle.path_of(trip_id),
            oracle.name_of(trip_id),
            oracle.position_at(trip_id, now),
        )
        logger.debug(f"Trip {trip_id} ({name}) starts at ({position.lat:.5f}, {position.lng:.5f})")
        return cls(trip_id, map_widget, name, path, position, frame_interval_ms=frame_interval_ms)

    @property
    def removed(self) -> bool:
        return self._removed

    @property
    def animating(self) -> bool:
        return self._interpolation is not None and not self._interpolation.done

    def _check_alive(self) -> None:
        if self._removed:
            raise InvalidState(f"Trip overlay {self.trip_id} was already removed")

    def _move_marker(self, pos: Coordinate) -> None:
        if self._removed:
            return
        self.displayed_position = pos
        self._map.set_marker_position(self.marker_ref, pos)

    def refresh(self, new_position: Coordinate, duration_ms: float) -> None:
        """Animate the marker towards ``new_position`` over ``duration_ms``.

        Any animation still running is cancelled first; the new one starts
        from the previous poll, not from the marker's on-screen position.
        """
        self._check_alive()
        if self._interpolation is not None:
            self._interpolation.cancel()

        self._interpolation = animate(
            self.last_known_position, new_position, duration_ms,
            self._move_marker, self._frame_interval_ms,
        )
        self.last_known_position = new_position

    def remove(self) -> None:
        self._check_alive()
        if self._interpolation is not None:
            self._interpolation.cancel()
            self._interpolation = None
        self._removed = True
        self._map.remove(self.marker_ref)
        self._map.remove(self.path_ref)
        logger.debug(f"Removed overlays for trip {self.trip_id}")
