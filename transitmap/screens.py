"""Screen controllers: what a tap on the map means on each screen.

The simulation screen follows live trips around a point; the navigator
screen picks an origin and destination by tapping and shows the best
itinerary between them.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Optional

from transitmap.config import NEARBY_RADIUS_M, NEARBY_TRIP_LIMIT, SIMULATION_CENTER
from transitmap.errors import EmptySolutionSet, OracleUnavailable
from transitmap.map_session import MapSession
from transitmap.models import Coordinate, Itinerary, Leg, RideLeg
from transitmap.position_oracle import PositionOracle
from transitmap.time_utils import date_yyyymmdd, seconds_since_midnight

logger = logging.getLogger("transitmap.screens")

Notify = Callable[[dict[str, Any]], None]


def format_point(pos: Optional[Coordinate]) -> str:
    if pos is None:
        return ""
    return f"{pos.lat:.3f}, {pos.lng:.3f}"


def describe_leg(leg: Leg) -> str:
    if isinstance(leg, RideLeg):
        return leg.display_name
    return "Walk"


def summarize_itinerary(itinerary: Itinerary) -> dict[str, Any]:
    return {
        "legs": [describe_leg(leg) for leg in itinerary.legs],
        "duration_min": itinerary.duration_min,
        "start_time": itinerary.start_time,
        "end_time": itinerary.end_time,
    }


async def trips_for_simulation(
    oracle: PositionOracle,
    center: Optional[Coordinate] = None,
    limit: int = NEARBY_TRIP_LIMIT,
    radius_m: float = NEARBY_RADIUS_M,
) -> set[int]:
    """Trips running near ``center`` right now (the default simulation area if omitted)."""
    if center is None:
        center = Coordinate(lat=SIMULATION_CENTER[0], lng=SIMULATION_CENTER[1])
    seconds = seconds_since_midnight()
    date = date_yyyymmdd()
    logger.info(f"Looking for trips near {format_point(center)} at {seconds:.0f}s on {date}")
    return await oracle.nearby_trips(center, seconds, date, radius_m, limit)


class _Screen(ABC):
    """Base for screen controllers.

    Each tap runs in its own task. Requests are numbered as they start and
    only the newest one may change what the map shows; results of older
    requests that finish late are dropped.
    """

    def __init__(self, session: MapSession, notify: Optional[Notify] = None):
        self.session = session
        self._notify = notify or (lambda message: None)
        self._pending: set[asyncio.Task] = set()
        self._request = 0
        session.map.on_tap(self.on_tap)

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    def _begin_request(self) -> int:
        self._request += 1
        return self._request

    def _is_current(self, request: int) -> bool:
        return request == self._request and not self.session.disposed

    def on_tap(self, pos: Coordinate) -> None:
        if self.session.disposed:
            return
        self._spawn(self.handle_tap(pos))

    @abstractmethod
    async def handle_tap(self, pos: Coordinate) -> None: ...

    async def settle(self) -> None:
        """Wait for the work started by taps so far."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def dispose(self) -> None:
        for task in list(self._pending):
            task.cancel()
        await asyncio.gather(*list(self._pending), return_exceptions=True)
        await self.session.dispose()


class SimulationScreen(_Screen):
    """Live trips near a point; tapping the map moves the point."""

    def __init__(self, session: MapSession, oracle: PositionOracle, notify: Optional[Notify] = None):
        super().__init__(session, notify)
        self._oracle = oracle

    async def show_trips_near(self, center: Optional[Coordinate] = None) -> set[int]:
        request = self._begin_request()
        try:
            trips = await trips_for_simulation(self._oracle, center)
        except OracleUnavailable as e:
            logger.warning(f"Nearby trip lookup failed: {e}")
            return set()
        if not self._is_current(request):
            logger.debug(f"Dropping nearby trips for superseded point {format_point(center)}")
            return trips
        await self.session.set_desired_trips(trips)
        self._notify({"type": "trips", "trip_ids": sorted(trips)})
        return trips

    async def start(self) -> None:
        await self.show_trips_near()

    async def handle_tap(self, pos: Coordinate) -> None:
        await self.show_trips_near(pos)


@dataclass
class EndpointPicker:
    """Origin/destination chosen by successive taps.

    The first tap sets the origin, the second the destination; a tap after
    both are set starts over with a new origin.
    """
    origin: Optional[Coordinate] = None
    destination: Optional[Coordinate] = None

    @property
    def complete(self) -> bool:
        return self.origin is not None and self.destination is not None

    def tap(self, pos: Coordinate) -> "EndpointPicker":
        if self.origin is None or self.complete:
            self.origin, self.destination = pos, None
        else:
            self.destination = pos
        return self


class NavigatorScreen(_Screen):
    def __init__(self, session: MapSession, notify: Optional[Notify] = None):
        super().__init__(session, notify)
        self.picker = EndpointPicker()
        self.solutions: list[Itinerary] = []

    async def navigate(self, origin: Coordinate, destination: Coordinate) -> list[Itinerary]:
        request = self._begin_request()
        try:
            solutions = await self.session.set_navigation_request(origin, destination)
        except EmptySolutionSet:
            if not self._is_current(request):
                return []
            logger.warning("No route found")
            self.solutions = []
            self._notify({"type": "no_route"})
            return []
        if not self._is_current(request):
            return solutions
        self.solutions = solutions
        self._notify({
            "type": "solutions",
            "solutions": [summarize_itinerary(s) for s in self.solutions],
        })
        return self.solutions

    async def handle_tap(self, pos: Coordinate) -> None:
        self.picker.tap(pos)
        self._notify({
            "type": "endpoints",
            "origin": format_point(self.picker.origin),
            "destination": format_point(self.picker.destination),
        })
        if self.picker.complete:
            await self.navigate(self.picker.origin, self.picker.destination)
        else:
            self._begin_request()
            self.solutions = []
            self.session.clear_navigation()
