"""Per-screen engine: trip overlays, their position refresh and the itinerary layer."""

import logging
from typing import Iterable

from transitmap.config import FRAME_INTERVAL_MS, UPDATE_PERIOD_MS
from transitmap.errors import EmptySolutionSet, InvalidState
from transitmap.map_widget import MapWidget
from transitmap.models import Coordinate, Itinerary
from transitmap.navigation_overlay import NavigationOverlayRenderer
from transitmap.position_oracle import PositionOracle
from transitmap.refresh_scheduler import PositionRefreshScheduler
from transitmap.route_solver import RouteSolver
from transitmap.trip_set_manager import ActiveTripSetManager

logger = logging.getLogger("transitmap.session")


class MapSession:
    """Everything one map screen shows, created and disposed with that screen."""

    def __init__(
        self,
        oracle: PositionOracle,
        solver: RouteSolver,
        map_widget: MapWidget,
        tick_interval_ms: float = UPDATE_PERIOD_MS,
        frame_interval_ms: float = FRAME_INTERVAL_MS,
    ):
        self.map = map_widget
        self.tick_interval_ms = tick_interval_ms
        self.trips = ActiveTripSetManager(oracle, map_widget, frame_interval_ms)
        self.scheduler = PositionRefreshScheduler(oracle, lambda: self.trips.handles)
        self.navigation = NavigationOverlayRenderer(map_widget)
        self._solver = solver
        self._navigation_request = 0
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    def _check_alive(self) -> None:
        if self._disposed:
            raise InvalidState("Map session was disposed")

    async def set_desired_trips(self, trip_ids: Iterable[int]) -> None:
        """Show exactly these trips, moving live on the map."""
        self._check_alive()
        await self.trips.reconcile(trip_ids)
        if not self.scheduler.running and not self._disposed:
            self.scheduler.start(self.tick_interval_ms)

    async def set_navigation_request(
        self, origin: Coordinate, destination: Coordinate
    ) -> list[Itinerary]:
        """Solve origin -> destination and draw the best itinerary.

        Returns every candidate, best first. Raises ``EmptySolutionSet`` (after
        clearing any previously drawn itinerary) when there is none.

        A request superseded while it was being solved, by a newer request or
        by ``clear_navigation``, returns its solutions without drawing them.
        """
        self._check_alive()
        self._navigation_request += 1
        request = self._navigation_request
        logger.info(
            f"Navigating from ({origin.lat:.4f}, {origin.lng:.4f}) "
            f"to ({destination.lat:.4f}, {destination.lng:.4f})"
        )
        solutions = await self._solver.solve(origin, destination)
        if self._disposed:
            return solutions
        if request != self._navigation_request:
            logger.debug("Dropping itinerary of a superseded navigation request")
            return solutions
        if not solutions:
            self.navigation.render(None)
            raise EmptySolutionSet()
        self.navigation.render(solutions[0])
        return solutions

    def clear_navigation(self) -> None:
        self._check_alive()
        self._navigation_request += 1
        self.navigation.clear()

    async def dispose(self) -> None:
        """Stop polling and remove every overlay this session created."""
        if self._disposed:
            return
        self._disposed = True
        self.scheduler.stop()
        self.trips.dispose()
        self.navigation.clear()
        await self.scheduler.wait_closed()
        logger.info("Map session disposed")
