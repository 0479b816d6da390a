"""
Shared fakes for the overlay engine tests.

Provides a map widget that records every overlay mutation, a scripted
position oracle and a scripted route solver.
"""

import asyncio
import itertools
from typing import Optional

import pytest

from transitmap.errors import OracleUnavailable
from transitmap.models import (
    Coordinate,
    Itinerary,
    MarkerStyle,
    PolylineStyle,
    RideLeg,
    WalkLeg,
)


class RecordingMapWidget:
    """Map widget keeping overlays in memory and logging every call."""

    def __init__(self):
        self.ops: list[tuple] = []
        self.overlays: dict[str, tuple[str, object]] = {}
        self.marker_positions: dict[str, Coordinate] = {}
        self._tap_callbacks = []
        self._ids = itertools.count(1)

    def add_marker(self, pos: Coordinate, style: MarkerStyle) -> str:
        ref = f"marker-{next(self._ids)}"
        self.overlays[ref] = ("marker", style)
        self.marker_positions[ref] = pos
        self.ops.append(("add_marker", ref, pos))
        return ref

    def add_polyline(self, points: list[Coordinate], style: PolylineStyle) -> str:
        ref = f"polyline-{next(self._ids)}"
        self.overlays[ref] = ("polyline", list(points))
        self.ops.append(("add_polyline", ref, style.color))
        return ref

    def set_marker_position(self, ref: str, pos: Coordinate) -> None:
        if ref not in self.overlays:
            return
        self.marker_positions[ref] = pos
        self.ops.append(("move_marker", ref, pos))

    def remove(self, ref: str) -> None:
        if self.overlays.pop(ref, None) is None:
            return
        self.marker_positions.pop(ref, None)
        self.ops.append(("remove", ref))

    def screen_to_geo(self, x: float, y: float) -> Coordinate:
        return Coordinate(lat=y, lng=x)

    def on_tap(self, callback) -> None:
        self._tap_callbacks.append(callback)

    def tap(self, pos: Coordinate) -> None:
        for callback in self._tap_callbacks:
            callback(pos)

    # Helpers for assertions

    def count(self, kind: str) -> int:
        return sum(1 for k, _ in self.overlays.values() if k == kind)

    def ops_of(self, name: str) -> list[tuple]:
        return [op for op in self.ops if op[0] == name]


DEFAULT_POSITION = Coordinate(lat=45.440, lng=12.315)


class FakeOracle:
    """Position oracle answering from dictionaries.

    ``positions`` maps a trip id to a coordinate, or to a list of coordinates
    handed out one per call (the last one repeats).
    """

    def __init__(self, positions: Optional[dict] = None, delay: float = 0.0):
        self.positions = positions or {}
        self.delay = delay
        self.failing: set[int] = set()
        self.nearby: set[int] = set()
        self.nearby_by_center: dict[Coordinate, set[int]] = {}
        self.nearby_delays: list[float] = []
        self.position_calls: list[tuple[int, float]] = []
        self.path_calls: list[int] = []
        self.name_calls: list[int] = []
        self.nearby_calls: list[tuple] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def position_at(self, trip_id: int, seconds_since_midnight: float) -> Coordinate:
        self.position_calls.append((trip_id, seconds_since_midnight))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if trip_id in self.failing:
                raise OracleUnavailable(f"trip {trip_id} not running", trip_id)
            value = self.positions.get(trip_id, DEFAULT_POSITION)
            if isinstance(value, list):
                return value.pop(0) if len(value) > 1 else value[0]
            return value
        finally:
            self.in_flight -= 1

    async def path_of(self, trip_id: int) -> list[Coordinate]:
        self.path_calls.append(trip_id)
        if trip_id in self.failing:
            raise OracleUnavailable(f"no shape for trip {trip_id}", trip_id)
        return [Coordinate(lat=45.43, lng=12.30), Coordinate(lat=45.45, lng=12.33)]

    async def name_of(self, trip_id: int) -> str:
        self.name_calls.append(trip_id)
        return f"Line {trip_id}"

    async def nearby_trips(self, center, seconds_since_midnight, date, radius_m, limit) -> set[int]:
        self.nearby_calls.append((center, seconds_since_midnight, date, radius_m, limit))
        if self.nearby_delays:
            await asyncio.sleep(self.nearby_delays.pop(0))
        return set(self.nearby_by_center.get(center, self.nearby))


class FakeSolver:
    """Route solver returning canned itineraries.

    ``by_origin`` overrides the answer per origin; ``delays`` holds one sleep
    per call, in call order.
    """

    def __init__(self, solutions: Optional[list[Itinerary]] = None):
        self.solutions = solutions or []
        self.by_origin: dict[Coordinate, list[Itinerary]] = {}
        self.delays: list[float] = []
        self.calls: list[tuple[Coordinate, Coordinate]] = []

    async def solve(self, origin: Coordinate, destination: Coordinate) -> list[Itinerary]:
        self.calls.append((origin, destination))
        if self.delays:
            await asyncio.sleep(self.delays.pop(0))
        return list(self.by_origin.get(origin, self.solutions))


def ride(*points: tuple[float, float], name: str = "1 Lido", color: Optional[str] = "#DA291C") -> RideLeg:
    return RideLeg(
        path=[Coordinate(lat=lat, lng=lng) for lat, lng in points],
        display_name=name,
        color=color,
    )


@pytest.fixture
def map_widget():
    return RecordingMapWidget()


@pytest.fixture
def oracle():
    return FakeOracle()


@pytest.fixture
def walk_ride_walk():
    """Itinerary with legs [Walk, Ride(pathX), Walk]."""
    return Itinerary(legs=[
        WalkLeg(distance_km=0.3, duration_min=4),
        ride((45.44, 12.31), (45.45, 12.32), (45.46, 12.33)),
        WalkLeg(distance_km=0.1, duration_min=2),
    ])
