"""Map widget interface and a WebSocket-backed implementation.

The engine only talks to the ``MapWidget`` protocol. ``WebSocketMapWidget``
keeps the overlay collection on the server side and turns every mutation
into a JSON command that a browser map applies, in order.
"""

import asyncio
import itertools
import logging
import math
import random
from typing import Any, Callable, Optional, Protocol

from transitmap.config import MAP_CENTER, MAP_ZOOM
from transitmap.models import Coordinate, MarkerStyle, PolylineStyle, Viewport

logger = logging.getLogger("transitmap.map_widget")

OverlayRef = str
TapCallback = Callable[[Coordinate], None]

TILE_SIZE = 256


class MapWidget(Protocol):
    def add_marker(self, pos: Coordinate, style: MarkerStyle) -> OverlayRef: ...

    def add_polyline(self, points: list[Coordinate], style: PolylineStyle) -> OverlayRef: ...

    def set_marker_position(self, ref: OverlayRef, pos: Coordinate) -> None: ...

    def remove(self, ref: OverlayRef) -> None: ...

    def screen_to_geo(self, x: float, y: float) -> Coordinate: ...

    def on_tap(self, callback: TapCallback) -> None: ...


def random_color() -> str:
    """Random ``#RRGGBB`` color used to tell overlays apart."""
    return "#" + "".join(random.choice("0123456789ABCDEF") for _ in range(6))


# --- Web Mercator ---------------------------------------------------------


def latlng_to_world(lat: float, lng: float, zoom: float) -> tuple[float, float]:
    """Project to world pixel coordinates (x, y) at the given zoom."""
    scale = TILE_SIZE * math.pow(2, zoom)
    x = (0.5 + lng / 360.0) * scale
    phi = math.radians(lat)
    y = (0.5 - math.log(math.tan(math.pi / 4 + phi / 2)) / (2 * math.pi)) * scale
    return x, y


def world_to_latlng(x: float, y: float, zoom: float) -> tuple[float, float]:
    scale = TILE_SIZE * math.pow(2, zoom)
    lng = (x / scale - 0.5) * 360.0
    lat = math.degrees(2 * math.atan(math.exp(2 * math.pi * (0.5 - y / scale))) - math.pi / 2)
    return lat, lng


class WebSocketMapWidget:
    """Map widget whose overlays live in a browser connected over a WebSocket.

    Commands are queued in mutation order; the connection's sender task
    takes them with ``next_command`` and writes each one as a JSON text
    frame. A marker has at most one move waiting in the queue: moving it
    again before that move is sent updates the waiting command in place.
    """

    def __init__(self, viewport: Optional[Viewport] = None):
        self.outbox: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
        self.viewport = viewport or Viewport(
            center=Coordinate(lat=MAP_CENTER[0], lng=MAP_CENTER[1]),
            zoom=MAP_ZOOM,
            width=1024,
            height=768,
        )
        self._overlays: dict[OverlayRef, str] = {}
        self._queued_moves: dict[OverlayRef, dict[str, Any]] = {}
        self._tap_callbacks: list[TapCallback] = []
        self._ids = itertools.count(1)

    @property
    def overlay_count(self) -> int:
        return len(self._overlays)

    def _next_ref(self, kind: str) -> OverlayRef:
        ref = f"{kind}-{next(self._ids)}"
        self._overlays[ref] = kind
        return ref

    def add_marker(self, pos: Coordinate, style: MarkerStyle) -> OverlayRef:
        ref = self._next_ref("marker")
        self.outbox.put_nowait({
            "type": "add_marker",
            "ref": ref,
            "position": pos.model_dump(),
            "style": style.model_dump(),
        })
        return ref

    def add_polyline(self, points: list[Coordinate], style: PolylineStyle) -> OverlayRef:
        ref = self._next_ref("polyline")
        self.outbox.put_nowait({
            "type": "add_polyline",
            "ref": ref,
            "points": [[p.lat, p.lng] for p in points],
            "style": style.model_dump(),
        })
        return ref

    def set_marker_position(self, ref: OverlayRef, pos: Coordinate) -> None:
        if self._overlays.get(ref) != "marker":
            return
        queued = self._queued_moves.get(ref)
        if queued is not None:
            queued["position"] = pos.model_dump()
            return
        command = {"type": "move_marker", "ref": ref, "position": pos.model_dump()}
        self._queued_moves[ref] = command
        self.outbox.put_nowait(command)

    def remove(self, ref: OverlayRef) -> None:
        if self._overlays.pop(ref, None) is None:
            logger.debug(f"Ignoring removal of unknown overlay {ref}")
            return
        self._queued_moves.pop(ref, None)
        self.outbox.put_nowait({"type": "remove", "ref": ref})

    def _taken(self, command: dict[str, Any]) -> dict[str, Any]:
        if command.get("type") == "move_marker" and self._queued_moves.get(command["ref"]) is command:
            del self._queued_moves[command["ref"]]
        return command

    async def next_command(self) -> dict[str, Any]:
        """Wait for the next command to send to the client."""
        return self._taken(await self.outbox.get())

    def next_command_nowait(self) -> dict[str, Any]:
        return self._taken(self.outbox.get_nowait())

    def update_viewport(self, viewport: Viewport) -> None:
        self.viewport = viewport

    def screen_to_geo(self, x: float, y: float) -> Coordinate:
        vp = self.viewport
        cx, cy = latlng_to_world(vp.center.lat, vp.center.lng, vp.zoom)
        lat, lng = world_to_latlng(cx + x - vp.width / 2, cy + y - vp.height / 2, vp.zoom)
        return Coordinate(lat=lat, lng=lng)

    def on_tap(self, callback: TapCallback) -> None:
        self._tap_callbacks.append(callback)

    def handle_tap(self, x: float, y: float) -> Coordinate:
        """Dispatch a client tap at viewport pixel (x, y) to the tap callbacks."""
        pos = self.screen_to_geo(x, y)
        for callback in self._tap_callbacks:
            callback(pos)
        return pos
