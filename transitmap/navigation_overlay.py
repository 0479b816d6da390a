"""Draws the chosen itinerary's ride legs on the map, replacing the previous one."""

import logging
from typing import Optional

from transitmap.errors import InvalidState
from transitmap.map_widget import MapWidget, OverlayRef, random_color
from transitmap.models import Itinerary, PolylineStyle

logger = logging.getLogger("transitmap.navigation")


class RenderedItinerary:
    """The overlays created by one ``render`` call."""

    def __init__(self, map_widget: MapWidget, refs: list[OverlayRef]):
        self._map = map_widget
        self.refs = refs
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    def dispose(self) -> None:
        if self._disposed:
            raise InvalidState("Rendered itinerary was already disposed")
        self._disposed = True
        for ref in self.refs:
            self._map.remove(ref)


class NavigationOverlayRenderer:
    def __init__(self, map_widget: MapWidget):
        self._map = map_widget
        self._current: Optional[RenderedItinerary] = None

    @property
    def current(self) -> Optional[RenderedItinerary]:
        return self._current

    def clear(self) -> None:
        if self._current is not None and not self._current.disposed:
            self._current.dispose()
        self._current = None

    def render(self, itinerary: Optional[Itinerary]) -> RenderedItinerary:
        """Replace whatever itinerary is on the map with ``itinerary``.

        Only ride legs are drawn; walk legs have no geometry to show.
        """
        self.clear()

        refs = []
        if itinerary is not None:
            for leg in itinerary.ride_legs:
                style = PolylineStyle(color=leg.color or random_color())
                refs.append(self._map.add_polyline(leg.path, style))

        logger.debug(f"Rendered itinerary with {len(refs)} ride legs")
        self._current = RenderedItinerary(self._map, refs)
        return self._current
