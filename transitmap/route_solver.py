"""Route solver interface and an OpenTripPlanner-backed implementation."""

import logging
from datetime import datetime
from typing import Optional, Protocol

import httpx

from transitmap.config import HTTP_TIMEOUT, OTP_BASE_URL
from transitmap.models import Coordinate, Itinerary, Leg, RideLeg, WalkLeg

logger = logging.getLogger("transitmap.solver")


class RouteSolver(Protocol):
    async def solve(self, origin: Coordinate, destination: Coordinate) -> list[Itinerary]: ...


_TRANSIT_MODES = {
    "BUS", "SUBWAY", "RAIL", "TRAM", "FERRY", "CABLE_CAR", "GONDOLA", "FUNICULAR",
}

_TRANSIT_MODE_COLORS = {
    "SUBWAY": "#F0CC49",
    "RAIL": "#3D8B37",
    "BUS": "#DA291C",
    "TRAM": "#DE7731",
    "FERRY": "#0072CE",
}


def decode_polyline(encoded: str) -> list[Coordinate]:
    """Decode a Google-style encoded polyline."""
    coords = []
    index = 0
    lat = 0
    lng = 0

    while index < len(encoded):
        deltas = []
        for _ in range(2):
            shift = 0
            result = 0
            while True:
                b = ord(encoded[index]) - 63
                index += 1
                result |= (b & 0x1F) << shift
                shift += 5
                if b < 0x20:
                    break
            deltas.append(~(result >> 1) if (result & 1) else (result >> 1))
        lat += deltas[0]
        lng += deltas[1]
        coords.append(Coordinate(lat=lat / 1e5, lng=lng / 1e5))

    return coords


def parse_leg(leg: dict) -> Leg:
    """Convert an OTP leg dict to a walk or ride leg.

    Non-transit modes (walking, cycling, driving) carry no geometry this
    engine renders and become walk legs.
    """
    mode = leg.get("mode", "WALK")
    distance_km = round(leg.get("distance", 0) / 1000, 2)
    duration_min = round(leg.get("duration", 0) / 60, 1)

    if mode not in _TRANSIT_MODES:
        return WalkLeg(distance_km=distance_km, duration_min=duration_min)

    encoded = (leg.get("legGeometry") or {}).get("points", "")
    if encoded:
        path = decode_polyline(encoded)
    else:
        path = [
            Coordinate(lat=leg["from"]["lat"], lng=leg["from"]["lon"]),
            Coordinate(lat=leg["to"]["lat"], lng=leg["to"]["lon"]),
        ]

    short_name = leg.get("routeShortName") or leg.get("route", "")
    long_name = leg.get("routeLongName", "")
    display_name = f"{short_name} {long_name}".strip() or mode.title()

    route_color = leg.get("routeColor")
    if route_color:
        color = route_color if route_color.startswith("#") else f"#{route_color}"
    else:
        color = _TRANSIT_MODE_COLORS.get(mode)

    return RideLeg(
        path=path,
        display_name=display_name,
        route_id=leg.get("routeId"),
        color=color,
        distance_km=distance_km,
        duration_min=duration_min,
    )


def parse_itinerary(itinerary: dict) -> Itinerary:
    start_time = itinerary.get("startTime")
    end_time = itinerary.get("endTime")
    return Itinerary(
        legs=[parse_leg(leg) for leg in itinerary.get("legs", [])],
        duration_min=round(itinerary.get("duration", 0) / 60, 1),
        start_time=datetime.fromtimestamp(start_time / 1000).strftime("%H:%M") if start_time else None,
        end_time=datetime.fromtimestamp(end_time / 1000).strftime("%H:%M") if end_time else None,
    )


class OtpRouteSolver:
    """Plans transit itineraries with OpenTripPlanner's REST ``plan`` endpoint."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        num_itineraries: int = 3,
    ):
        self.base_url = (base_url or OTP_BASE_URL).rstrip("/")
        self._client = http_client
        self.num_itineraries = num_itineraries

    async def solve(
        self,
        origin: Coordinate,
        destination: Coordinate,
        departure_time: Optional[datetime] = None,
    ) -> list[Itinerary]:
        """Itineraries ranked best-first, or an empty list when none was found."""
        now = departure_time or datetime.now()
        params = {
            "fromPlace": f"{origin.lat},{origin.lng}",
            "toPlace": f"{destination.lat},{destination.lng}",
            "mode": "TRANSIT,WALK",
            "date": now.strftime("%Y-%m-%d"),
            "time": now.strftime("%H:%M:%S"),
            "numItineraries": str(self.num_itineraries),
            "arriveBy": "false",
        }
        url = f"{self.base_url}/otp/routers/default/plan"

        try:
            if self._client:
                resp = await self._client.get(url, params=params)
            else:
                async with httpx.AsyncClient(timeout=HTTP_TIMEOUT) as client:
                    resp = await client.get(url, params=params)
            resp.raise_for_status()
            data = resp.json()
        except httpx.TimeoutException:
            logger.warning("OTP request timed out")
            return []
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"OTP query failed: {e}")
            return []

        try:
            plan = data.get("plan")
            if not plan:
                error = data.get("error") or {}
                logger.warning(f"OTP returned no plan: {error.get('message', 'unknown')}")
                return []
            itineraries = [parse_itinerary(it) for it in plan.get("itineraries", [])]
        except Exception as e:
            logger.warning(f"Unreadable OTP plan: {e!r}")
            return []

        logger.info(f"OTP returned {len(itineraries)} itineraries")
        return itineraries
