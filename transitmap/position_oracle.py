"""Position oracle interface and its HTTP client.

The oracle owns trip schedules: it knows where a trip is at a given time of
day, which trips run near a point and what each trip's shape looks like.
"""

import logging
from typing import Any, Optional, Protocol

import httpx

from transitmap.config import HTTP_TIMEOUT, ORACLE_BASE_URL
from transitmap.errors import OracleUnavailable
from transitmap.models import Coordinate

logger = logging.getLogger("transitmap.oracle")


class PositionOracle(Protocol):
    async def position_at(self, trip_id: int, seconds_since_midnight: float) -> Coordinate: ...

    async def path_of(self, trip_id: int) -> list[Coordinate]: ...

    async def name_of(self, trip_id: int) -> str: ...

    async def nearby_trips(
        self,
        center: Coordinate,
        seconds_since_midnight: float,
        date: str,
        radius_m: float,
        limit: int,
    ) -> set[int]: ...


def _to_coordinate(raw: Any) -> Coordinate:
    if isinstance(raw, dict):
        return Coordinate(lat=float(raw["lat"]), lng=float(raw["lng"]))
    lat, lng = raw
    return Coordinate(lat=float(lat), lng=float(lng))


class HttpPositionOracle:
    """Client for a GTFS position service.

    Endpoints (all GET, JSON):
        /trips/{id}/position?seconds=S  -> {"lat": .., "lng": ..}
        /trips/{id}/shape               -> [{"lat": .., "lng": ..}, ...]
        /trips/{id}                     -> {"trip_id": .., "name": ..}
        /trips/near?lat&lng&seconds&date&radius&limit -> [trip_id, ...]

    A trip queried outside its running hours answers with an error status,
    which surfaces as ``OracleUnavailable`` like any other failure.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = (base_url or ORACLE_BASE_URL).rstrip("/")
        self._client = http_client

    async def _get(self, path: str, params: Optional[dict] = None, trip_id: Optional[int] = None) -> Any:
        url = f"{self.base_url}{path}"
        try:
            if self._client:
                resp = await self._client.get(url, params=params)
            else:
                async with httpx.AsyncClient(timeout=HTTP_TIMEOUT) as client:
                    resp = await client.get(url, params=params)
            resp.raise_for_status()
            return resp.json()
        except httpx.TimeoutException as e:
            raise OracleUnavailable(f"Oracle request timed out: {path}", trip_id) from e
        except httpx.HTTPError as e:
            raise OracleUnavailable(f"Oracle request failed: {path}: {e}", trip_id) from e
        except ValueError as e:
            raise OracleUnavailable(f"Oracle returned invalid JSON: {path}", trip_id) from e

    async def position_at(self, trip_id: int, seconds_since_midnight: float) -> Coordinate:
        data = await self._get(
            f"/trips/{trip_id}/position",
            params={"seconds": f"{seconds_since_midnight:.3f}"},
            trip_id=trip_id,
        )
        try:
            return _to_coordinate(data)
        except (KeyError, TypeError, ValueError) as e:
            raise OracleUnavailable(f"Malformed position for trip {trip_id}", trip_id) from e

    async def path_of(self, trip_id: int) -> list[Coordinate]:
        data = await self._get(f"/trips/{trip_id}/shape", trip_id=trip_id)
        try:
            return [_to_coordinate(p) for p in data]
        except (KeyError, TypeError, ValueError) as e:
            raise OracleUnavailable(f"Malformed shape for trip {trip_id}", trip_id) from e

    async def name_of(self, trip_id: int) -> str:
        data = await self._get(f"/trips/{trip_id}", trip_id=trip_id)
        if not isinstance(data, dict) or "name" not in data:
            raise OracleUnavailable(f"Missing name for trip {trip_id}", trip_id)
        return str(data["name"])

    async def nearby_trips(
        self,
        center: Coordinate,
        seconds_since_midnight: float,
        date: str,
        radius_m: float,
        limit: int,
    ) -> set[int]:
        params = {
            "lat": str(center.lat),
            "lng": str(center.lng),
            "seconds": f"{seconds_since_midnight:.3f}",
            "date": date,
            "radius": str(radius_m),
            "limit": str(limit),
        }
        data = await self._get("/trips/near", params=params)
        try:
            trips = {int(t) for t in data}
        except (TypeError, ValueError) as e:
            raise OracleUnavailable("Malformed nearby trip list") from e
        logger.info(f"Found {len(trips)} trips near ({center.lat:.4f}, {center.lng:.4f})")
        return trips
