"""
Tests for the HTTP position oracle client.
"""

import asyncio

import httpx
import pytest

from transitmap.errors import OracleUnavailable
from transitmap.models import Coordinate
from transitmap.position_oracle import HttpPositionOracle

ROUTES = {
    "/trips/101/position": {"lat": 45.441, "lng": 12.316},
    "/trips/101/shape": [{"lat": 45.44, "lng": 12.31}, [45.45, 12.32]],
    "/trips/101": {"trip_id": 101, "name": "N Lido"},
    "/trips/near": [101, "102", 103],
    "/trips/202/position": {"latitude": 1},
}


def handler(request: httpx.Request) -> httpx.Response:
    if request.url.path in ROUTES:
        return httpx.Response(200, json=ROUTES[request.url.path])
    return httpx.Response(404, json={"error": "trip not running"})


@pytest.fixture
def oracle():
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpPositionOracle("http://oracle.test/", client)


class TestHttpPositionOracle:
    def test_position_at(self, oracle):
        pos = asyncio.run(oracle.position_at(101, 36000.25))
        assert pos == Coordinate(lat=45.441, lng=12.316)

    def test_path_of_accepts_pairs_and_objects(self, oracle):
        path = asyncio.run(oracle.path_of(101))
        assert path == [Coordinate(lat=45.44, lng=12.31), Coordinate(lat=45.45, lng=12.32)]

    def test_name_of(self, oracle):
        assert asyncio.run(oracle.name_of(101)) == "N Lido"

    def test_nearby_trips(self):
        seen = {}

        def capture(request):
            seen["params"] = request.url.params
            return handler(request)

        client = httpx.AsyncClient(transport=httpx.MockTransport(capture))
        oracle = HttpPositionOracle("http://oracle.test", client)
        trips = asyncio.run(oracle.nearby_trips(
            Coordinate(lat=45.46394, lng=12.22458), 36000.0, "20261019", 1500, 50
        ))
        assert trips == {101, 102, 103}
        assert seen["params"]["date"] == "20261019"
        assert seen["params"]["limit"] == "50"
        assert seen["params"]["seconds"] == "36000.000"

    def test_trip_outside_service_hours(self, oracle):
        """An error status (e.g. trip not running yet) is reported as unavailable."""
        with pytest.raises(OracleUnavailable) as exc:
            asyncio.run(oracle.position_at(999, 100.0))
        assert exc.value.trip_id == 999

    def test_malformed_position(self, oracle):
        with pytest.raises(OracleUnavailable):
            asyncio.run(oracle.position_at(202, 100.0))

    def test_transport_error(self):
        def broken(request):
            raise httpx.ConnectError("refused", request=request)

        client = httpx.AsyncClient(transport=httpx.MockTransport(broken))
        oracle = HttpPositionOracle("http://oracle.test", client)
        with pytest.raises(OracleUnavailable):
            asyncio.run(oracle.name_of(1))
