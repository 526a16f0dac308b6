"""Tests for OSRM route parsing and the Router client."""

import httpx
import pytest

from factories import osrm_payload
from src.navigation.errors import RoutingError
from src.navigation.router import Route, Router, build_route_url, parse_route


class TestBuildRouteUrl:
    """Tests for build_route_url."""

    def test_longitude_first_on_the_wire(self):
        url = build_route_url("https://osrm.example/", "driving", (48.0, 2.0), (49.0, 3.0))
        assert url == "https://osrm.example/route/v1/driving/2.0,48.0;3.0,49.0"


class TestParseRoute:
    """Tests for parse_route."""

    def test_transposes_to_lat_lon(self):
        """Provider lon/lat pairs become lat/lon points."""
        route = parse_route(osrm_payload([[2.0, 48.0], [2.1, 48.1]]))
        assert route.points == ((48.0, 2.0), (48.1, 2.1))

    def test_extracts_distance_and_duration(self):
        route = parse_route(osrm_payload([[2.0, 48.0], [2.1, 48.1]], distance=1500, duration=90.5))
        assert route.distance_m == 1500.0
        assert route.duration_s == 90.5

    def test_distance_and_duration_optional(self):
        route = parse_route(osrm_payload([[2.0, 48.0], [2.1, 48.1]], distance=None, duration="soon"))
        assert route.distance_m is None
        assert route.duration_s is None

    def test_invalid_points_dropped(self):
        """Malformed pairs are removed, order of the rest preserved."""
        coords = [[2.0, 48.0], [None, 48.05], [2.1, float("nan")], [2.2, 48.2], [1, 2, 3]]
        route = parse_route(osrm_payload(coords))
        assert route.points == ((48.0, 2.0), (48.2, 2.2))

    def test_oversized_values_dropped(self):
        """Integers too large for a float drop the point or the scalar."""
        coords = [[2.0, 48.0], [10**400, 48.1], [2.2, 48.2]]
        route = parse_route(osrm_payload(coords, distance=10**400, duration=60))

        assert route.points == ((48.0, 2.0), (48.2, 2.2))
        assert route.distance_m is None
        assert route.duration_s == 60.0

    def test_fewer_than_two_valid_points_raises(self):
        with pytest.raises(RoutingError):
            parse_route(osrm_payload([[2.0, 48.0], ["x", "y"]]))

    @pytest.mark.parametrize(
        "payload",
        [
            None,
            {"code": "NoRoute", "routes": []},
            {"routes": [{}]},
            {"routes": [{"geometry": {"coordinates": "abc"}}]},
            {"routes": ["nope"]},
        ],
    )
    def test_malformed_payload_raises(self, payload):
        with pytest.raises(RoutingError):
            parse_route(payload)


class TestRouter:
    """Tests for Router.route()."""

    @pytest.mark.asyncio
    async def test_requests_full_geojson_geometry(self, make_client, config):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=osrm_payload([[2.0, 48.0], [2.1, 48.1]]))

        route = await Router(make_client(handler), config).route((48.0, 2.0), (48.1, 2.1))

        assert isinstance(route, Route)
        assert len(route) == 2
        assert seen[0].url.path == "/route/v1/driving/2.0,48.0;2.1,48.1"
        assert seen[0].url.params["overview"] == "full"
        assert seen[0].url.params["geometries"] == "geojson"

    @pytest.mark.asyncio
    async def test_long_integer_literal_in_body_is_dropped(self, make_client, config):
        """A 401-digit longitude in the raw JSON is discarded, not raised."""
        huge = "1" + "0" * 400
        body = (
            '{"code": "Ok", "routes": [{"distance": 10.0, "duration": 5.0, '
            '"geometry": {"coordinates": [[2.0, 48.0], [' + huge + ', 48.05], [2.1, 48.1]]}}]}'
        )
        router = Router(make_client(lambda request: httpx.Response(200, content=body.encode())), config)

        route = await router.route((48.0, 2.0), (48.1, 2.1))

        assert route.points == ((48.0, 2.0), (48.1, 2.1))

    @pytest.mark.asyncio
    async def test_http_error_raises_routing_error(self, make_client, config):
        router = Router(make_client(lambda request: httpx.Response(429)), config)
        with pytest.raises(RoutingError):
            await router.route((48.0, 2.0), (48.1, 2.1))

    @pytest.mark.asyncio
    async def test_network_error_raises_routing_error(self, make_client, config):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(RoutingError):
            await Router(make_client(handler), config).route((48.0, 2.0), (48.1, 2.1))

    @pytest.mark.asyncio
    async def test_invalid_json_raises_routing_error(self, make_client, config):
        router = Router(make_client(lambda request: httpx.Response(200, content=b"oops")), config)
        with pytest.raises(RoutingError):
            await router.route((48.0, 2.0), (48.1, 2.1))

    @pytest.mark.asyncio
    async def test_invalid_endpoint_is_rejected_without_request(self, make_client, config):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={})

        with pytest.raises(RoutingError):
            await Router(make_client(handler), config).route((float("nan"), 2.0), (48.1, 2.1))
        assert calls == []
