"""
Unit tests for the population-density resolver and the request ordering guard.

The density service is faked with httpx.MockTransport.
"""

import asyncio
import json
import logging

import httpx
import pytest

from impact_api.impact_model import ImpactLocation
from impact_api.params import DEFAULT_PARAMETERS
from impact_api.population import (
    PopulationResolver,
    LatestRequestGate,
    ImpactSession,
    _parse_density,
    _NoData,
)


def resolver_for(handler, **kwargs) -> PopulationResolver:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return PopulationResolver(url="https://density.test/identify", client=client, **kwargs)


# =============================================================================
# Payload parsing
# =============================================================================

class TestParseDensity:
    """Identify payload shapes."""

    @pytest.mark.parametrize("payload,expected", [
        ({"value": 1234.6}, 1235),
        ({"value": "88.2"}, 88),
        ({"value": -4}, 0),
        ({"value": "NoData"}, 0),
        ({"value": "noData"}, 0),
        ({"value": None, "results": [{"value": 12}]}, 12),
        ({"value": None, "results": [{"value": "NoData"}]}, 0),
    ])
    def test_values(self, payload, expected):
        assert _parse_density(payload) == expected

    @pytest.mark.parametrize("payload", [
        {},
        {"value": None},
        {"value": None, "results": []},
        {"value": "n/a"},
        {"value": True},
        {"value": float("nan")},
        {"value": "1e400"},
        {"value": 10 ** 400},
        {"value": 5e6},
        {"value": None, "results": {"value": 12}},
        {"value": None, "results": 5},
        {"value": None, "results": ["12"]},
        {"value": [12]},
    ])
    def test_unusable(self, payload):
        with pytest.raises(_NoData):
            _parse_density(payload)


# =============================================================================
# PopulationResolver
# =============================================================================

class TestPopulationResolver:
    """Outcome classes of a lookup."""

    @pytest.mark.asyncio
    async def test_sends_point_query(self):
        seen = {}

        def handler(request):
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json={"value": 10})

        async with resolver_for(handler) as resolver:
            await resolver.resolve(48.85, 2.35)

        assert json.loads(seen["params"]["geometry"]) == {"x": 2.35, "y": 48.85}
        assert seen["params"]["geometryType"] == "esriGeometryPoint"
        assert seen["params"]["sr"] == "4326"
        assert seen["params"]["f"] == "json"

    @pytest.mark.asyncio
    async def test_concrete_value(self):
        async with resolver_for(lambda r: httpx.Response(200, json={"value": 3812.4})) as resolver:
            assert await resolver.resolve(48.85, 2.35) == 3812

    @pytest.mark.asyncio
    async def test_no_data_is_ocean(self):
        async with resolver_for(lambda r: httpx.Response(200, json={"value": "NoData"})) as resolver:
            assert await resolver.resolve(0.0, -30.0) == 0

    @pytest.mark.asyncio
    async def test_missing_value_falls_back(self):
        async with resolver_for(lambda r: httpx.Response(200, json={"value": None})) as resolver:
            assert await resolver.resolve(0.0, 0.0) == 57

    @pytest.mark.asyncio
    async def test_timeout_falls_back(self, caplog):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        caplog.set_level(logging.WARNING, logger="impact_api.population")
        async with resolver_for(handler) as resolver:
            assert await resolver.resolve(10.0, 10.0) == 57
        assert "population.timeout" in caplog.text

    @pytest.mark.asyncio
    async def test_transport_error_falls_back(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        async with resolver_for(handler) as resolver:
            assert await resolver.resolve(10.0, 10.0) == 57

    @pytest.mark.asyncio
    async def test_http_error_status_falls_back(self):
        async with resolver_for(lambda r: httpx.Response(503, text="down")) as resolver:
            assert await resolver.resolve(10.0, 10.0) == 57

    @pytest.mark.asyncio
    async def test_non_json_falls_back(self):
        async with resolver_for(lambda r: httpx.Response(200, text="<html>oops</html>")) as resolver:
            assert await resolver.resolve(10.0, 10.0) == 57

    @pytest.mark.asyncio
    async def test_unexpected_json_shape_falls_back(self):
        async with resolver_for(lambda r: httpx.Response(200, json=[1, 2, 3])) as resolver:
            assert await resolver.resolve(10.0, 10.0) == 57

    @pytest.mark.asyncio
    async def test_huge_integer_falls_back(self):
        body = '{"value": 1' + "0" * 400 + "}"
        async with resolver_for(lambda r: httpx.Response(200, text=body)) as resolver:
            assert await resolver.resolve(10.0, 10.0) == 57

    @pytest.mark.asyncio
    async def test_malformed_results_fall_back(self):
        payloads = iter([{"value": None, "results": {"a": 1}}, {"value": None, "results": 5}])
        async with resolver_for(lambda r: httpx.Response(200, json=next(payloads))) as resolver:
            assert await resolver.resolve(10.0, 10.0) == 57
            assert await resolver.resolve(10.0, 10.0) == 57

    @pytest.mark.asyncio
    async def test_slow_service_is_cut_off_at_timeout(self, caplog):
        async def handler(request):
            await asyncio.sleep(1.0)
            return httpx.Response(200, json={"value": 100})

        caplog.set_level(logging.WARNING, logger="impact_api.population")
        loop = asyncio.get_running_loop()
        async with resolver_for(handler, timeout_s=0.1) as resolver:
            started = loop.time()
            density = await resolver.resolve(10.0, 10.0)
            elapsed = loop.time() - started
        assert density == 57
        assert elapsed < 0.9
        assert "population.timeout" in caplog.text

    @pytest.mark.asyncio
    async def test_custom_fallback(self):
        async with resolver_for(lambda r: httpx.Response(500), fallback_density=99) as resolver:
            assert await resolver.resolve(10.0, 10.0) == 99

    @pytest.mark.asyncio
    async def test_injected_client_is_not_closed(self):
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200, json={"value": 1})))
        resolver = PopulationResolver(client=client)
        await resolver.aclose()
        assert not client.is_closed
        await client.aclose()


# =============================================================================
# Request ordering
# =============================================================================

class FakeResolver:
    """Resolver whose first lookup blocks until released."""

    def __init__(self):
        self.release = asyncio.Event()
        self.calls = 0

    async def resolve(self, lat, lng):
        self.calls += 1
        if self.calls == 1:
            await self.release.wait()
            return 1000
        return 0


class TestLatestRequestGate:
    """Token bookkeeping."""

    def test_tokens_increase(self):
        gate = LatestRequestGate()
        a = gate.issue()
        b = gate.issue()
        assert b > a
        assert gate.is_current(b)
        assert not gate.is_current(a)

    def test_invalidate(self):
        gate = LatestRequestGate()
        a = gate.issue()
        gate.invalidate()
        assert not gate.is_current(a)


class TestImpactSession:
    """Superseded lookups must not overwrite a newer result."""

    @pytest.mark.asyncio
    async def test_stale_result_is_dropped(self):
        resolver = FakeResolver()
        session = ImpactSession(resolver)
        first = asyncio.create_task(
            session.simulate(DEFAULT_PARAMETERS, ImpactLocation(lat=40.0, lng=-74.0)))
        await asyncio.sleep(0)

        second = await session.simulate(DEFAULT_PARAMETERS, ImpactLocation(lat=0.0, lng=-30.0))
        resolver.release.set()
        stale = await first

        assert stale is None
        assert second is not None
        assert session.latest is second
        assert session.latest.population_density == 0

    @pytest.mark.asyncio
    async def test_clear_discards_in_flight(self):
        resolver = FakeResolver()
        session = ImpactSession(resolver)
        pending = asyncio.create_task(
            session.simulate(DEFAULT_PARAMETERS, ImpactLocation(lat=40.0, lng=-74.0)))
        await asyncio.sleep(0)

        session.clear()
        resolver.release.set()

        assert await pending is None
        assert session.latest is None

    @pytest.mark.asyncio
    async def test_single_request_commits(self):
        resolver = FakeResolver()
        resolver.calls = 1  # skip the blocking first call
        session = ImpactSession(resolver)
        result = await session.simulate(DEFAULT_PARAMETERS, ImpactLocation(lat=1.0, lng=2.0))
        assert session.latest is result
        assert (result.lat, result.lng) == (1.0, 2.0)
