"""
Population-density lookup for an impact point, and the request ordering guard
that keeps a slow, superseded lookup from overwriting a newer result.
"""
from __future__ import annotations
import asyncio
import itertools
import json
import logging
from math import isfinite
from typing import Any, Dict, Optional

import httpx

from .config import GLOBAL_AVERAGE_DENSITY, DEFAULT_TIMEOUT_S, MAX_POPULATION_DENSITY, WORLDPOP_DENSITY_URL
from .impact_model import ImpactParameters, ImpactLocation, ImpactResult, compute_impact

logger = logging.getLogger(__name__)

NO_DATA_MARKERS = {"nodata"}


class _NoData(Exception):
    """Service answered, but without a usable number for this pixel."""


def _parse_density(payload: Dict[str, Any]) -> int:
    """
    Density from an ImageServer identify payload.
    Returns 0 for an explicit NoData pixel (open water / uninhabited).
    Raises _NoData when the payload carries no usable value.
    """
    value = payload.get("value")
    if value is None:
        results = payload.get("results")
        if isinstance(results, list) and results and isinstance(results[0], dict):
            value = results[0].get("value")

    if isinstance(value, str):
        if value.strip().lower() in NO_DATA_MARKERS:
            return 0
    elif isinstance(value, bool) or not isinstance(value, (int, float)):
        raise _NoData(f"missing value (got {value!r})")

    try:
        x = float(value)
    except (ValueError, OverflowError):
        raise _NoData(f"non-numeric value {value!r}") from None
    if not isfinite(x) or x > MAX_POPULATION_DENSITY:
        raise _NoData(f"implausible value {value!r}")
    return max(0, int(round(x)))


class PopulationResolver:
    """
    Async client for the WorldPop 1 km density service.

    resolve() never raises: failures and timeouts resolve to the fallback
    density instead.
    """

    def __init__(self, url: str = WORLDPOP_DENSITY_URL,
                 timeout_s: float = DEFAULT_TIMEOUT_S,
                 fallback_density: int = GLOBAL_AVERAGE_DENSITY,
                 client: Optional[httpx.AsyncClient] = None):
        self.url = url
        self.timeout_s = timeout_s
        self.fallback_density = fallback_density
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self) -> "PopulationResolver":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout_s)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    @staticmethod
    def query_params(lat: float, lng: float) -> Dict[str, Any]:
        return {
            "geometry": json.dumps({"x": lng, "y": lat}, separators=(",", ":")),
            "geometryType": "esriGeometryPoint",
            "sr": "4326",
            "returnCatalogItems": "false",
            "returnGeometry": "false",
            "f": "json",
        }

    async def _fetch(self, lat: float, lng: float) -> int:
        r = await self._get_client().get(self.url, params=self.query_params(lat, lng),
                                         timeout=self.timeout_s)
        r.raise_for_status()
        payload = r.json()
        if not isinstance(payload, dict):
            raise _NoData(f"unexpected payload type {type(payload).__name__}")
        return _parse_density(payload)

    async def resolve(self, lat: float, lng: float) -> int:
        """Density at a point. Never raises for service trouble; the whole lookup is bounded by timeout_s."""
        ctx = f"lat={lat:.3f} lng={lng:.3f}"
        logger.debug(f"[population.request] GET {self.url} {ctx}")
        try:
            density = await asyncio.wait_for(self._fetch(lat, lng), self.timeout_s)
        except (asyncio.TimeoutError, httpx.TimeoutException):
            logger.warning(f"[population.timeout] {ctx} after {self.timeout_s}s; "
                           f"using global average {self.fallback_density}")
            return self.fallback_density
        except httpx.HTTPError as e:
            logger.warning(f"[population.error] {ctx} {e!r}; using global average {self.fallback_density}")
            return self.fallback_density
        except ValueError as e:
            # json.JSONDecodeError is a ValueError
            logger.warning(f"[population.error] {ctx} non-JSON body ({e}); "
                           f"using global average {self.fallback_density}")
            return self.fallback_density
        except _NoData as e:
            logger.info(f"[population.nodata] {ctx} {e}; using global average {self.fallback_density}")
            return self.fallback_density

        if density == 0:
            logger.info(f"[population] {ctx} over water/uninhabited area; density=0")
        else:
            logger.info(f"[population] {ctx} density={density}/km^2")
        return density


async def resolve_population_density(lat: float, lng: float,
                                     url: str = WORLDPOP_DENSITY_URL,
                                     timeout_s: float = DEFAULT_TIMEOUT_S) -> int:
    """One-shot lookup with a throwaway client."""
    async with PopulationResolver(url=url, timeout_s=timeout_s) as resolver:
        return await resolver.resolve(lat, lng)


class LatestRequestGate:
    """Monotonic request tokens; only the most recently issued token is current."""

    def __init__(self):
        self._counter = itertools.count(1)
        self._latest = 0

    def issue(self) -> int:
        self._latest = next(self._counter)
        return self._latest

    def is_current(self, token: int) -> bool:
        return token == self._latest

    def invalidate(self) -> None:
        self.issue()


class ImpactSession:
    """
    Holds the displayed result for one user. Every simulate() call is an
    independent resolve -> compute sequence; a completion whose token was
    superseded while it awaited the lookup is dropped.
    """

    def __init__(self, resolver: PopulationResolver):
        self.resolver = resolver
        self.latest: Optional[ImpactResult] = None
        self._gate = LatestRequestGate()

    async def simulate(self, params: ImpactParameters,
                       location: ImpactLocation) -> Optional[ImpactResult]:
        token = self._gate.issue()
        density = await self.resolver.resolve(location.lat, location.lng)
        if not self._gate.is_current(token):
            logger.info(f"[session] dropping stale result token={token}")
            return None
        result = compute_impact(params, location, density)
        self.latest = result
        return result

    def clear(self) -> None:
        """Forget the current result and any lookup still in flight."""
        self._gate.invalidate()
        self.latest = None
