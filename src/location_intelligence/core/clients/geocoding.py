"""Google Geocoding API client.

API docs: https://developers.google.com/maps/documentation/geocoding/requests-geocoding
Never retries: a failed geocode degrades to the next scoring tier.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import httpx

from ..models import Coordinates, GeocodeMatch, GeocodeResponse, ProviderStatus

logger = logging.getLogger(__name__)

API_URL = "https://maps.googleapis.com/maps/api/geocode/json"
DEFAULT_TIMEOUT = 10.0

# Component types that name the municipality, most specific first
LOCALITY_TYPES = ("locality", "administrative_area_level_2")
STATE_TYPE = "administrative_area_level_1"


def _component(components: list[dict], kind: str, field: str = "long_name") -> Optional[str]:
    for component in components:
        if kind in component.get("types", []):
            return component.get(field)
    return None


def parse_geocode_payload(data: dict) -> GeocodeResponse:
    """Turn a geocoding JSON body into a tagged response."""
    upstream_status = data.get("status")
    if upstream_status == "ZERO_RESULTS":
        return GeocodeResponse(status=ProviderStatus.EMPTY, upstream_status=upstream_status)
    if upstream_status != "OK":
        return GeocodeResponse(
            status=ProviderStatus.NOT_OK,
            upstream_status=upstream_status,
            detail=data.get("error_message", ""),
        )

    results = data.get("results") or []
    if not results:
        return GeocodeResponse(status=ProviderStatus.EMPTY, upstream_status=upstream_status)

    first = results[0]
    try:
        location = first["geometry"]["location"]
        coordinates = Coordinates(lat=float(location["lat"]), lng=float(location["lng"]))
    except (KeyError, TypeError, ValueError) as exc:
        return GeocodeResponse(
            status=ProviderStatus.UNPARSEABLE,
            upstream_status=upstream_status,
            detail=f"bad geometry: {exc}",
        )

    components = first.get("address_components") or []
    locality = None
    for kind in LOCALITY_TYPES:
        locality = _component(components, kind)
        if locality:
            break

    match = GeocodeMatch(
        coordinates=coordinates,
        locality=locality,
        state_code=_component(components, STATE_TYPE, "short_name"),
        formatted_address=first.get("formatted_address"),
    )
    return GeocodeResponse(status=ProviderStatus.OK, match=match, upstream_status=upstream_status)


class GeocodeProvider:
    """Resolves free-text addresses to coordinates.

    Args:
        api_key: Google Maps API key. Without one every lookup fails cleanly.
        client: Optional shared ``httpx.AsyncClient``; a short-lived client
            is opened per request when omitted.
        timeout: Per-request timeout in seconds.
    """

    def __init__(
        self,
        api_key: Optional[str],
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self._api_key = api_key
        self._client = client
        self._timeout = timeout

    async def _get(self, params: dict) -> httpx.Response:
        if self._client is not None:
            return await self._client.get(API_URL, params=params, timeout=self._timeout)
        async with httpx.AsyncClient(timeout=httpx.Timeout(self._timeout, connect=5.0)) as client:
            return await client.get(API_URL, params=params)

    async def geocode(self, address: str) -> GeocodeResponse:
        """Single geocoding call, every failure mapped to a status."""
        if not address or not address.strip():
            return GeocodeResponse(status=ProviderStatus.INVALID_INPUT, detail="empty address")
        if not self._api_key:
            return GeocodeResponse(status=ProviderStatus.INVALID_INPUT, detail="GOOGLE_MAPS_API_KEY not set")

        try:
            response = await self._get({"address": address.strip(), "key": self._api_key})
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as exc:
            return GeocodeResponse(status=ProviderStatus.TIMEOUT, detail=str(exc) or "timeout")
        except httpx.HTTPStatusError as exc:
            return GeocodeResponse(status=ProviderStatus.HTTP_ERROR, detail=f"HTTP {exc.response.status_code}")
        except httpx.HTTPError as exc:
            return GeocodeResponse(status=ProviderStatus.NETWORK_ERROR, detail=str(exc))
        except ValueError as exc:
            return GeocodeResponse(status=ProviderStatus.UNPARSEABLE, detail=str(exc))

        if not isinstance(data, dict):
            return GeocodeResponse(status=ProviderStatus.UNPARSEABLE, detail="body is not an object")
        return parse_geocode_payload(data)

    async def locate(self, address: str) -> Optional[GeocodeMatch]:
        """Coordinates plus the locality/state components of the first result."""
        result = await self.geocode(address)
        if not result.ok:
            logger.warning(
                "Geocoding failed for %r: %s %s",
                address, result.status.value, result.upstream_status or result.detail,
            )
            return None
        return result.match

    async def resolve(self, address: str) -> Optional[Coordinates]:
        match = await self.locate(address)
        return match.coordinates if match else None

    async def resolve_many(
        self,
        addresses: list[str],
        batch_size: int = 5,
        pause: float = 0.2,
    ) -> list[Optional[Coordinates]]:
        """Geocode in groups, pausing between groups for rate limits.

        The result list is aligned with ``addresses``; failures are ``None``.
        """
        batch_size = max(1, batch_size)
        results: list[Optional[Coordinates]] = []
        for start in range(0, len(addresses), batch_size):
            if start:
                await asyncio.sleep(pause)
            group = addresses[start:start + batch_size]
            results.extend(await asyncio.gather(*(self.resolve(a) for a in group)))
        return results
