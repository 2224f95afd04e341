"""
Google Maps Distance Matrix client.

Used when a booking arrives with addresses only (no client-side route and
no coordinates).  Driving mode, metric units.
"""

from __future__ import annotations

from dataclasses import dataclass

import httpx

DISTANCE_MATRIX_URL = "https://maps.googleapis.com/maps/api/distancematrix/json"


class MapsError(Exception):
    """Raised when the route cannot be resolved."""


@dataclass(frozen=True)
class RouteInfo:
    distance_meters: float
    duration_seconds: float
    distance_text: str
    duration_text: str
    start_address: str
    end_address: str


class GoogleMapsClient:
    def __init__(
        self,
        api_key: str,
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ):
        self.api_key = api_key
        self._client = client
        self.timeout = timeout

    async def _get(self, params: dict) -> dict:
        if self._client is not None:
            response = await self._client.get(DISTANCE_MATRIX_URL, params=params)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(DISTANCE_MATRIX_URL, params=params)
        response.raise_for_status()
        return response.json()

    async def route(self, origin: str, destination: str) -> RouteInfo:
        params = {
            "origins": origin,
            "destinations": destination,
            "mode": "driving",
            "units": "metric",
            "key": self.api_key,
        }
        try:
            data = await self._get(params)
        except httpx.HTTPError as exc:
            raise MapsError(f"Maps request failed: {exc}") from exc

        if data.get("status") != "OK":
            raise MapsError(f"Maps API returned {data.get('status')}")
        try:
            element = data["rows"][0]["elements"][0]
        except (KeyError, IndexError) as exc:
            raise MapsError("Maps API returned no route") from exc
        if element.get("status") != "OK":
            raise MapsError(f"No route found ({element.get('status')})")

        return RouteInfo(
            distance_meters=float(element["distance"]["value"]),
            duration_seconds=float(element["duration"]["value"]),
            distance_text=element["distance"]["text"],
            duration_text=element["duration"]["text"],
            start_address=(data.get("origin_addresses") or [origin])[0],
            end_address=(data.get("destination_addresses") or [destination])[0],
        )
