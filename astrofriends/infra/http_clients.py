"""Clients HTTP externes (géocodage).

Objectif du module
------------------
- Encapsuler les appels réseau vers des services tiers.
"""

from __future__ import annotations

import httpx
from pydantic import BaseModel

from astrofriends.core.http_constants import HTTP_STATUS_CLIENT_ERROR_MIN
from astrofriends.domain.errors import MalformedResponse, RemoteUnavailable


class GeoPoint(BaseModel):
    lat: float
    lon: float
    tz_offset: float


class GeoClient:
    """Client de géocodage compatible Nominatim (`/search?q=...&format=json`)."""

    def __init__(
        self,
        base_url: str,
        timeout_s: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=httpx.Timeout(timeout_s),
            headers={"User-Agent": "astrofriends-backend"},
            transport=transport,
        )

    async def geocode(self, place: str) -> GeoPoint:
        """Coordonnées du lieu; le fuseau est approché par `round(lon / 15)`."""
        try:
            resp = await self._client.get(
                "/search", params={"q": place, "format": "json", "limit": 1}
            )
        except httpx.HTTPError as exc:
            raise RemoteUnavailable(f"geocoder_network_error: {exc}") from exc
        if resp.status_code >= HTTP_STATUS_CLIENT_ERROR_MIN:
            raise RemoteUnavailable("geocoder_http_error", status_code=resp.status_code)
        try:
            results = resp.json()
            first = results[0]
            lat, lon = float(first["lat"]), float(first["lon"])
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise MalformedResponse("geocoder_no_result") from exc
        return GeoPoint(lat=lat, lon=lon, tz_offset=float(round(lon / 15)))

    async def aclose(self) -> None:
        await self._client.aclose()
