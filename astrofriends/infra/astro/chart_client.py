"""
Client de l'API de calcul de thème (authentification basique).

Endpoints utilisés:
- `POST planets/tropical`: positions natales (soleil, lune)
- `POST house_cusps/tropical`: degré de l'ascendant
- `POST moon_phase_report`: phase lunaire du jour
- `POST tropical_transits/weekly`: transits de la semaine
"""

from __future__ import annotations

from datetime import date, time
from typing import Any

import httpx
import structlog
from pydantic import BaseModel

from astrofriends.core.http_constants import HTTP_STATUS_CLIENT_ERROR_MIN
from astrofriends.domain.errors import MalformedResponse, RemoteUnavailable
from astrofriends.domain.zodiac import ZodiacSign

log = structlog.get_logger(__name__)

DEFAULT_BIRTH_HOUR = 12


class ChartPoints(BaseModel):
    sun: ZodiacSign | None = None
    moon: ZodiacSign | None = None
    rising: ZodiacSign | None = None


def sign_from_degree(degree: float) -> ZodiacSign:
    """Signe tropical correspondant à une longitude écliptique en degrés."""
    return ZodiacSign.from_index(int(degree // 30))


def _point_sign(entry: Any) -> ZodiacSign | None:
    """Signe d'un point du thème (`{"sign": ...}`); `None` si le point est absent."""
    if entry is None:
        return None
    if not isinstance(entry, dict):
        raise MalformedResponse("chart_unexpected_payload")
    sign = entry.get("sign")
    if sign is not None and not isinstance(sign, str):
        raise MalformedResponse("chart_unexpected_payload")
    return ZodiacSign.parse(sign)


class ChartApiClient:
    def __init__(
        self,
        base_url: str,
        user_id: str,
        api_key: str,
        timeout_s: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            auth=httpx.BasicAuth(user_id, api_key),
            timeout=httpx.Timeout(timeout_s),
            transport=transport,
        )

    async def _post(self, path: str, body: dict[str, Any]) -> Any:
        try:
            resp = await self._client.post(f"/{path}", json=body)
        except httpx.HTTPError as exc:
            raise RemoteUnavailable(f"chart_network_error: {exc}") from exc
        if resp.status_code >= HTTP_STATUS_CLIENT_ERROR_MIN:
            raise RemoteUnavailable("chart_http_error", status_code=resp.status_code)
        try:
            return resp.json()
        except ValueError as exc:
            raise MalformedResponse(f"chart_invalid_json:{path}") from exc

    @staticmethod
    def _birth_body(
        birth_date: date, birth_time: time | None, lat: float, lon: float, tz: float
    ) -> dict[str, Any]:
        return {
            "day": birth_date.day,
            "month": birth_date.month,
            "year": birth_date.year,
            "hour": birth_time.hour if birth_time else DEFAULT_BIRTH_HOUR,
            "min": birth_time.minute if birth_time else 0,
            "lat": lat,
            "lon": lon,
            "tzone": tz,
        }

    async def compute_chart(
        self,
        birth_date: date,
        birth_time: time | None,
        lat: float,
        lon: float,
        tz: float,
    ) -> ChartPoints:
        body = self._birth_body(birth_date, birth_time, lat, lon, tz)
        planets = await self._post("planets/tropical", body)
        points = ChartPoints()
        if isinstance(planets, list):
            for row in planets:
                if not isinstance(row, dict):
                    raise MalformedResponse("chart_unexpected_payload")
                name = str(row.get("name", "")).lower()
                if name in ("sun", "moon"):
                    setattr(points, name, _point_sign(row))
        elif isinstance(planets, dict):
            points.sun = _point_sign(planets.get("sun"))
            points.moon = _point_sign(planets.get("moon"))
        else:
            raise MalformedResponse("chart_unexpected_payload")
        if points.sun is None:
            raise MalformedResponse("chart_missing_sun")

        if birth_time is not None:
            cusps = await self._post("house_cusps/tropical", body)
            ascendant = cusps.get("ascendant") if isinstance(cusps, dict) else None
            if ascendant is not None:
                try:
                    points.rising = sign_from_degree(float(ascendant))
                except (TypeError, ValueError) as exc:
                    raise MalformedResponse("chart_invalid_ascendant") from exc
        log.info(
            "chart_computed",
            has_moon=points.moon is not None,
            has_rising=points.rising is not None,
        )
        return points

    async def moon_phase(self, day: date) -> str:
        data = await self._post(
            "moon_phase_report", {"day": day.day, "month": day.month, "year": day.year}
        )
        phase = None
        if isinstance(data, dict):
            phase = data.get("phase_name") or data.get("moon_phase")
        if not phase:
            raise MalformedResponse("chart_missing_moon_phase")
        return str(phase)

    async def weekly_transits(self, day: date) -> list[str]:
        data = await self._post(
            "tropical_transits/weekly", {"day": day.day, "month": day.month, "year": day.year}
        )
        rows = data.get("transits") if isinstance(data, dict) else None
        if rows is None:
            return []
        if not isinstance(rows, list) or not all(isinstance(row, dict) for row in rows):
            raise MalformedResponse("chart_unexpected_payload")
        transits = []
        for row in rows:
            planet, aspect = row.get("transiting_planet"), row.get("aspect")
            if planet and aspect:
                transits.append(f"{planet} {aspect}")
        return transits

    async def aclose(self) -> None:
        await self._client.aclose()
