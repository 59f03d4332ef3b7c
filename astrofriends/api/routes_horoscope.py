"""
Routes des contenus partagés: horoscopes hebdomadaires par signe et ciel de la semaine.

Ces contenus ne dépendent d'aucune personne; ils sont servis par le résolveur
(cache → store → génération → statique) et portent leur niveau de provenance.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from astrofriends.api.deps import get_resolver, http_error
from astrofriends.api.schemas import HoroscopeListResponse, HoroscopeResponse, SkyResponse
from astrofriends.core.http_constants import HTTP_NOT_FOUND
from astrofriends.domain.errors import ContentError
from astrofriends.domain.weeks import week_key
from astrofriends.domain.zodiac import ZodiacSign
from astrofriends.services.resolver import ContentResolver

router = APIRouter(tags=["horoscope"])
resolver_dep = Depends(get_resolver)


def _parse_sign(value: str) -> ZodiacSign:
    sign = ZodiacSign.parse(value)
    if sign is None:
        raise HTTPException(status_code=HTTP_NOT_FOUND, detail="Unknown sign")
    return sign


@router.get("/horoscope/weekly", response_model=HoroscopeListResponse)
async def list_weekly_horoscopes(resolver: ContentResolver = resolver_dep):
    """Horoscopes de la semaine pour les 12 signes."""
    try:
        resolutions = await resolver.get_all_weekly_horoscopes()
    except ContentError as exc:
        raise http_error(exc) from exc
    return HoroscopeListResponse(
        week_start=week_key(resolver.clock()),
        horoscopes=[HoroscopeResponse.from_resolution(r) for r in resolutions],
    )


@router.get("/horoscope/weekly/{sign}", response_model=HoroscopeResponse)
async def get_weekly_horoscope(sign: str, resolver: ContentResolver = resolver_dep):
    zodiac = _parse_sign(sign)
    try:
        resolution = await resolver.get_weekly_horoscope(zodiac)
    except ContentError as exc:
        raise http_error(exc) from exc
    return HoroscopeResponse.from_resolution(resolution)


@router.post("/horoscope/weekly/{sign}/refresh", response_model=HoroscopeResponse)
async def refresh_weekly_horoscope(sign: str, resolver: ContentResolver = resolver_dep):
    """Régénère l'horoscope du signe; un échec est renvoyé en 503 réessayable."""
    zodiac = _parse_sign(sign)
    try:
        resolution = await resolver.refresh_weekly_horoscope(zodiac)
    except ContentError as exc:
        raise http_error(exc) from exc
    return HoroscopeResponse.from_resolution(resolution)


@router.get("/sky", response_model=SkyResponse)
async def get_sky(resolver: ContentResolver = resolver_dep):
    resolution = await resolver.get_sky()
    return SkyResponse(tier=resolution.tier, sky=resolution.record)


@router.post("/content/refresh", response_model=HoroscopeListResponse)
async def refresh_weekly_content(resolver: ContentResolver = resolver_dep):
    """Vide le cache en processus puis recharge le ciel et les horoscopes."""
    try:
        resolutions = await resolver.refresh_weekly_content()
    except ContentError as exc:
        raise http_error(exc) from exc
    return HoroscopeListResponse(
        week_start=week_key(resolver.clock()),
        horoscopes=[HoroscopeResponse.from_resolution(r) for r in resolutions],
    )
