"""
Routes des contenus personnels: oracle, compatibilités et fonctionnalités déverrouillées.

Les personnes voyagent dans le corps des requêtes; seul leur identifiant
opaque est utilisé comme clé de stockage.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from astrofriends.api.deps import get_container, get_resolver, http_error
from astrofriends.api.schemas import (
    CompatibilityResponse,
    FeatureHint,
    FeaturesResponse,
    OracleResponse,
    PairRequest,
    PersonIn,
)
from astrofriends.core.container import Container
from astrofriends.domain import compatibility as scoring
from astrofriends.domain.errors import ContentError
from astrofriends.domain.unlocks import next_unlocks, unlocked_features
from astrofriends.services.resolver import ContentResolver

router = APIRouter(tags=["personal"])
resolver_dep = Depends(get_resolver)
container_dep = Depends(get_container)


@router.post("/oracle", response_model=OracleResponse)
async def get_oracle(payload: PersonIn, resolver: ContentResolver = resolver_dep):
    """Oracle de la semaine; contenu statique si la fonctionnalité est verrouillée."""
    try:
        resolution = await resolver.get_oracle(payload.to_person())
    except ContentError as exc:
        raise http_error(exc) from exc
    return OracleResponse.from_resolution(resolution)


@router.post("/oracle/refresh", response_model=OracleResponse)
async def refresh_oracle(payload: PersonIn, resolver: ContentResolver = resolver_dep):
    try:
        resolution = await resolver.refresh_oracle(payload.to_person())
    except ContentError as exc:
        raise http_error(exc) from exc
    return OracleResponse.from_resolution(resolution)


@router.post("/compatibility", response_model=CompatibilityResponse)
def get_compatibility(payload: PairRequest, container: Container = container_dep):
    """Compatibilité déterministe (moteur de score), avec détails Lune/Ascendant si connus."""
    a, b = payload.person_a.to_person(), payload.person_b.to_person()
    try:
        resolution = container.resolver.get_compatibility(a, b)
        score = container.resolver.score_pair(a, b)
    except ContentError as exc:
        raise http_error(exc) from exc
    response = CompatibilityResponse.from_resolution(resolution)
    response.score = score
    pa, pb = container.local.profile(a), container.local.profile(b)
    if pa.moon_sign and pb.moon_sign:
        response.moon = scoring.moon_compatibility(pa.moon_sign, pb.moon_sign)
    if pa.rising_sign and pb.rising_sign:
        response.rising = scoring.rising_compatibility(pa.rising_sign, pb.rising_sign)
    return response


@router.post("/compatibility/reading", response_model=CompatibilityResponse)
async def get_compatibility_reading(
    payload: PairRequest, resolver: ContentResolver = resolver_dep
):
    try:
        resolution = await resolver.get_compatibility_reading(
            payload.person_a.to_person(), payload.person_b.to_person()
        )
    except ContentError as exc:
        raise http_error(exc) from exc
    return CompatibilityResponse.from_resolution(resolution)


@router.post("/compatibility/this-week", response_model=CompatibilityResponse)
async def get_this_week_compatibility(
    payload: PairRequest, resolver: ContentResolver = resolver_dep
):
    try:
        resolution = await resolver.get_this_week_compatibility(
            payload.person_a.to_person(), payload.person_b.to_person()
        )
    except ContentError as exc:
        raise http_error(exc) from exc
    return CompatibilityResponse.from_resolution(resolution)


@router.post("/features", response_model=FeaturesResponse)
def get_features(payload: PersonIn):
    """Fonctionnalités accessibles et prochaines étapes pour en débloquer d'autres."""
    level = payload.to_person().completeness
    return FeaturesResponse(
        completeness=level.name.lower(),
        unlocked=sorted(f.value for f in unlocked_features(level)),
        next_unlocks=[FeatureHint(feature=f.value, hint=hint) for f, hint in next_unlocks(level)],
    )
