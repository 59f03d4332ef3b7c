# Schémas Pydantic exposés par l'API (requêtes et réponses).

from __future__ import annotations

from datetime import date, time

from pydantic import BaseModel, Field

from astrofriends.domain.compatibility import FullResult, PointResult
from astrofriends.domain.entities import (
    CompatibilityRecord,
    OracleContent,
    Person,
    SignHoroscope,
    SkyContext,
)
from astrofriends.domain.zodiac import ZodiacSign
from astrofriends.services.resolver import Resolution, Tier


class PersonIn(BaseModel):
    """Personne transmise par le client (le carnet de contacts reste côté client).

    Champs:
    - id: str (identifiant opaque et stable)
    - name: str | None (jamais stocké ni transmis au modèle)
    - sign: signe explicite, utilisé si la date de naissance est inconnue
    - birthday / birth_time / birth_place: données de naissance optionnelles
    """

    id: str = Field(min_length=1)
    name: str | None = None
    sign: ZodiacSign | None = None
    birthday: date | None = None
    birth_time: time | None = None
    birth_place: str | None = None

    def to_person(self) -> Person:
        return Person(**self.model_dump())


class PairRequest(BaseModel):
    person_a: PersonIn
    person_b: PersonIn


class HoroscopeResponse(BaseModel):
    tier: Tier
    is_generated: bool
    horoscope: SignHoroscope

    @classmethod
    def from_resolution(cls, res: Resolution[SignHoroscope]) -> HoroscopeResponse:
        return cls(tier=res.tier, is_generated=res.is_generated, horoscope=res.record)


class HoroscopeListResponse(BaseModel):
    week_start: str
    horoscopes: list[HoroscopeResponse]


class SkyResponse(BaseModel):
    tier: Tier
    sky: SkyContext


class OracleResponse(BaseModel):
    tier: Tier
    is_generated: bool
    oracle: OracleContent

    @classmethod
    def from_resolution(cls, res: Resolution[OracleContent]) -> OracleResponse:
        return cls(tier=res.tier, is_generated=res.is_generated, oracle=res.record)


class CompatibilityResponse(BaseModel):
    """Réponse de compatibilité; `score` et `moon`/`rising` seulement pour `/compatibility`."""

    tier: Tier
    is_generated: bool
    compatibility: CompatibilityRecord
    score: FullResult | None = None
    moon: PointResult | None = None
    rising: PointResult | None = None

    @classmethod
    def from_resolution(cls, res: Resolution[CompatibilityRecord]) -> CompatibilityResponse:
        return cls(tier=res.tier, is_generated=res.is_generated, compatibility=res.record)


class FeatureHint(BaseModel):
    feature: str
    hint: str


class FeaturesResponse(BaseModel):
    completeness: str
    unlocked: list[str]
    next_unlocks: list[FeatureHint]
