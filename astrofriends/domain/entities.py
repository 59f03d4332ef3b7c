"""
Entités du domaine métier.

Ce module définit les modèles de données principaux de l'application: personnes,
profils astrologiques, ciel de la semaine et enregistrements de contenu hebdomadaire.
"""

from __future__ import annotations

from datetime import date, time
from enum import IntEnum
from typing import Literal

from pydantic import BaseModel, Field

from astrofriends.domain.zodiac import Element, Modality, ZodiacSign

ProfileSource = Literal["chart_api", "local"]


class CompletenessLevel(IntEnum):
    """Treillis `NONE < BASIC < EXTENDED < FULL` des données de naissance connues."""

    NONE = 0
    BASIC = 1
    EXTENDED = 2
    FULL = 3


class Person(BaseModel):
    """Personne identifiée par un id opaque et stable.

    Le niveau de complétude n'est jamais stocké: il est recalculé à chaque lecture
    à partir de la présence des champs de naissance. Le nom reste dans le processus.
    """

    id: str = Field(min_length=1)
    name: str | None = Field(default=None, exclude=True, repr=False)
    sign: ZodiacSign | None = None
    birthday: date | None = None
    birth_time: time | None = None
    birth_place: str | None = None

    @property
    def sun_sign(self) -> ZodiacSign | None:
        """Signe solaire: dérivé de la date de naissance, sinon signe explicite."""
        if self.birthday is not None:
            return ZodiacSign.from_birthday(self.birthday)
        return self.sign

    @property
    def has_birth_place(self) -> bool:
        return bool(self.birth_place and self.birth_place.strip())

    @property
    def completeness(self) -> CompletenessLevel:
        if self.birthday is None:
            return CompletenessLevel.NONE
        known = int(self.birth_time is not None) + int(self.has_birth_place)
        if known == 0:
            return CompletenessLevel.BASIC
        if known == 1:
            return CompletenessLevel.EXTENDED
        return CompletenessLevel.FULL


class AstroProfile(BaseModel):
    """Profil astrologique catégoriel d'une personne (aucune donnée personnelle)."""

    person_id: str
    sun_sign: ZodiacSign
    moon_sign: ZodiacSign | None = None
    rising_sign: ZodiacSign | None = None
    element: Element
    modality: Modality
    source: ProfileSource = "local"


class SkyContext(BaseModel):
    """État céleste partagé de la semaine."""

    week_start: str
    moon_phase: str
    moon_sign: ZodiacSign | None = None
    transits: list[str] = Field(default_factory=list)

    def describe(self) -> str:
        parts = [f"Moon phase: {self.moon_phase}"]
        if self.moon_sign is not None:
            parts.append(f"Moon in {self.moon_sign.label}")
        if self.transits:
            parts.append("Transits: " + ", ".join(self.transits))
        return ". ".join(parts)


class SignHoroscope(BaseModel):
    """Horoscope hebdomadaire partagé par signe."""

    sign: ZodiacSign
    week_start: str
    weekly_reading: str
    mood: str = "Balanced"
    lucky_number: int = 7
    lucky_color: str = "Purple"
    love_forecast: str | None = None
    career_forecast: str | None = None
    health_tip: str | None = None
    power_day: str | None = None
    challenge_day: str | None = None
    affirmation: str | None = None
    is_generated: bool = True


class OracleContent(BaseModel):
    """Contenu oracle personnel d'une personne pour une semaine."""

    person_id: str
    week_start: str
    weekly_reading: str
    love_advice: str | None = None
    career_advice: str | None = None
    lucky_number: int = 7
    lucky_color: str = "Purple"
    mood: str = "Balanced"
    compatibility_sign: ZodiacSign | None = None
    celestial_insight: str | None = None
    is_generated: bool = True


class CompatibilityRecord(BaseModel):
    """Compatibilité d'une paire non ordonnée, avec couche hebdomadaire optionnelle."""

    person_a: str
    person_b: str
    base_score: int = Field(ge=0, le=100)
    headline: str | None = None
    synastry_highlights: list[str] = Field(default_factory=list)
    ai_output: str | None = None
    week_start: str | None = None
    this_week_score: int | None = Field(default=None, ge=0, le=100)
    love_compatibility: str | None = None
    communication_compatibility: str | None = None
    weekly_vibe: str | None = None
    weekly_reading: str | None = None
    growth_advice: str | None = None
    celestial_influence: str | None = None
    is_generated: bool = True

    def has_week(self, week: str) -> bool:
        """Vrai si la couche hebdomadaire appartient à la semaine `week`."""
        return self.week_start == week and self.this_week_score is not None


# Champs de la couche hebdomadaire d'une compatibilité.
WEEKLY_FIELDS = (
    "week_start",
    "this_week_score",
    "love_compatibility",
    "communication_compatibility",
    "weekly_vibe",
    "weekly_reading",
    "growth_advice",
    "celestial_influence",
)


def pair_key(a: str, b: str) -> tuple[str, str]:
    """Ordre canonique (trié) d'une paire d'identifiants."""
    return (a, b) if a <= b else (b, a)
