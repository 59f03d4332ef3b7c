"""
Contexte de prompt structuré transmis au client de génération.

Seuls des attributs astrologiques catégoriels franchissent cette frontière:
le modèle interdit tout champ supplémentaire, il ne peut donc porter ni nom,
ni identifiant, ni date, heure ou lieu de naissance.
"""

from __future__ import annotations

import json
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from astrofriends.domain.entities import AstroProfile, SkyContext
from astrofriends.domain.zodiac import Element, Modality, ZodiacSign

PromptKind = Literal[
    "weekly_sign", "personal_oracle", "compatibility", "weekly_compatibility"
]

_SCHEMAS: dict[str, dict[str, str]] = {
    "weekly_sign": {
        "weekly_reading": "string, 3-4 sentences for the whole week",
        "mood": "one word",
        "lucky_number": "integer 1-99",
        "lucky_color": "string",
        "love_forecast": "string",
        "career_forecast": "string",
        "health_tip": "string",
        "power_day": "weekday name",
        "challenge_day": "weekday name",
        "affirmation": "string",
    },
    "personal_oracle": {
        "weekly_reading": "string, 3-4 sentences",
        "love_advice": "string",
        "career_advice": "string",
        "lucky_number": "integer 1-99",
        "lucky_color": "string",
        "mood": "one word",
        "compatibility_sign": "zodiac sign name",
        "celestial_insight": "string",
    },
    "compatibility": {
        "overall_score": "integer 0-100",
        "headline": "short string",
        "summary": "string, 3-4 sentences",
        "strengths": "list of strings",
        "challenges": "list of strings",
        "advice": "string",
        "elemental_harmony": "string",
        "emotional_connection": "string",
    },
    "weekly_compatibility": {
        "this_week_score": "integer 0-100",
        "love_compatibility": "Low | Medium | High",
        "communication_compatibility": "Low | Medium | High",
        "weekly_vibe": "one or two words",
        "summary": "string, 2-3 sentences",
        "growth_advice": "string",
        "celestial_influence": "string",
    },
}


class SubjectProfile(BaseModel):
    """Points du thème d'un sujet, sans donnée identifiante."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    sun_sign: ZodiacSign
    moon_sign: ZodiacSign | None = None
    rising_sign: ZodiacSign | None = None
    element: Element
    modality: Modality

    @classmethod
    def from_sign(cls, sign: ZodiacSign) -> SubjectProfile:
        return cls(sun_sign=sign, element=sign.element, modality=sign.modality)

    @classmethod
    def from_profile(cls, profile: AstroProfile) -> SubjectProfile:
        return cls(
            sun_sign=profile.sun_sign,
            moon_sign=profile.moon_sign,
            rising_sign=profile.rising_sign,
            element=profile.element,
            modality=profile.modality,
        )

    def describe(self) -> str:
        moon = self.moon_sign.label if self.moon_sign else "unknown"
        rising = self.rising_sign.label if self.rising_sign else "unknown"
        return (
            f"Sun: {self.sun_sign.label}, Moon: {moon}, Rising: {rising}, "
            f"Element: {self.element.value}, Modality: {self.modality.value}"
        )


class SkySummary(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    moon_phase: str
    moon_sign: ZodiacSign | None = None
    transits: list[str] = Field(default_factory=list)

    @classmethod
    def from_sky(cls, sky: SkyContext) -> SkySummary:
        return cls(moon_phase=sky.moon_phase, moon_sign=sky.moon_sign, transits=sky.transits)


class PromptContext(BaseModel):
    """Entrée du client de génération pour un type de contenu donné."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: PromptKind
    subjects: list[SubjectProfile] = Field(min_length=1, max_length=2)
    sky: SkySummary | None = None
    base_score: int | None = None
    moods: list[str] = Field(default_factory=list)

    @property
    def expected_fields(self) -> dict[str, str]:
        return _SCHEMAS[self.kind]

    def render(self) -> str:
        """Rend le contexte en texte de prompt demandant un objet JSON brut."""
        lines = [f"Content type: {self.kind.replace('_', ' ')}"]
        for idx, subject in enumerate(self.subjects, start=1):
            lines.append(f"Subject {idx}: {subject.describe()}")
        if self.sky is not None:
            transits = ", ".join(self.sky.transits) or "none specified"
            moon = self.sky.moon_sign.label if self.sky.moon_sign else "unknown"
            lines.append(
                f"This week's sky: moon phase {self.sky.moon_phase}, "
                f"moon in {moon}, transits: {transits}"
            )
        if self.base_score is not None:
            lines.append(f"Base compatibility score: {self.base_score}")
        if self.moods:
            lines.append("Current moods: " + ", ".join(self.moods))
        lines.append(
            "Respond with ONE raw JSON object (no markdown) with exactly these keys: "
            + json.dumps(self.expected_fields)
        )
        return "\n".join(lines)
