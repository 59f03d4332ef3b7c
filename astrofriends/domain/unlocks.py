"""
Garde de déverrouillage des fonctionnalités selon la complétude du profil.

Fonction totale sur le treillis `NONE < BASIC < EXTENDED < FULL`: chaque
fonctionnalité déclare son niveau minimal et la source de son contenu.
Aucun effet de bord: appelée avant de solliciter les niveaux partagé/personnel.
"""

from __future__ import annotations

from enum import Enum
from typing import Literal

from astrofriends.domain.entities import CompletenessLevel, Person

ContentSource = Literal["local", "shared", "personal", "chart_api"]


class Feature(str, Enum):
    SUN_SIGN_TRAITS = "sun_sign_traits"
    BASIC_HOROSCOPE = "basic_horoscope"
    OVERALL_COMPATIBILITY = "overall_compatibility"
    WEEKLY_HOROSCOPE = "weekly_horoscope"
    MOON_SIGN_INSIGHTS = "moon_sign_insights"
    PERSONAL_ORACLE = "personal_oracle"
    RISING_SIGN = "rising_sign"
    THIS_WEEK_COMPATIBILITY = "this_week_compatibility"
    SYNASTRY = "synastry"
    LIVE_COMPATIBILITY = "live_compatibility"

    @property
    def required_level(self) -> CompletenessLevel:
        return _REQUIREMENTS[self][0]

    @property
    def source(self) -> ContentSource:
        return _REQUIREMENTS[self][1]


_REQUIREMENTS: dict[Feature, tuple[CompletenessLevel, ContentSource]] = {
    Feature.SUN_SIGN_TRAITS: (CompletenessLevel.BASIC, "local"),
    Feature.BASIC_HOROSCOPE: (CompletenessLevel.BASIC, "local"),
    Feature.OVERALL_COMPATIBILITY: (CompletenessLevel.BASIC, "local"),
    Feature.WEEKLY_HOROSCOPE: (CompletenessLevel.BASIC, "shared"),
    Feature.MOON_SIGN_INSIGHTS: (CompletenessLevel.EXTENDED, "local"),
    Feature.PERSONAL_ORACLE: (CompletenessLevel.EXTENDED, "personal"),
    Feature.RISING_SIGN: (CompletenessLevel.FULL, "chart_api"),
    Feature.THIS_WEEK_COMPATIBILITY: (CompletenessLevel.FULL, "personal"),
    Feature.SYNASTRY: (CompletenessLevel.FULL, "chart_api"),
    Feature.LIVE_COMPATIBILITY: (CompletenessLevel.FULL, "personal"),
}

_HINTS = {
    CompletenessLevel.BASIC: "Add birthday",
    CompletenessLevel.EXTENDED: "Add birth time or place",
    CompletenessLevel.FULL: "Add both birth time and place",
}


def can_access(feature: Feature, level: CompletenessLevel) -> bool:
    return level >= feature.required_level


def unlocked_features(level: CompletenessLevel) -> set[Feature]:
    return {f for f in Feature if can_access(f, level)}


def locked_features(level: CompletenessLevel) -> set[Feature]:
    return {f for f in Feature if not can_access(f, level)}


def next_unlocks(level: CompletenessLevel) -> list[tuple[Feature, str]]:
    """Fonctionnalités encore verrouillées avec l'indication pour les obtenir.

    Triées par niveau requis puis par ordre de déclaration.
    """
    locked = [f for f in Feature if not can_access(f, level)]
    locked.sort(key=lambda f: f.required_level)
    return [(f, _HINTS[f.required_level]) for f in locked]


def can_access_pair(feature: Feature, a: Person, b: Person) -> bool:
    """Une fonctionnalité de paire exige le niveau requis chez les deux personnes."""
    return can_access(feature, a.completeness) and can_access(feature, b.completeness)
