"""
Moteur de compatibilité déterministe entre signes.

Fonctions pures, sans I/O: même entrée, même sortie. Le score global combine
une base fixe, le bonus de signe identique, les dynamiques d'élément et de
modalité, les paires traditionnelles et les signes opposés, borné à [0, 100].
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict

from astrofriends.domain.zodiac import Element, Modality, ZodiacSign

BASE_SCORE = 50
SAME_SIGN_BONUS = 25
TRADITIONAL_MATCH_BONUS = 15
OPPOSITE_BONUS = 10
SUN_WEIGHT = 3
MOON_WEIGHT = 2
RISING_WEIGHT = 1


class ElementDynamic(str, Enum):
    SAME_ELEMENT = "same_element"
    COMPLEMENTARY = "complementary"
    CHALLENGING = "challenging"
    GROUNDING = "grounding"

    @property
    def score_bonus(self) -> int:
        return _ELEMENT_BONUS[self]

    @property
    def description(self) -> str:
        return _ELEMENT_TEXTS[self]["description"]


class ModalityDynamic(str, Enum):
    SAME_MODALITY = "same_modality"
    COMPLEMENTARY = "complementary"
    MIXED = "mixed"

    @property
    def score_bonus(self) -> int:
        return _MODALITY_BONUS[self]

    @property
    def description(self) -> str:
        return _MODALITY_DESCRIPTIONS[self]


class HarmonyLevel(str, Enum):
    """Classification en 5 paliers, totale et sans chevauchement sur [0, 100]."""

    SOUL_RESONANCE = "Soul Resonance"
    DEEP_CONNECTION = "Deep Connection"
    HARMONIOUS_FLOW = "Harmonious Flow"
    GROWTH_PARTNERS = "Growth Partners"
    DYNAMIC_TENSION = "Dynamic Teachers"

    @property
    def description(self) -> str:
        return _HARMONY_DESCRIPTIONS[self]

    @classmethod
    def from_score(cls, score: int) -> HarmonyLevel:
        for threshold, level in _HARMONY_THRESHOLDS:
            if score >= threshold:
                return level
        return cls.DYNAMIC_TENSION


_ELEMENT_BONUS = {
    ElementDynamic.SAME_ELEMENT: 15,
    ElementDynamic.COMPLEMENTARY: 10,
    ElementDynamic.CHALLENGING: 0,
    ElementDynamic.GROUNDING: 5,
}

_MODALITY_BONUS = {
    ModalityDynamic.SAME_MODALITY: 5,
    ModalityDynamic.COMPLEMENTARY: 10,
    ModalityDynamic.MIXED: 7,
}

_HARMONY_THRESHOLDS = [
    (85, HarmonyLevel.SOUL_RESONANCE),
    (70, HarmonyLevel.DEEP_CONNECTION),
    (55, HarmonyLevel.HARMONIOUS_FLOW),
    (40, HarmonyLevel.GROWTH_PARTNERS),
]

_COMPLEMENTARY_ELEMENTS = {
    frozenset({Element.FIRE, Element.AIR}),
    frozenset({Element.EARTH, Element.WATER}),
}
_CHALLENGING_ELEMENTS = {
    frozenset({Element.FIRE, Element.WATER}),
    frozenset({Element.FIRE, Element.EARTH}),
    frozenset({Element.AIR, Element.EARTH}),
    frozenset({Element.AIR, Element.WATER}),
}
_COMPLEMENTARY_MODALITIES = {
    frozenset({Modality.CARDINAL, Modality.FIXED}),
    frozenset({Modality.FIXED, Modality.MUTABLE}),
}

_S = ZodiacSign
TRADITIONAL_PAIRS = frozenset(
    frozenset(pair)
    for pair in [
        (_S.ARIES, _S.LEO),
        (_S.ARIES, _S.SAGITTARIUS),
        (_S.TAURUS, _S.VIRGO),
        (_S.TAURUS, _S.CAPRICORN),
        (_S.GEMINI, _S.LIBRA),
        (_S.GEMINI, _S.AQUARIUS),
        (_S.CANCER, _S.SCORPIO),
        (_S.CANCER, _S.PISCES),
        (_S.LEO, _S.SAGITTARIUS),
        (_S.VIRGO, _S.CAPRICORN),
        (_S.LIBRA, _S.AQUARIUS),
        (_S.SCORPIO, _S.PISCES),
    ]
)
OPPOSITE_PAIRS = frozenset(
    frozenset(pair)
    for pair in [
        (_S.ARIES, _S.LIBRA),
        (_S.TAURUS, _S.SCORPIO),
        (_S.GEMINI, _S.SAGITTARIUS),
        (_S.CANCER, _S.CAPRICORN),
        (_S.LEO, _S.AQUARIUS),
        (_S.VIRGO, _S.PISCES),
    ]
)

_HARMONY_DESCRIPTIONS = {
    HarmonyLevel.SOUL_RESONANCE: "Your energies dance together in beautiful synchronicity",
    HarmonyLevel.DEEP_CONNECTION: "A profound understanding flows naturally between you",
    HarmonyLevel.HARMONIOUS_FLOW: "Your connection carries an easy, supportive rhythm",
    HarmonyLevel.GROWTH_PARTNERS: "Together, you inspire each other to evolve and expand",
    HarmonyLevel.DYNAMIC_TENSION: "Your differences spark growth and valuable lessons",
}

_MODALITY_DESCRIPTIONS = {
    ModalityDynamic.SAME_MODALITY: "You approach life with similar rhythms and timing",
    ModalityDynamic.COMPLEMENTARY: "Your different approaches create a complete, balanced dynamic",
    ModalityDynamic.MIXED: "You bring unique perspectives that enrich each other",
}

# Textes canoniques choisis uniquement par la dynamique d'élément.
_ELEMENT_TEXTS: dict[ElementDynamic, dict[str, str]] = {
    ElementDynamic.SAME_ELEMENT: {
        "description": (
            "You share the same elemental language, understanding each other intuitively"
        ),
        "poetic": "Two souls swimming in the same cosmic river, discovering new depths together.",
        "advice": (
            "Nurture this bond by occasionally stepping outside your shared element. "
            "Try activities that neither of you would naturally choose."
        ),
        "moon": (
            "Your emotional worlds speak the same language. With both Moons in {element} signs, "
            "you instinctively understand how each other processes feelings."
        ),
        "rising": (
            "You recognized something familiar in each other from the very first moment. "
            "Your approaches to life naturally align."
        ),
    },
    ElementDynamic.COMPLEMENTARY: {
        "description": "Your elements feed each other, creating natural synergy and excitement",
        "poetic": "Like wind beneath wings, you lift each other toward unexplored horizons.",
        "advice": (
            "Your natural harmony is a gift. Keep it vibrant by expressing gratitude often "
            "and creating rituals that celebrate your connection."
        ),
        "moon": (
            "Your emotional natures feed each other beautifully. {sign_a} Moon blends harmoniously "
            "with {sign_b} Moon, creating emotional alchemy."
        ),
        "rising": (
            "Your first impressions sparked an exciting curiosity. "
            "Together, you present a dynamic duo to the world."
        ),
    },
    ElementDynamic.CHALLENGING: {
        "description": "Your contrasting elements invite you both to grow beyond comfort zones",
        "poetic": "In the space between your differences, transformation blooms.",
        "advice": (
            "When friction arises, pause before reacting. Ask yourself: 'What can I learn here?' "
            "Your differences are doorways to growth."
        ),
        "moon": (
            "Your emotional languages differ, offering rich opportunities for growth. "
            "With patience, these differences become your greatest teachers."
        ),
        "rising": (
            "Your initial meeting may have felt intriguing or puzzling. "
            "This tension creates magnetic attraction."
        ),
    },
    ElementDynamic.GROUNDING: {
        "description": "Your different elements offer balance and perspective to one another",
        "poetic": "A dance of contrasts that creates its own beautiful rhythm.",
        "advice": (
            "Honor both your need for action and reflection. "
            "Schedule time for both adventure and quiet connection."
        ),
        "moon": (
            "Your Moons create a stabilizing emotional balance, grounding emotional extremes "
            "and providing a steady foundation for intimacy."
        ),
        "rising": (
            "You bring out different sides of each other in social situations, "
            "making you versatile partners in life."
        ),
    },
}


class FullResult(BaseModel):
    """Résultat complet soleil/lune/ascendant pondéré."""

    model_config = ConfigDict(frozen=True)

    overall_score: int
    sun_score: int
    moon_score: int | None = None
    rising_score: int | None = None
    harmony: HarmonyLevel
    element_dynamic: ElementDynamic
    modality_dynamic: ModalityDynamic

    @property
    def has_deep_data(self) -> bool:
        return self.moon_score is not None or self.rising_score is not None


class PointResult(BaseModel):
    """Compatibilité d'un point secondaire (Lune ou Ascendant)."""

    model_config = ConfigDict(frozen=True)

    score: int
    harmony: HarmonyLevel
    dynamic: ElementDynamic
    reading: str


def element_dynamic(a: ZodiacSign, b: ZodiacSign) -> ElementDynamic:
    if a.element == b.element:
        return ElementDynamic.SAME_ELEMENT
    pair = frozenset({a.element, b.element})
    if pair in _COMPLEMENTARY_ELEMENTS:
        return ElementDynamic.COMPLEMENTARY
    if pair in _CHALLENGING_ELEMENTS:
        return ElementDynamic.CHALLENGING
    return ElementDynamic.GROUNDING


def modality_dynamic(a: ZodiacSign, b: ZodiacSign) -> ModalityDynamic:
    if a.modality == b.modality:
        return ModalityDynamic.SAME_MODALITY
    if frozenset({a.modality, b.modality}) in _COMPLEMENTARY_MODALITIES:
        return ModalityDynamic.COMPLEMENTARY
    return ModalityDynamic.MIXED


def is_traditional_match(a: ZodiacSign, b: ZodiacSign) -> bool:
    return frozenset({a, b}) in TRADITIONAL_PAIRS


def are_opposites(a: ZodiacSign, b: ZodiacSign) -> bool:
    return frozenset({a, b}) in OPPOSITE_PAIRS


def overall_score(a: ZodiacSign, b: ZodiacSign) -> int:
    """Score de compatibilité symétrique entre deux signes, dans [0, 100]."""
    score = BASE_SCORE
    if a == b:
        score += SAME_SIGN_BONUS
    score += element_dynamic(a, b).score_bonus
    score += modality_dynamic(a, b).score_bonus
    if is_traditional_match(a, b):
        score += TRADITIONAL_MATCH_BONUS
    if are_opposites(a, b):
        score += OPPOSITE_BONUS
    return min(100, max(0, score))


def full_score(
    sun_a: ZodiacSign,
    moon_a: ZodiacSign | None,
    rising_a: ZodiacSign | None,
    sun_b: ZodiacSign,
    moon_b: ZodiacSign | None,
    rising_b: ZodiacSign | None,
) -> FullResult:
    """Moyenne pondérée soleil×3, lune×2, ascendant×1.

    Le diviseur ne compte que les poids effectivement utilisés: un thème partiel
    donne une moyenne valide, jamais diluée vers zéro.
    """
    sun = overall_score(sun_a, sun_b)
    total = sun * SUN_WEIGHT
    divisor = SUN_WEIGHT

    moon = None
    if moon_a is not None and moon_b is not None:
        moon = overall_score(moon_a, moon_b)
        total += moon * MOON_WEIGHT
        divisor += MOON_WEIGHT

    rising = None
    if rising_a is not None and rising_b is not None:
        rising = overall_score(rising_a, rising_b)
        total += rising * RISING_WEIGHT
        divisor += RISING_WEIGHT

    final = min(100, max(0, total // divisor))
    return FullResult(
        overall_score=final,
        sun_score=sun,
        moon_score=moon,
        rising_score=rising,
        harmony=HarmonyLevel.from_score(final),
        element_dynamic=element_dynamic(sun_a, sun_b),
        modality_dynamic=modality_dynamic(sun_a, sun_b),
    )


def moon_compatibility(moon_a: ZodiacSign, moon_b: ZodiacSign) -> PointResult:
    score = overall_score(moon_a, moon_b)
    dynamic = element_dynamic(moon_a, moon_b)
    reading = _ELEMENT_TEXTS[dynamic]["moon"].format(
        element=moon_a.element.value, sign_a=moon_a.label, sign_b=moon_b.label
    )
    return PointResult(
        score=score, harmony=HarmonyLevel.from_score(score), dynamic=dynamic, reading=reading
    )


def rising_compatibility(rising_a: ZodiacSign, rising_b: ZodiacSign) -> PointResult:
    score = overall_score(rising_a, rising_b)
    dynamic = element_dynamic(rising_a, rising_b)
    return PointResult(
        score=score,
        harmony=HarmonyLevel.from_score(score),
        dynamic=dynamic,
        reading=_ELEMENT_TEXTS[dynamic]["rising"],
    )


def poetic_summary(a: ZodiacSign, b: ZodiacSign) -> str:
    return _ELEMENT_TEXTS[element_dynamic(a, b)]["poetic"]


def nurturing_advice(a: ZodiacSign, b: ZodiacSign) -> str:
    return _ELEMENT_TEXTS[element_dynamic(a, b)]["advice"]


def element_description(a: ZodiacSign, b: ZodiacSign) -> str:
    return element_dynamic(a, b).description


def modality_description(a: ZodiacSign, b: ZodiacSign) -> str:
    return modality_dynamic(a, b).description
