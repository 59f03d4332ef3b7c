"""Tables zodiacales fixes: signes, éléments, modalités, plages de dates.

Tout est immuable et défini à l'import; aucune I/O.
"""

from __future__ import annotations

from datetime import date
from enum import Enum


class Element(str, Enum):
    FIRE = "Fire"
    EARTH = "Earth"
    AIR = "Air"
    WATER = "Water"


class Modality(str, Enum):
    CARDINAL = "Cardinal"
    FIXED = "Fixed"
    MUTABLE = "Mutable"


class ZodiacSign(str, Enum):
    """Les 12 signes tropicaux, ordonnés du Bélier aux Poissons."""

    ARIES = "aries"
    TAURUS = "taurus"
    GEMINI = "gemini"
    CANCER = "cancer"
    LEO = "leo"
    VIRGO = "virgo"
    LIBRA = "libra"
    SCORPIO = "scorpio"
    SAGITTARIUS = "sagittarius"
    CAPRICORN = "capricorn"
    AQUARIUS = "aquarius"
    PISCES = "pisces"

    @property
    def index(self) -> int:
        return _ORDER.index(self)

    @property
    def label(self) -> str:
        return self.value.capitalize()

    @property
    def element(self) -> Element:
        return _ATTRIBUTES[self][0]

    @property
    def modality(self) -> Modality:
        return _ATTRIBUTES[self][1]

    @property
    def date_range(self) -> str:
        return _ATTRIBUTES[self][2]

    @property
    def traits(self) -> list[str]:
        return list(_TRAITS[self])

    @classmethod
    def from_index(cls, index: int) -> ZodiacSign:
        """Retourne le signe à l'index donné (modulo 12)."""
        return _ORDER[index % 12]

    @classmethod
    def from_birthday(cls, birthday: date) -> ZodiacSign:
        """Signe solaire tropical correspondant à une date de naissance."""
        key = (birthday.month, birthday.day)
        for (start_m, start_d), sign in _START_DATES:
            if key >= (start_m, start_d):
                return sign
        return cls.CAPRICORN

    @classmethod
    def parse(cls, raw: str | None) -> ZodiacSign | None:
        """Analyse tolérante (casse, espaces); `None` si inconnu."""
        if not raw:
            return None
        try:
            return cls(raw.strip().lower())
        except ValueError:
            return None


_ORDER = list(ZodiacSign)

_ATTRIBUTES: dict[ZodiacSign, tuple[Element, Modality, str]] = {
    ZodiacSign.ARIES: (Element.FIRE, Modality.CARDINAL, "Mar 21 - Apr 19"),
    ZodiacSign.TAURUS: (Element.EARTH, Modality.FIXED, "Apr 20 - May 20"),
    ZodiacSign.GEMINI: (Element.AIR, Modality.MUTABLE, "May 21 - Jun 20"),
    ZodiacSign.CANCER: (Element.WATER, Modality.CARDINAL, "Jun 21 - Jul 22"),
    ZodiacSign.LEO: (Element.FIRE, Modality.FIXED, "Jul 23 - Aug 22"),
    ZodiacSign.VIRGO: (Element.EARTH, Modality.MUTABLE, "Aug 23 - Sep 22"),
    ZodiacSign.LIBRA: (Element.AIR, Modality.CARDINAL, "Sep 23 - Oct 22"),
    ZodiacSign.SCORPIO: (Element.WATER, Modality.FIXED, "Oct 23 - Nov 21"),
    ZodiacSign.SAGITTARIUS: (Element.FIRE, Modality.MUTABLE, "Nov 22 - Dec 21"),
    ZodiacSign.CAPRICORN: (Element.EARTH, Modality.CARDINAL, "Dec 22 - Jan 19"),
    ZodiacSign.AQUARIUS: (Element.AIR, Modality.FIXED, "Jan 20 - Feb 18"),
    ZodiacSign.PISCES: (Element.WATER, Modality.MUTABLE, "Feb 19 - Mar 20"),
}

# Dates de début triées par ordre décroissant dans l'année civile.
_START_DATES: list[tuple[tuple[int, int], ZodiacSign]] = [
    ((12, 22), ZodiacSign.CAPRICORN),
    ((11, 22), ZodiacSign.SAGITTARIUS),
    ((10, 23), ZodiacSign.SCORPIO),
    ((9, 23), ZodiacSign.LIBRA),
    ((8, 23), ZodiacSign.VIRGO),
    ((7, 23), ZodiacSign.LEO),
    ((6, 21), ZodiacSign.CANCER),
    ((5, 21), ZodiacSign.GEMINI),
    ((4, 20), ZodiacSign.TAURUS),
    ((3, 21), ZodiacSign.ARIES),
    ((2, 19), ZodiacSign.PISCES),
    ((1, 20), ZodiacSign.AQUARIUS),
]

_TRAITS: dict[ZodiacSign, tuple[str, ...]] = {
    ZodiacSign.ARIES: ("Courageous", "Energetic", "Pioneering", "Impulsive"),
    ZodiacSign.TAURUS: ("Reliable", "Patient", "Sensual", "Stubborn"),
    ZodiacSign.GEMINI: ("Curious", "Adaptable", "Witty", "Restless"),
    ZodiacSign.CANCER: ("Nurturing", "Intuitive", "Protective", "Moody"),
    ZodiacSign.LEO: ("Generous", "Warm-hearted", "Creative", "Proud"),
    ZodiacSign.VIRGO: ("Analytical", "Helpful", "Precise", "Critical"),
    ZodiacSign.LIBRA: ("Diplomatic", "Gracious", "Fair-minded", "Indecisive"),
    ZodiacSign.SCORPIO: ("Passionate", "Resourceful", "Brave", "Secretive"),
    ZodiacSign.SAGITTARIUS: ("Optimistic", "Adventurous", "Honest", "Impatient"),
    ZodiacSign.CAPRICORN: ("Disciplined", "Responsible", "Ambitious", "Reserved"),
    ZodiacSign.AQUARIUS: ("Independent", "Original", "Humanitarian", "Aloof"),
    ZodiacSign.PISCES: ("Compassionate", "Artistic", "Intuitive", "Escapist"),
}
