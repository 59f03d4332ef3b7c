"""
Moteur astrologique local par approximations déterministes.

Utilisé quand aucune API de thème n'est configurée ou que les données de
naissance sont partielles. Aucune I/O, aucun aléa: même date, même résultat.
"""

from __future__ import annotations

import math
from datetime import date, time

from astrofriends.domain.entities import AstroProfile, CompletenessLevel, Person, SkyContext
from astrofriends.domain.weeks import iso_week_number, week_key, week_start
from astrofriends.domain.zodiac import ZodiacSign

MOON_REFERENCE_DAY = date(2000, 1, 1)  # Lune en Cancer
NEW_MOON_REFERENCE_DAY = date(2000, 1, 6)
SIDEREAL_MONTH_DAYS = 27.3
SYNODIC_MONTH_DAYS = 29.53
SUNRISE_HOUR = 6.0
HOURS_PER_RISING_SIGN = 2.0

MOON_PHASES = [
    "New Moon",
    "Waxing Crescent",
    "First Quarter",
    "Waxing Gibbous",
    "Full Moon",
    "Waning Gibbous",
    "Last Quarter",
    "Waning Crescent",
]

PHASE_GUIDANCE = {
    "New Moon": "Set intentions and plant seeds for new beginnings.",
    "Waxing Crescent": "Take small steps toward your goals with faith.",
    "First Quarter": "Push through obstacles, commitment brings rewards.",
    "Waxing Gibbous": "Fine-tune your approach and stay patient.",
    "Full Moon": "Celebrate progress and release emotional blocks.",
    "Waning Gibbous": "Share your knowledge and express gratitude.",
    "Last Quarter": "Let go of what's holding you back.",
    "Waning Crescent": "Rest, reflect, and prepare for transformation.",
}

WEEKLY_TRANSITS = [
    ["Venus trine Neptune", "Mercury conjunct Sun"],
    ["Mars sextile Jupiter", "Venus entering Taurus"],
    ["Mercury trine Saturn", "Sun square Pluto"],
    ["Venus sextile Mars", "Jupiter trine Moon"],
    ["Mercury opposite Uranus", "Mars conjunct North Node"],
]

# (mots-clés du lieu, décalage horaire approximatif en heures)
_TZ_KEYWORDS: list[tuple[tuple[str, ...], float]] = [
    (("paris", "france", "europe"), 1.0),
    (("new york", "usa", "america"), -5.0),
    (("tokyo", "japan"), 9.0),
    (("london", "uk"), 0.0),
    (("sydney", "australia"), 10.0),
]


def tz_offset_for_place(place: str | None) -> float:
    """Décalage horaire grossier déduit du nom du lieu (0 si inconnu)."""
    if not place:
        return 0.0
    lowered = place.lower()
    for keywords, offset in _TZ_KEYWORDS:
        if any(k in lowered for k in keywords):
            return offset
    return 0.0


class LocalAstroEngine:
    """Approximations lunaires et ascendant par tranches de deux heures."""

    def moon_sign(self, birthday: date, birth_time: time | None = None) -> ZodiacSign:
        days = (birthday - MOON_REFERENCE_DAY).days
        signs_moved = math.floor(days / (SIDEREAL_MONTH_DAYS / 12))
        index = ZodiacSign.CANCER.index + signs_moved
        if birth_time is not None and birth_time.hour >= 12:
            index += 1
        return ZodiacSign.from_index(index)

    def rising_sign(
        self,
        sun: ZodiacSign,
        birth_time: time | None,
        tz_offset: float = 0.0,
    ) -> ZodiacSign | None:
        """Ascendant approché: égal au soleil au lever (6h), +1 signe toutes les 2h."""
        if birth_time is None:
            return None
        decimal_hour = birth_time.hour + birth_time.minute / 60 + tz_offset
        offset = int((decimal_hour - SUNRISE_HOUR) / HOURS_PER_RISING_SIGN)
        return ZodiacSign.from_index(sun.index + offset)

    def profile(self, person: Person) -> AstroProfile | None:
        """Profil local; lune dès EXTENDED, ascendant seulement en FULL."""
        sun = person.sun_sign
        if sun is None:
            return None
        level = person.completeness
        moon = rising = None
        if level >= CompletenessLevel.EXTENDED and person.birthday is not None:
            moon = self.moon_sign(person.birthday, person.birth_time)
        if level == CompletenessLevel.FULL:
            rising = self.rising_sign(
                sun, person.birth_time, tz_offset_for_place(person.birth_place)
            )
        return AstroProfile(
            person_id=person.id,
            sun_sign=sun,
            moon_sign=moon,
            rising_sign=rising,
            element=sun.element,
            modality=sun.modality,
            source="local",
        )

    def moon_phase(self, day: date) -> str:
        days = (day - NEW_MOON_REFERENCE_DAY).days
        into_cycle = days % SYNODIC_MONTH_DAYS
        return MOON_PHASES[int(into_cycle / SYNODIC_MONTH_DAYS * 8) % 8]

    def transiting_moon_sign(self, day: date) -> ZodiacSign:
        days = (day - NEW_MOON_REFERENCE_DAY).days
        return ZodiacSign.from_index(math.floor(days / (SIDEREAL_MONTH_DAYS / 12)))

    def weekly_transits(self, day: date) -> list[str]:
        return list(WEEKLY_TRANSITS[iso_week_number(day) % len(WEEKLY_TRANSITS)])

    def sky(self, day: date) -> SkyContext:
        """Ciel de la semaine contenant `day`, calculé sur son lundi."""
        monday = week_start(day)
        return SkyContext(
            week_start=week_key(monday),
            moon_phase=self.moon_phase(monday),
            moon_sign=self.transiting_moon_sign(monday),
            transits=self.weekly_transits(monday),
        )
