"""Dépôt de contenus statiques basé sur un fichier JSON.

Niveau statique de la chaîne de résolution: une table par signe, embarquée avec
le code, sans réseau. La lecture d'une semaine tourne sur les entrées du signe
selon le numéro de semaine ISO. Seule une table absente, illisible ou
incomplète peut faire échouer ce niveau (`Exhausted`).
"""

from __future__ import annotations

import json
from datetime import date

from pydantic import BaseModel, ValidationError

from astrofriends.domain import compatibility as scoring
from astrofriends.domain.entities import (
    CompatibilityRecord,
    OracleContent,
    SignHoroscope,
    SkyContext,
)
from astrofriends.domain.errors import Exhausted
from astrofriends.domain.weeks import iso_week_number, week_key
from astrofriends.domain.zodiac import ZodiacSign
from astrofriends.infra.astro.local_engine import PHASE_GUIDANCE


class StaticReading(BaseModel):
    weekly_reading: str
    mood: str
    lucky_number: int
    lucky_color: str
    love_advice: str | None = None
    career_advice: str | None = None
    celestial_insight: str | None = None
    best_match: ZodiacSign | None = None


class StaticContentRepository:
    """Table statique chargée une fois puis conservée en mémoire."""

    def __init__(self, path: str):
        self.path = path
        self._table: dict[str, list[StaticReading]] | None = None

    def _load(self) -> dict[str, list[StaticReading]]:
        if self._table is None:
            try:
                with open(self.path, encoding="utf-8") as f:
                    raw = json.load(f)
                self._table = {
                    sign: [StaticReading.model_validate(r) for r in readings]
                    for sign, readings in raw["signs"].items()
                }
            except (OSError, ValueError, KeyError, TypeError, ValidationError) as exc:
                raise Exhausted(f"static_table_unreadable: {self.path}") from exc
        return self._table

    def reading(self, sign: ZodiacSign, day: date) -> StaticReading:
        readings = self._load().get(sign.value)
        if not readings:
            raise Exhausted(f"static_table_missing_sign:{sign.value}")
        return readings[iso_week_number(day) % len(readings)]

    def sign_horoscope(self, sign: ZodiacSign, day: date) -> SignHoroscope:
        r = self.reading(sign, day)
        return SignHoroscope(
            sign=sign,
            week_start=week_key(day),
            weekly_reading=r.weekly_reading,
            mood=r.mood,
            lucky_number=r.lucky_number,
            lucky_color=r.lucky_color,
            love_forecast=r.love_advice,
            career_forecast=r.career_advice,
            is_generated=False,
        )

    def oracle(
        self, person_id: str, sign: ZodiacSign, day: date, sky: SkyContext
    ) -> OracleContent:
        """Oracle générique du signe, enrichi de la phase lunaire de la semaine."""
        r = self.reading(sign, day)
        sky_sentence = f"{sky.moon_phase}: {PHASE_GUIDANCE.get(sky.moon_phase, '')}".strip()
        insight = " ".join(part for part in (r.celestial_insight, sky_sentence) if part)
        return OracleContent(
            person_id=person_id,
            week_start=week_key(day),
            weekly_reading=r.weekly_reading,
            love_advice=r.love_advice,
            career_advice=r.career_advice,
            lucky_number=r.lucky_number,
            lucky_color=r.lucky_color,
            mood=r.mood,
            compatibility_sign=r.best_match,
            celestial_insight=insight,
            is_generated=False,
        )

    def compatibility(
        self,
        person_a: str,
        person_b: str,
        result: scoring.FullResult,
        sun_a: ZodiacSign,
        sun_b: ZodiacSign,
        week: str | None = None,
    ) -> CompatibilityRecord:
        """Compatibilité issue du seul moteur de score (aucun texte généré)."""
        record = CompatibilityRecord(
            person_a=person_a,
            person_b=person_b,
            base_score=result.overall_score,
            headline=result.harmony.value,
            synastry_highlights=[
                scoring.element_description(sun_a, sun_b),
                scoring.modality_description(sun_a, sun_b),
            ],
            ai_output=scoring.poetic_summary(sun_a, sun_b),
            is_generated=False,
        )
        if week is not None:
            record = record.model_copy(
                update={
                    "week_start": week,
                    "this_week_score": result.overall_score,
                    "weekly_vibe": result.harmony.value,
                    "weekly_reading": result.harmony.description,
                    "growth_advice": scoring.nurturing_advice(sun_a, sun_b),
                }
            )
        return record
