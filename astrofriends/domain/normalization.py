"""
Normalisation des réponses brutes du modèle de génération.

Étape unique appliquée juste après la désérialisation:
- retrait des blocs de code et du texte autour de l'objet JSON,
- conversion des clés camelCase en snake_case,
- validation par un schéma pydantic par type de contenu, avec valeurs par défaut
  pour les champs optionnels absents.

Toute réponse inexploitable lève `MalformedResponse`.
"""

from __future__ import annotations

import json
import re
import zlib
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from astrofriends.domain.errors import MalformedResponse
from astrofriends.domain.zodiac import ZodiacSign

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")
_FENCE = re.compile(r"```(?:json)?", re.IGNORECASE)


def _clamp_score(value: Any) -> Any:
    if value is None:
        return value
    try:
        return min(100, max(0, int(float(value))))
    except (TypeError, ValueError):
        return value


class SignPayload(BaseModel):
    weekly_reading: str = Field(min_length=1)
    mood: str = "Balanced"
    lucky_number: int | None = None
    lucky_color: str = "Purple"
    love_forecast: str | None = None
    career_forecast: str | None = None
    health_tip: str | None = None
    power_day: str | None = None
    challenge_day: str | None = None
    affirmation: str | None = None


class OraclePayload(BaseModel):
    weekly_reading: str = Field(min_length=1)
    love_advice: str | None = None
    career_advice: str | None = None
    lucky_number: int | None = None
    lucky_color: str = "Purple"
    mood: str = "Balanced"
    compatibility_sign: ZodiacSign | None = None
    celestial_insight: str | None = None

    @field_validator("compatibility_sign", mode="before")
    @classmethod
    def _parse_sign(cls, value: Any) -> Any:
        if isinstance(value, str):
            return ZodiacSign.parse(value)
        return value


class CompatibilityPayload(BaseModel):
    summary: str = Field(min_length=1)
    overall_score: int = 50
    headline: str | None = None
    strengths: list[str] = Field(default_factory=list)
    challenges: list[str] = Field(default_factory=list)
    advice: str | None = None
    elemental_harmony: str | None = None
    emotional_connection: str | None = None

    @field_validator("overall_score", mode="before")
    @classmethod
    def _clamp(cls, value: Any) -> Any:
        return _clamp_score(value)


class WeeklyCompatibilityPayload(BaseModel):
    summary: str = Field(min_length=1)
    this_week_score: int = 50
    love_compatibility: str = "Medium"
    communication_compatibility: str = "Medium"
    weekly_vibe: str = "Balanced"
    growth_advice: str = "Be open to each other's energy."
    celestial_influence: str | None = None

    @field_validator("this_week_score", mode="before")
    @classmethod
    def _clamp(cls, value: Any) -> Any:
        return _clamp_score(value)


PAYLOADS: dict[str, type[BaseModel]] = {
    "weekly_sign": SignPayload,
    "personal_oracle": OraclePayload,
    "compatibility": CompatibilityPayload,
    "weekly_compatibility": WeeklyCompatibilityPayload,
}


def to_snake(key: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", key).lower()


def snake_keys(value: Any) -> Any:
    """Convertit récursivement les clés de dictionnaires en snake_case."""
    if isinstance(value, dict):
        return {to_snake(str(k)): snake_keys(v) for k, v in value.items()}
    if isinstance(value, list):
        return [snake_keys(v) for v in value]
    return value


def extract_json_object(raw: str) -> dict[str, Any]:
    """Extrait le premier objet JSON complet d'une réponse textuelle.

    Le texte qui suit l'objet est ignoré, même s'il contient des accolades.
    """
    if not raw or not raw.strip():
        raise MalformedResponse("empty_response")
    text = _FENCE.sub("", raw)
    start = text.find("{")
    if start == -1:
        raise MalformedResponse("no_json_object")
    decoder = json.JSONDecoder()
    reason = "json_not_object"
    while start != -1:
        try:
            parsed, _ = decoder.raw_decode(text, start)
        except json.JSONDecodeError as exc:
            reason = f"invalid_json: {exc.msg}"
        else:
            if isinstance(parsed, dict):
                return parsed
        start = text.find("{", start + 1)
    raise MalformedResponse(reason)


def default_lucky_number(seed: str) -> int:
    """Nombre porte-bonheur déterministe (1..99) dérivé d'une graine stable."""
    return zlib.crc32(seed.encode("utf-8")) % 99 + 1


def normalize(kind: str, raw: str, seed: str = "") -> BaseModel:
    """Transforme le texte brut du modèle en charge utile validée pour `kind`.

    `seed` (ex. `"leo:2024-03-04"`) fixe le nombre porte-bonheur quand il manque.
    """
    schema = PAYLOADS.get(kind)
    if schema is None:
        raise MalformedResponse(f"unknown_kind:{kind}")
    data = snake_keys(extract_json_object(raw))
    # null explicite = champ absent
    data = {k: v for k, v in data.items() if v is not None}
    try:
        payload = schema.model_validate(data)
    except ValidationError as exc:
        raise MalformedResponse(f"schema_mismatch:{kind}") from exc
    if "lucky_number" in schema.model_fields and payload.lucky_number is None:
        payload.lucky_number = default_lucky_number(seed or kind)
    return payload
