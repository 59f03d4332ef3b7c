"""Tests pour la normalisation des réponses du modèle et le contexte de prompt."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from astrofriends.domain.entities import AstroProfile, SkyContext
from astrofriends.domain.errors import MalformedResponse
from astrofriends.domain.normalization import (
    default_lucky_number,
    extract_json_object,
    normalize,
    snake_keys,
)
from astrofriends.domain.prompting import PromptContext, SkySummary, SubjectProfile
from astrofriends.domain.zodiac import Element, Modality, ZodiacSign

# Constantes pour éviter les erreurs PLR2004
LUCKY = 42
SCORE_MAX = 100
SCORE_MIN = 0
LUCKY_MIN = 1
LUCKY_MAX = 99


def test_extract_json_from_fenced_prose() -> None:
    raw = 'Sure!\n```json\n{"weeklyReading": "Hi", "nested": {"a": 1}}\n```\nEnjoy.'
    assert extract_json_object(raw) == {"weeklyReading": "Hi", "nested": {"a": 1}}


def test_extract_json_ignores_braces_after_object() -> None:
    """Teste que la prose après l'objet, accolades comprises, est ignorée."""
    raw = '{"weeklyReading": "Hi"}\nNote: fill {placeholders} before sending.'
    assert extract_json_object(raw) == {"weeklyReading": "Hi"}


def test_extract_json_skips_braces_before_object() -> None:
    raw = 'Template {name} aside, here it is: {"mood": "Calm"}'
    assert extract_json_object(raw) == {"mood": "Calm"}


@pytest.mark.parametrize("raw", ["", "   ", "no json here", "[1, 2]", "{not valid}"])
def test_extract_json_rejects_garbage(raw: str) -> None:
    with pytest.raises(MalformedResponse):
        extract_json_object(raw)


def test_snake_keys_recursive() -> None:
    data = {"luckyNumber": 3, "inner": [{"loveForecast": "x"}], "already_snake": 1}
    assert snake_keys(data) == {
        "lucky_number": 3,
        "inner": [{"love_forecast": "x"}],
        "already_snake": 1,
    }


def test_camel_and_snake_keys_give_same_payload() -> None:
    """Teste que les deux conventions de nommage produisent le même résultat."""
    camel = normalize("weekly_sign", '{"weeklyReading": "Go", "luckyNumber": 42, "mood": "Calm"}')
    snake = normalize("weekly_sign", '{"weekly_reading": "Go", "lucky_number": 42, "mood": "Calm"}')
    assert camel == snake
    assert camel.lucky_number == LUCKY


def test_missing_optional_fields_get_defaults() -> None:
    payload = normalize(
        "weekly_sign", '{"weeklyReading": "Go", "mood": null}', seed="leo:2024-03-04"
    )
    assert payload.mood == "Balanced"
    assert payload.lucky_color == "Purple"
    assert payload.love_forecast is None
    assert payload.lucky_number == default_lucky_number("leo:2024-03-04")


def test_default_lucky_number_deterministic_and_in_range() -> None:
    first = default_lucky_number("aries:2024-03-04")
    assert first == default_lucky_number("aries:2024-03-04")
    assert LUCKY_MIN <= first <= LUCKY_MAX


def test_missing_main_text_is_malformed() -> None:
    with pytest.raises(MalformedResponse):
        normalize("personal_oracle", '{"mood": "Calm"}')
    with pytest.raises(MalformedResponse):
        normalize("compatibility", '{"summary": ""}')


def test_scores_are_clamped() -> None:
    high = normalize("weekly_compatibility", '{"summary": "ok", "thisWeekScore": 140}')
    low = normalize("compatibility", '{"summary": "ok", "overallScore": "-5"}')
    assert high.this_week_score == SCORE_MAX
    assert low.overall_score == SCORE_MIN


def test_oracle_compatibility_sign_is_tolerant() -> None:
    payload = normalize(
        "personal_oracle", '{"weeklyReading": "x", "compatibilitySign": "LIBRA"}'
    )
    assert payload.compatibility_sign is ZodiacSign.LIBRA
    unknown = normalize(
        "personal_oracle", '{"weeklyReading": "x", "compatibilitySign": "Ophiuchus"}'
    )
    assert unknown.compatibility_sign is None


def test_unknown_kind_rejected() -> None:
    with pytest.raises(MalformedResponse):
        normalize("daily", "{}")


def test_prompt_context_forbids_identifying_fields() -> None:
    """Teste que le contexte de prompt refuse tout champ hors attributs catégoriels."""
    with pytest.raises(ValidationError):
        SubjectProfile(
            sun_sign=ZodiacSign.LEO,
            element=Element.FIRE,
            modality=Modality.FIXED,
            name="Alice",
        )
    with pytest.raises(ValidationError):
        PromptContext(kind="weekly_sign", subjects=[])


def test_prompt_render_contains_profile_and_schema() -> None:
    profile = AstroProfile(
        person_id="secret-id",
        sun_sign=ZodiacSign.LEO,
        moon_sign=ZodiacSign.CANCER,
        element=Element.FIRE,
        modality=Modality.FIXED,
    )
    sky = SkyContext(week_start="2024-03-04", moon_phase="Full Moon", transits=["Mars square"])
    context = PromptContext(
        kind="personal_oracle",
        subjects=[SubjectProfile.from_profile(profile)],
        sky=SkySummary.from_sky(sky),
    )
    text = context.render()
    assert "Leo" in text
    assert "Cancer" in text
    assert "Full Moon" in text
    assert "weekly_reading" in text
    assert "secret-id" not in text
