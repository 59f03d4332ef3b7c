"""
Tests pour le résolveur de contenu à niveaux.

Couvre l'ordre cache → store → génération → statique, la persistance au mieux,
la déduplication des résolutions concurrentes, les délais et les gardes.
"""

from __future__ import annotations

import asyncio
from datetime import date, time, timedelta
from unittest.mock import AsyncMock

import pytest

from astrofriends.domain.entities import (
    CompatibilityRecord,
    OracleContent,
    Person,
    SignHoroscope,
)
from astrofriends.domain.errors import (
    Exhausted,
    FeatureLocked,
    InputError,
    RemoteUnavailable,
)
from astrofriends.domain.zodiac import ZodiacSign
from astrofriends.infra.content_repo import StaticContentRepository
from astrofriends.infra.store.content_store import ContentStore
from astrofriends.services.generation import GenerationPipeline
from astrofriends.services.resolver import ContentResolver, Failed, failure_reason
from tests.conftest import FIXED_WEEK
from tests.fakes import FailingDocumentStore, FakeGenerationClient

# Constantes pour éviter les erreurs PLR2004
SIGN_COUNT = 12
CONCURRENT_CALLERS = 5
WEEKLY_SCORE = 77
STORED_SCORE = 42

FULL_A = Person(id="a", birthday=date(1990, 8, 1), birth_time=time(9), birth_place="Paris")
FULL_B = Person(id="b", birthday=date(1991, 4, 2), birth_time=time(18), birth_place="London")
EXTENDED = Person(id="ext", birthday=date(1988, 11, 30), birth_time=time(7))
BASIC = Person(id="basic", birthday=date(1992, 1, 5))


def _failing_resolver(
    static_repo, clock, llm_error=None
) -> tuple[ContentResolver, FakeGenerationClient]:
    store = ContentStore(FailingDocumentStore())
    llm = FakeGenerationClient(error=llm_error or RemoteUnavailable("llm_down"))
    pipeline = GenerationPipeline(llm, store=store, clock=clock)
    return ContentResolver(store, pipeline, static_repo, clock=clock), llm


# ---- Chaîne de niveaux ----


@pytest.mark.asyncio
async def test_store_primed_record_skips_generation(resolver, store, llm) -> None:
    """Teste qu'un enregistrement de la semaine en store est servi sans génération."""
    primed = SignHoroscope(sign=ZodiacSign.LEO, week_start=FIXED_WEEK, weekly_reading="stored")
    await store.save_sign_horoscope(primed)

    result = await resolver.get_weekly_horoscope(ZodiacSign.LEO)

    assert result.tier == "store"
    assert result.record.weekly_reading == "stored"
    assert [c for c in llm.calls if c.kind == "weekly_sign"] == []


@pytest.mark.asyncio
async def test_second_request_served_from_cache(resolver, llm) -> None:
    first = await resolver.get_weekly_horoscope(ZodiacSign.LEO)
    second = await resolver.get_weekly_horoscope(ZodiacSign.LEO)
    assert first.tier == "generated"
    assert second.tier == "cache"
    assert second.record == first.record
    assert len(llm.calls) == 1


@pytest.mark.asyncio
async def test_generated_content_is_persisted(resolver, store) -> None:
    await resolver.get_weekly_horoscope(ZodiacSign.ARIES)
    stored = await store.fetch_sign_horoscope(ZodiacSign.ARIES, FIXED_WEEK)
    assert stored is not None
    assert stored.weekly_reading == "A bright week opens before you."


@pytest.mark.asyncio
async def test_everything_failing_serves_static(static_repo, clock) -> None:
    """Teste qu'un store et un pipeline défaillants donnent quand même du contenu statique."""
    resolver, _ = _failing_resolver(static_repo, clock)

    result = await resolver.get_weekly_horoscope(ZodiacSign.VIRGO)

    assert result is not None
    assert result.tier == "static"
    assert result.is_generated is False
    assert result.record.is_generated is False
    assert result.record.weekly_reading


@pytest.mark.asyncio
async def test_static_results_are_not_cached(static_repo, clock) -> None:
    resolver, llm = _failing_resolver(static_repo, clock)
    await resolver.get_weekly_horoscope(ZodiacSign.VIRGO)
    again = await resolver.get_weekly_horoscope(ZodiacSign.VIRGO)
    assert again.tier == "static"
    assert len(llm.calls) == 2


@pytest.mark.asyncio
async def test_persist_failure_is_swallowed(static_repo, clock) -> None:
    """Teste qu'un échec d'écriture n'empêche pas de servir le contenu généré."""
    documents = FailingDocumentStore()
    store = ContentStore(documents)
    pipeline = GenerationPipeline(FakeGenerationClient(), store=store, clock=clock)
    resolver = ContentResolver(store, pipeline, static_repo, clock=clock)

    result = await resolver.get_weekly_horoscope(ZodiacSign.LEO)

    assert result.tier == "generated"
    assert result.is_generated is True
    assert documents.upsert_calls >= 1
    assert (await resolver.get_weekly_horoscope(ZodiacSign.LEO)).tier == "cache"


@pytest.mark.asyncio
async def test_exhausted_only_when_static_fails(clock, tmp_path) -> None:
    resolver, _ = _failing_resolver(StaticContentRepository(str(tmp_path / "none.json")), clock)
    with pytest.raises(Exhausted):
        await resolver.get_weekly_horoscope(ZodiacSign.LEO)


@pytest.mark.asyncio
async def test_week_rollover_invalidates_cache(resolver, llm, clock) -> None:
    await resolver.get_weekly_horoscope(ZodiacSign.LEO)
    clock.now = clock.now + timedelta(days=7)
    result = await resolver.get_weekly_horoscope(ZodiacSign.LEO)
    assert result.tier == "generated"
    assert result.record.week_start == "2024-03-11"
    assert len([c for c in llm.calls if c.kind == "weekly_sign"]) == 2


# ---- Concurrence et délais ----


@pytest.mark.asyncio
async def test_concurrent_misses_share_one_generation(store, static_repo, clock) -> None:
    """Teste que des demandes concurrentes pour une même clé partagent une seule génération."""
    llm = FakeGenerationClient(delay=0.05)
    pipeline = GenerationPipeline(llm, store=store, clock=clock)
    resolver = ContentResolver(store, pipeline, static_repo, clock=clock)

    results = await asyncio.gather(
        *(resolver.get_weekly_horoscope(ZodiacSign.LEO) for _ in range(CONCURRENT_CALLERS))
    )

    assert len(llm.calls) == 1
    assert {r.tier for r in results} == {"generated"}
    assert all(r.record == results[0].record for r in results)
    assert resolver._inflight == {}


@pytest.mark.asyncio
async def test_generation_timeout_falls_back(store, static_repo, clock) -> None:
    llm = FakeGenerationClient(delay=1.0)
    pipeline = GenerationPipeline(llm, store=store, clock=clock)
    resolver = ContentResolver(
        store, pipeline, static_repo, clock=clock, generation_timeout_s=0.01
    )
    result = await resolver.get_weekly_horoscope(ZodiacSign.LEO)
    assert result.tier == "static"


@pytest.mark.asyncio
async def test_store_timeout_falls_through_to_generation(resolver, store) -> None:
    async def slow_fetch(*_args):
        await asyncio.sleep(1.0)

    store.fetch_sign_horoscope = slow_fetch
    resolver.remote_timeout_s = 0.01
    result = await resolver.get_weekly_horoscope(ZodiacSign.LEO)
    assert result.tier == "generated"


def test_failure_reasons() -> None:
    assert failure_reason(TimeoutError()) == "timeout"
    assert failure_reason(RemoteUnavailable("store_down: boom")) == "store_down"
    assert Failed("timeout").reason == "timeout"


# ---- Lot et rafraîchissement ----


@pytest.mark.asyncio
async def test_all_horoscopes_isolate_failures(resolver, llm) -> None:
    """Teste qu'un signe en échec n'interrompt pas les 11 autres."""
    original = resolver.pipeline.generate_sign_horoscope

    async def flaky(sign, sky):
        if sign is ZodiacSign.SCORPIO:
            raise RemoteUnavailable("llm_down")
        return await original(sign, sky)

    resolver.pipeline.generate_sign_horoscope = flaky
    results = await resolver.get_all_weekly_horoscopes()

    assert len(results) == SIGN_COUNT
    tiers = {r.record.sign: r.tier for r in results}
    assert tiers[ZodiacSign.SCORPIO] == "static"
    assert tiers[ZodiacSign.LEO] == "generated"


@pytest.mark.asyncio
async def test_refresh_bypasses_cache_and_surfaces_errors(resolver, llm) -> None:
    await resolver.get_weekly_horoscope(ZodiacSign.LEO)
    refreshed = await resolver.refresh_weekly_horoscope(ZodiacSign.LEO)
    assert refreshed.tier == "generated"
    assert len([c for c in llm.calls if c.kind == "weekly_sign"]) == 2

    llm.error = RemoteUnavailable("llm_down")
    with pytest.raises(RemoteUnavailable):
        await resolver.refresh_weekly_horoscope(ZodiacSign.LEO)


@pytest.mark.asyncio
async def test_refresh_weekly_content_clears_cache(resolver, store) -> None:
    await resolver.get_weekly_horoscope(ZodiacSign.LEO)
    results = await resolver.refresh_weekly_content()
    assert len(results) == SIGN_COUNT
    leo = next(r for r in results if r.record.sign is ZodiacSign.LEO)
    assert leo.tier == "store"


@pytest.mark.asyncio
async def test_sky_is_shared_and_persisted(resolver, store) -> None:
    first = await resolver.get_sky()
    second = await resolver.get_sky()
    assert first.tier == "generated"
    assert second.tier == "cache"
    assert (await store.fetch_sky(FIXED_WEEK)) == first.record


# ---- Oracle ----


@pytest.mark.asyncio
async def test_oracle_generated_for_extended_person(resolver) -> None:
    result = await resolver.get_oracle(EXTENDED)
    assert result.tier == "generated"
    assert result.record.person_id == EXTENDED.id
    assert result.record.week_start == FIXED_WEEK


@pytest.mark.asyncio
async def test_oracle_locked_serves_static_without_generation(resolver, llm) -> None:
    result = await resolver.get_oracle(BASIC)
    assert result.tier == "static"
    assert result.is_generated is False
    assert llm.calls == []


@pytest.mark.asyncio
async def test_oracle_without_sign_is_input_error(resolver) -> None:
    with pytest.raises(InputError):
        await resolver.get_oracle(Person(id="unknown"))


@pytest.mark.asyncio
async def test_refresh_oracle_locked(resolver) -> None:
    with pytest.raises(FeatureLocked):
        await resolver.refresh_oracle(BASIC)


# ---- Compatibilité ----


def test_static_compatibility_is_order_independent(resolver) -> None:
    ab = resolver.get_compatibility(FULL_A, FULL_B)
    ba = resolver.get_compatibility(FULL_B, FULL_A)
    assert ab.tier == "static"
    assert ab.record.base_score == ba.record.base_score
    assert ab.is_generated is False


@pytest.mark.asyncio
async def test_reading_locked_for_partial_data(resolver, llm) -> None:
    result = await resolver.get_compatibility_reading(FULL_A, BASIC)
    assert result.tier == "static"
    assert llm.calls == []


@pytest.mark.asyncio
async def test_reading_generated_and_found_in_either_order(resolver, store) -> None:
    generated = await resolver.get_compatibility_reading(FULL_A, FULL_B)
    assert generated.tier == "generated"
    resolver.clear_cache()
    again = await resolver.get_compatibility_reading(FULL_B, FULL_A)
    assert again.tier == "store"
    assert again.record.ai_output == generated.record.ai_output


@pytest.mark.asyncio
async def test_this_week_ignores_stale_week_and_merges(resolver, store, llm) -> None:
    """Teste qu'un enregistrement d'une autre semaine est régénéré sans perdre la synastrie."""
    await store.save_compatibility(
        CompatibilityRecord(
            person_a="a",
            person_b="b",
            base_score=STORED_SCORE,
            ai_output="deep reading",
            week_start="2024-02-26",
            this_week_score=10,
        )
    )
    await store.save_oracle(
        OracleContent(person_id="a", week_start=FIXED_WEEK, weekly_reading="x", mood="Dreamy")
    )

    result = await resolver.get_this_week_compatibility(FULL_A, FULL_B)

    assert result.tier == "generated"
    assert result.record.has_week(FIXED_WEEK)
    assert result.record.this_week_score == WEEKLY_SCORE
    assert result.record.ai_output == "deep reading"
    weekly_call = next(c for c in llm.calls if c.kind == "weekly_compatibility")
    assert weekly_call.moods == ["Dreamy"]
    stored = await store.fetch_compatibility("b", "a")
    assert stored.ai_output == "deep reading"
    assert stored.this_week_score == WEEKLY_SCORE


@pytest.mark.asyncio
async def test_this_week_keeps_synastry_when_store_read_fails(resolver, store) -> None:
    """Teste qu'une lecture en échec n'efface pas la synastrie déjà stockée."""
    await store.save_compatibility(
        CompatibilityRecord(
            person_a="a",
            person_b="b",
            base_score=STORED_SCORE,
            synastry_highlights=["shared fire", "patience"],
            ai_output="deep reading",
        )
    )
    read_stored = store.fetch_compatibility
    store.fetch_compatibility = AsyncMock(side_effect=RemoteUnavailable("store_down"))

    result = await resolver.get_this_week_compatibility(FULL_A, FULL_B)

    assert result.tier == "generated"
    stored = await read_stored("a", "b")
    assert stored.synastry_highlights == ["shared fire", "patience"]
    assert stored.ai_output == "deep reading"
    assert stored.this_week_score == WEEKLY_SCORE


@pytest.mark.asyncio
async def test_this_week_current_record_is_hit(resolver, store, llm) -> None:
    await store.save_compatibility(
        CompatibilityRecord(
            person_a="a",
            person_b="b",
            base_score=STORED_SCORE,
            week_start=FIXED_WEEK,
            this_week_score=STORED_SCORE,
        )
    )
    result = await resolver.get_this_week_compatibility(FULL_A, FULL_B)
    assert result.tier == "store"
    assert llm.calls == []


@pytest.mark.asyncio
async def test_this_week_static_fallback_has_weekly_layer(static_repo, clock) -> None:
    resolver, _ = _failing_resolver(static_repo, clock)
    result = await resolver.get_this_week_compatibility(FULL_A, FULL_B)
    assert result.tier == "static"
    assert result.record.has_week(FIXED_WEEK)


@pytest.mark.asyncio
async def test_store_fetch_failure_counts_as_miss(resolver, store) -> None:
    """Teste qu'un échec de lecture du store mène à la génération comme une absence."""
    store.fetch_sign_horoscope = AsyncMock(side_effect=RemoteUnavailable("store_down"))
    result = await resolver.get_weekly_horoscope(ZodiacSign.LEO)
    assert result.tier == "generated"
