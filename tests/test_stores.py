"""
Tests pour les stores de documents (mémoire, REST, Redis) et le store typé.

Le store REST est testé via `httpx.MockTransport`; le store Redis avec un
client simulé (`unittest.mock`).
"""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from astrofriends.domain.entities import CompatibilityRecord, SignHoroscope
from astrofriends.domain.errors import MalformedResponse, RemoteUnavailable
from astrofriends.domain.zodiac import ZodiacSign
from astrofriends.infra.store.base import natural_key
from astrofriends.infra.store.content_store import (
    COMPATIBILITY,
    SIGN_HOROSCOPES,
    ContentStore,
)
from astrofriends.infra.store.memory_store import InMemoryDocumentStore
from astrofriends.infra.store.redis_store import RedisDocumentStore
from astrofriends.infra.store.rest_store import RestDocumentStore

# Constantes pour éviter les erreurs PLR2004
WEEK = "2024-03-04"
MAX_RETRIES = 3
BASE_SCORE = 80
WEEKLY_SCORE = 66
HTTP_OK = 200
HTTP_CREATED = 201
HTTP_BAD_REQUEST = 400
HTTP_UNAVAILABLE = 503


def _horoscope(reading: str) -> SignHoroscope:
    return SignHoroscope(sign=ZodiacSign.LEO, week_start=WEEK, weekly_reading=reading)


# ---- Mémoire ----


@pytest.mark.asyncio
async def test_upsert_same_key_twice_keeps_one_record(store, documents) -> None:
    """Teste l'idempotence: deux upserts sur la même clé laissent un seul enregistrement."""
    await store.save_sign_horoscope(_horoscope("first"))
    await store.save_sign_horoscope(_horoscope("second"))

    assert documents.count(SIGN_HOROSCOPES) == 1
    stored = await store.fetch_sign_horoscope(ZodiacSign.LEO, WEEK)
    assert stored is not None
    assert stored.weekly_reading == "second"


@pytest.mark.asyncio
async def test_compatibility_lookup_is_order_independent(store, documents) -> None:
    """Teste que (A, B) et (B, A) résolvent le même enregistrement."""
    await store.save_compatibility(
        CompatibilityRecord(person_a="zed", person_b="amy", base_score=BASE_SCORE)
    )
    ab = await store.fetch_compatibility("amy", "zed")
    ba = await store.fetch_compatibility("zed", "amy")
    assert ab == ba
    assert ab is not None
    assert (ab.person_a, ab.person_b) == ("amy", "zed")
    assert documents.count(COMPATIBILITY) == 1


@pytest.mark.asyncio
async def test_compatibility_weekly_update_keeps_base_layer(store) -> None:
    """Teste que les champs absents d'un upsert ne sont pas écrasés."""
    await store.save_compatibility(
        CompatibilityRecord(
            person_a="a", person_b="b", base_score=BASE_SCORE, ai_output="reading"
        )
    )
    await store.save_compatibility(
        CompatibilityRecord(
            person_a="b",
            person_b="a",
            base_score=BASE_SCORE,
            week_start=WEEK,
            this_week_score=WEEKLY_SCORE,
        )
    )
    record = await store.fetch_compatibility("a", "b")
    assert record.ai_output == "reading"
    assert record.has_week(WEEK)


@pytest.mark.asyncio
async def test_weekly_layer_write_keeps_synastry(store, documents) -> None:
    """Teste que l'écriture de la couche hebdomadaire ne vide pas la synastrie stockée."""
    await store.save_compatibility(
        CompatibilityRecord(
            person_a="a",
            person_b="b",
            base_score=BASE_SCORE,
            synastry_highlights=["shared fire"],
            ai_output="reading",
        )
    )
    saved = await store.save_weekly_compatibility(
        CompatibilityRecord(
            person_a="b",
            person_b="a",
            base_score=BASE_SCORE,
            week_start=WEEK,
            this_week_score=WEEKLY_SCORE,
        )
    )
    rows = await documents.get(COMPATIBILITY, {"person_a": "a", "person_b": "b"})
    assert rows[0]["synastry_highlights"] == ["shared fire"]
    assert saved.synastry_highlights == ["shared fire"]
    assert saved.has_week(WEEK)


@pytest.mark.asyncio
async def test_is_generated_not_persisted(store, documents) -> None:
    await store.save_sign_horoscope(_horoscope("x"))
    rows = await documents.get(SIGN_HOROSCOPES, {"sign": "leo"})
    assert "is_generated" not in rows[0]


@pytest.mark.asyncio
async def test_invalid_row_is_malformed(documents) -> None:
    await documents.upsert(
        SIGN_HOROSCOPES, {"sign": "leo", "week_start": WEEK}, ("sign", "week_start")
    )
    with pytest.raises(MalformedResponse):
        await ContentStore(documents).fetch_sign_horoscope(ZodiacSign.LEO, WEEK)


def test_natural_key_requires_fields() -> None:
    with pytest.raises(ValueError):
        natural_key({"sign": "leo"}, ("sign", "week_start"))


# ---- REST ----


def _rest_store(handler) -> RestDocumentStore:
    return RestDocumentStore(
        "https://store.example",
        "k3y",
        max_retries=MAX_RETRIES,
        backoff_base=0,
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_rest_get_sends_eq_filters_and_auth() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(HTTP_OK, json=[{"sign": "leo", "week_start": WEEK}])

    rows = await _rest_store(handler).get(SIGN_HOROSCOPES, {"sign": "leo", "week_start": WEEK})

    assert rows == [{"sign": "leo", "week_start": WEEK}]
    request = seen[0]
    assert request.url.path == "/rest/v1/weekly_horoscopes"
    assert request.url.params["sign"] == "eq.leo"
    assert request.url.params["week_start"] == f"eq.{WEEK}"
    assert request.headers["apikey"] == "k3y"
    assert request.headers["Authorization"] == "Bearer k3y"


@pytest.mark.asyncio
async def test_rest_upsert_uses_merge_duplicates() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(HTTP_CREATED, json=[json.loads(request.content)])

    record = {"sign": "leo", "week_start": WEEK, "weekly_reading": "x"}
    stored = await _rest_store(handler).upsert(SIGN_HOROSCOPES, record, ("sign", "week_start"))

    assert stored == record
    assert seen[0].method == "POST"
    assert seen[0].url.params["on_conflict"] == "sign,week_start"
    assert "merge-duplicates" in seen[0].headers["Prefer"]


@pytest.mark.asyncio
async def test_rest_retries_5xx_then_succeeds() -> None:
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        if calls["n"] < MAX_RETRIES:
            return httpx.Response(HTTP_UNAVAILABLE)
        return httpx.Response(HTTP_OK, json=[])

    assert await _rest_store(handler).get(SIGN_HOROSCOPES, {"sign": "leo"}) == []
    assert calls["n"] == MAX_RETRIES


@pytest.mark.asyncio
async def test_rest_gives_up_after_retries() -> None:
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        raise httpx.ConnectError("boom", request=request)

    with pytest.raises(RemoteUnavailable):
        await _rest_store(handler).get(SIGN_HOROSCOPES, {"sign": "leo"})
    assert calls["n"] == MAX_RETRIES


@pytest.mark.asyncio
async def test_rest_client_error_fails_fast() -> None:
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        return httpx.Response(HTTP_BAD_REQUEST, json={"message": "bad"})

    with pytest.raises(RemoteUnavailable) as excinfo:
        await _rest_store(handler).get(SIGN_HOROSCOPES, {"sign": "leo"})
    assert excinfo.value.status_code == HTTP_BAD_REQUEST
    assert calls["n"] == 1


@pytest.mark.asyncio
async def test_rest_non_list_payload_is_malformed() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(HTTP_OK, json={"unexpected": True})

    with pytest.raises(MalformedResponse):
        await _rest_store(handler).get(SIGN_HOROSCOPES, {"sign": "leo"})


# ---- Redis ----


def _redis_client(existing: dict | None = None) -> tuple[MagicMock, MagicMock]:
    pipe = MagicMock()
    pipe.watch = AsyncMock()
    pipe.hget = AsyncMock(return_value=json.dumps(existing) if existing else None)
    pipe.execute = AsyncMock(return_value=[1, True])
    ctx = MagicMock()
    ctx.__aenter__.return_value = pipe
    ctx.__aexit__.return_value = False
    client = MagicMock()
    client.pipeline.return_value = ctx
    client.get = AsyncMock()
    client.hget = AsyncMock()
    client.hvals = AsyncMock()
    return client, pipe


@pytest.mark.asyncio
async def test_redis_upsert_merges_existing_document() -> None:
    client, pipe = _redis_client(existing={"sign": "leo", "week_start": WEEK, "mood": "Calm"})
    store = RedisDocumentStore(client=client)

    merged = await store.upsert(
        SIGN_HOROSCOPES,
        {"sign": "leo", "week_start": WEEK, "weekly_reading": "x"},
        ("sign", "week_start"),
    )

    assert merged["mood"] == "Calm"
    assert merged["weekly_reading"] == "x"
    name, field, payload = pipe.hset.call_args.args
    assert name == "astrofriends:weekly_horoscopes"
    assert field == f"leo|{WEEK}"
    assert json.loads(payload) == merged


@pytest.mark.asyncio
async def test_redis_get_full_key_uses_hget() -> None:
    client, _ = _redis_client()
    client.get.return_value = "sign,week_start"
    client.hget.return_value = json.dumps({"sign": "leo", "week_start": WEEK})
    store = RedisDocumentStore(client=client)

    rows = await store.get(SIGN_HOROSCOPES, {"sign": "leo", "week_start": WEEK})

    assert rows == [{"sign": "leo", "week_start": WEEK}]
    client.hget.assert_awaited_once_with("astrofriends:weekly_horoscopes", f"leo|{WEEK}")
    client.hvals.assert_not_awaited()


@pytest.mark.asyncio
async def test_redis_partial_filter_scans_values() -> None:
    client, _ = _redis_client()
    client.get.return_value = "sign,week_start"
    client.hvals.return_value = [
        json.dumps({"sign": "leo", "week_start": WEEK}),
        json.dumps({"sign": "aries", "week_start": WEEK}),
    ]
    rows = await RedisDocumentStore(client=client).get(SIGN_HOROSCOPES, {"sign": "aries"})
    assert rows == [{"sign": "aries", "week_start": WEEK}]


@pytest.mark.asyncio
async def test_redis_error_maps_to_remote_unavailable() -> None:
    client, _ = _redis_client()
    client.get.side_effect = RedisConnectionError("down")
    with pytest.raises(RemoteUnavailable):
        await RedisDocumentStore(client=client).get(SIGN_HOROSCOPES, {"sign": "leo"})


def test_redis_requires_url() -> None:
    with pytest.raises(ValueError):
        RedisDocumentStore()
