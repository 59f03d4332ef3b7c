"""
Résolveur de contenu à niveaux.

Pour chaque demande de contenu hebdomadaire, le résolveur essaie dans l'ordre:
1. le cache en processus (clé `(type, sujet, semaine)`),
2. le store distant,
3. le pipeline de génération (résultat persisté au mieux),
4. le niveau statique, qui ne dépend d'aucun réseau.

Chaque niveau produit un résultat étiqueté `Hit | Miss | Failed(reason)`; un
échec de lecture du store et une absence d'enregistrement mènent tous deux à
la génération, seuls les logs et métriques les distinguent.

Les demandes concurrentes pour une même clé partagent une seule tâche
`asyncio` (dictionnaire des résolutions en cours).
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Generic, Literal, TypeVar

import structlog

from astrofriends.app.metrics import CONTENT_FALLBACKS, CONTENT_RESOLUTIONS, INFLIGHT_JOINS
from astrofriends.domain import compatibility as scoring
from astrofriends.domain.entities import (
    WEEKLY_FIELDS,
    CompatibilityRecord,
    OracleContent,
    Person,
    SignHoroscope,
    SkyContext,
    pair_key,
)
from astrofriends.domain.errors import (
    FeatureLocked,
    InputError,
    MalformedResponse,
    RemoteUnavailable,
)
from astrofriends.domain.unlocks import Feature, can_access, can_access_pair
from astrofriends.domain.weeks import Clock, utc_now, week_key
from astrofriends.domain.zodiac import ZodiacSign
from astrofriends.infra.content_repo import StaticContentRepository
from astrofriends.infra.store.content_store import ContentStore
from astrofriends.services.cache import WeeklyTTLCache
from astrofriends.services.generation import GenerationPipeline

log = structlog.get_logger(__name__)

R = TypeVar("R")
Tier = Literal["cache", "store", "generated", "static"]

@dataclass(frozen=True)
class Resolution(Generic[R]):
    """Contenu servi et niveau qui l'a fourni."""

    record: R
    tier: Tier

    @property
    def is_generated(self) -> bool:
        return self.tier != "static" and getattr(self.record, "is_generated", True)


@dataclass(frozen=True)
class Hit:
    value: Any


@dataclass(frozen=True)
class Miss:
    pass


@dataclass(frozen=True)
class Failed:
    reason: str


Outcome = Hit | Miss | Failed


def failure_reason(exc: BaseException) -> str:
    if isinstance(exc, TimeoutError):
        return "timeout"
    if isinstance(exc, RemoteUnavailable):
        return exc.reason.split(":")[0]
    if isinstance(exc, MalformedResponse):
        return "malformed"
    return type(exc).__name__


def _pair_subject(a: Person, b: Person) -> str:
    return "|".join(pair_key(a.id, b.id))


def _require_sign(person: Person) -> ZodiacSign:
    sign = person.sun_sign
    if sign is None:
        raise InputError("missing_sun_sign")
    return sign


class ContentResolver:
    def __init__(
        self,
        store: ContentStore,
        pipeline: GenerationPipeline,
        static: StaticContentRepository,
        cache: WeeklyTTLCache | None = None,
        clock: Clock = utc_now,
        remote_timeout_s: float = 15.0,
        generation_timeout_s: float = 30.0,
    ) -> None:
        self.store = store
        self.pipeline = pipeline
        self.static = static
        self.clock = clock
        self.cache = cache or WeeklyTTLCache(clock=clock)
        self.remote_timeout_s = remote_timeout_s
        self.generation_timeout_s = generation_timeout_s
        self._inflight: dict[tuple[str, str, str], asyncio.Task] = {}

    # ---- Étapes de la chaîne ----

    async def _try_store(
        self,
        fetch: Callable[[], Awaitable[Any]],
        accept: Callable[[Any], bool] | None = None,
    ) -> Outcome:
        try:
            record = await asyncio.wait_for(fetch(), self.remote_timeout_s)
        except Exception as exc:
            return Failed(failure_reason(exc))
        if record is None or (accept is not None and not accept(record)):
            return Miss()
        return Hit(record)

    async def _try_generate(self, generate: Callable[[], Awaitable[Any]]) -> Outcome:
        try:
            return Hit(await asyncio.wait_for(generate(), self.generation_timeout_s))
        except InputError:
            raise
        except Exception as exc:
            return Failed(failure_reason(exc))

    async def _persist(
        self, kind: str, subject: str, save: Callable[[Any], Awaitable[Any]], record: Any
    ) -> None:
        try:
            await asyncio.wait_for(save(record), self.remote_timeout_s)
        except Exception as exc:
            log.warning(
                "persist_failed", kind=kind, subject=subject, reason=failure_reason(exc)
            )

    def _served(self, kind: str, record: Any, tier: Tier) -> Resolution:
        CONTENT_RESOLUTIONS.labels(kind, tier).inc()
        return Resolution(record=record, tier=tier)

    def _fallback(self, kind: str, subject: str, reason: str, build_static: Callable[[], Any]):
        CONTENT_FALLBACKS.labels(kind, reason).inc()
        record = build_static()
        log.info("static_fallback_served", kind=kind, subject=subject, reason=reason)
        return self._served(kind, record, "static")

    async def _resolve(
        self,
        kind: str,
        subject: str,
        week: str,
        fetch: Callable[[], Awaitable[Any]],
        generate: Callable[[], Awaitable[Any]],
        save: Callable[[Any], Awaitable[Any]],
        build_static: Callable[[], Any],
        accept: Callable[[Any], bool] | None = None,
    ) -> Resolution:
        key = (kind, subject, week)
        cached = self.cache.get(key)
        if cached is not None:
            return self._served(kind, cached, "cache")

        task = self._inflight.get(key)
        if task is not None:
            INFLIGHT_JOINS.labels(kind).inc()
            return await asyncio.shield(task)

        task = asyncio.create_task(
            self._resolve_remote(kind, subject, key, fetch, generate, save, build_static, accept)
        )
        self._inflight[key] = task
        task.add_done_callback(lambda _t: self._inflight.pop(key, None))
        return await asyncio.shield(task)

    async def _resolve_remote(
        self,
        kind: str,
        subject: str,
        key: tuple[str, str, str],
        fetch: Callable[[], Awaitable[Any]],
        generate: Callable[[], Awaitable[Any]],
        save: Callable[[Any], Awaitable[Any]],
        build_static: Callable[[], Any],
        accept: Callable[[Any], bool] | None,
    ) -> Resolution:
        outcome = await self._try_store(fetch, accept)
        if isinstance(outcome, Hit):
            self.cache.set(key, outcome.value)
            return self._served(kind, outcome.value, "store")
        if isinstance(outcome, Failed):
            CONTENT_FALLBACKS.labels(kind, outcome.reason).inc()
            log.warning("store_fetch_failed", kind=kind, subject=subject, reason=outcome.reason)

        outcome = await self._try_generate(generate)
        if isinstance(outcome, Hit):
            await self._persist(kind, subject, save, outcome.value)
            self.cache.set(key, outcome.value)
            return self._served(kind, outcome.value, "generated")

        log.warning("generation_failed", kind=kind, subject=subject, reason=outcome.reason)
        return self._fallback(kind, subject, outcome.reason, build_static)

    async def _refresh(
        self,
        kind: str,
        subject: str,
        week: str,
        generate: Callable[[], Awaitable[Any]],
        save: Callable[[Any], Awaitable[Any]],
    ) -> Resolution:
        """Régénération explicite: ignore cache et store, les erreurs remontent."""
        try:
            record = await asyncio.wait_for(generate(), self.generation_timeout_s)
        except TimeoutError as exc:
            raise RemoteUnavailable("timeout") from exc
        await self._persist(kind, subject, save, record)
        self.cache.set((kind, subject, week), record)
        return self._served(kind, record, "generated")

    # ---- Ciel ----

    async def get_sky(self) -> Resolution[SkyContext]:
        now = self.clock()
        week = week_key(now)
        return await self._resolve(
            "sky",
            "*",
            week,
            fetch=lambda: self.store.fetch_sky(week),
            generate=self.pipeline.build_sky,
            save=self.store.save_sky,
            build_static=lambda: self.pipeline.local.sky(now.date()),
        )

    async def _current_sky(self) -> SkyContext:
        return (await self.get_sky()).record

    # ---- Horoscopes par signe ----

    def _sign_parts(self, sign: ZodiacSign):
        now = self.clock()

        async def generate() -> SignHoroscope:
            return await self.pipeline.generate_sign_horoscope(sign, await self._current_sky())

        return (
            week_key(now),
            generate,
            lambda: self.static.sign_horoscope(sign, now.date()),
        )

    async def get_weekly_horoscope(self, sign: ZodiacSign) -> Resolution[SignHoroscope]:
        week, generate, build_static = self._sign_parts(sign)
        return await self._resolve(
            "weekly_sign",
            sign.value,
            week,
            fetch=lambda: self.store.fetch_sign_horoscope(sign, week),
            generate=generate,
            save=self.store.save_sign_horoscope,
            build_static=build_static,
        )

    async def get_all_weekly_horoscopes(self) -> list[Resolution[SignHoroscope]]:
        """Les 12 signes en parallèle; l'échec d'un signe n'interrompt pas les autres."""
        signs = list(ZodiacSign)
        results = await asyncio.gather(
            *(self.get_weekly_horoscope(sign) for sign in signs), return_exceptions=True
        )
        resolutions = []
        for sign, result in zip(signs, results, strict=True):
            if isinstance(result, BaseException):
                log.error("weekly_horoscope_unavailable", sign=sign.value, error=str(result))
                continue
            resolutions.append(result)
        return resolutions

    async def refresh_weekly_horoscope(self, sign: ZodiacSign) -> Resolution[SignHoroscope]:
        week, generate, _ = self._sign_parts(sign)
        return await self._refresh(
            "weekly_sign", sign.value, week, generate, self.store.save_sign_horoscope
        )

    # ---- Oracle personnel ----

    def _static_oracle(self, person: Person, sign: ZodiacSign) -> OracleContent:
        day = self.clock().date()
        return self.static.oracle(person.id, sign, day, self.pipeline.local.sky(day))

    async def _generate_oracle(self, person: Person) -> OracleContent:
        return await self.pipeline.generate_oracle(person, await self._current_sky())

    async def get_oracle(self, person: Person) -> Resolution[OracleContent]:
        sign = _require_sign(person)
        if not can_access(Feature.PERSONAL_ORACLE, person.completeness):
            return self._fallback(
                "oracle", person.id, "locked", lambda: self._static_oracle(person, sign)
            )
        week = week_key(self.clock())
        return await self._resolve(
            "oracle",
            person.id,
            week,
            fetch=lambda: self.store.fetch_oracle(person.id, week),
            generate=lambda: self._generate_oracle(person),
            save=self.store.save_oracle,
            build_static=lambda: self._static_oracle(person, sign),
        )

    async def refresh_oracle(self, person: Person) -> Resolution[OracleContent]:
        _require_sign(person)
        if not can_access(Feature.PERSONAL_ORACLE, person.completeness):
            raise FeatureLocked(Feature.PERSONAL_ORACLE.value)
        week = week_key(self.clock())
        return await self._refresh(
            "oracle",
            person.id,
            week,
            lambda: self._generate_oracle(person),
            self.store.save_oracle,
        )

    # ---- Compatibilité ----

    def score_pair(self, a: Person, b: Person) -> scoring.FullResult:
        """Score pondéré soleil/lune/ascendant à partir des profils locaux."""
        pa = self.pipeline.local.profile(a)
        pb = self.pipeline.local.profile(b)
        if pa is None or pb is None:
            raise InputError("missing_sun_sign")
        return scoring.full_score(
            pa.sun_sign, pa.moon_sign, pa.rising_sign, pb.sun_sign, pb.moon_sign, pb.rising_sign
        )

    def _static_compatibility(
        self, a: Person, b: Person, week: str | None = None
    ) -> CompatibilityRecord:
        result = self.score_pair(a, b)
        return self.static.compatibility(
            a.id, b.id, result, _require_sign(a), _require_sign(b), week=week
        )

    def get_compatibility(self, a: Person, b: Person) -> Resolution[CompatibilityRecord]:
        """Couche statique: moteur de score seul, ne peut pas échouer hors `InputError`."""
        _require_sign(a)
        _require_sign(b)
        return self._served("compatibility", self._static_compatibility(a, b), "static")

    async def get_compatibility_reading(
        self, a: Person, b: Person
    ) -> Resolution[CompatibilityRecord]:
        _require_sign(a)
        _require_sign(b)
        subject = _pair_subject(a, b)
        if not can_access_pair(Feature.SYNASTRY, a, b):
            return self._fallback(
                "compatibility_reading",
                subject,
                "locked",
                lambda: self._static_compatibility(a, b),
            )
        return await self._resolve(
            "compatibility_reading",
            subject,
            week_key(self.clock()),
            fetch=lambda: self.store.fetch_compatibility(a.id, b.id),
            generate=lambda: self.pipeline.generate_compatibility_reading(a, b),
            save=self.store.save_compatibility,
            build_static=lambda: self._static_compatibility(a, b),
            accept=lambda record: record.ai_output is not None,
        )

    async def _moods(self, people: tuple[Person, ...], week: str) -> list[str]:
        """Humeurs de la semaine lues dans les oracles stockés, au mieux."""
        moods = []
        for person in people:
            oracle = self.cache.get(("oracle", person.id, week))
            if oracle is None:
                outcome = await self._try_store(
                    lambda p=person: self.store.fetch_oracle(p.id, week)
                )
                oracle = outcome.value if isinstance(outcome, Hit) else None
            if oracle is not None and oracle.mood:
                moods.append(oracle.mood)
        return moods

    async def get_this_week_compatibility(
        self, a: Person, b: Person
    ) -> Resolution[CompatibilityRecord]:
        _require_sign(a)
        _require_sign(b)
        subject = _pair_subject(a, b)
        week = week_key(self.clock())
        if not can_access_pair(Feature.THIS_WEEK_COMPATIBILITY, a, b):
            return self._fallback(
                "this_week",
                subject,
                "locked",
                lambda: self._static_compatibility(a, b, week=week),
            )

        stale: dict[str, CompatibilityRecord] = {}

        async def fetch() -> CompatibilityRecord | None:
            record = await self.store.fetch_compatibility(a.id, b.id)
            if record is not None:
                stale["record"] = record
            return record

        async def generate() -> CompatibilityRecord:
            sky = await self._current_sky()
            moods = await self._moods((a, b), week)
            weekly = await self.pipeline.generate_weekly_compatibility(a, b, sky, moods)
            previous = stale.get("record")
            if previous is None:
                return weekly
            return previous.model_copy(
                update={field: getattr(weekly, field) for field in WEEKLY_FIELDS}
            )

        return await self._resolve(
            "this_week",
            subject,
            week,
            fetch=fetch,
            generate=generate,
            save=self.store.save_weekly_compatibility,
            build_static=lambda: self._static_compatibility(a, b, week=week),
            accept=lambda record: record.has_week(week),
        )

    # ---- Maintenance ----

    def clear_cache(self) -> None:
        self.cache.clear()
        log.info("content_cache_cleared")

    async def refresh_weekly_content(self) -> list[Resolution[SignHoroscope]]:
        """Vide le cache puis recharge le ciel et les 12 horoscopes de la semaine."""
        self.clear_cache()
        await self.get_sky()
        return await self.get_all_weekly_horoscopes()
